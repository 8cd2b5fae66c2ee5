"""History contracts - what collaborators store about past usage and outcomes."""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field


class InterventionType(str, Enum):
    """Kinds of intervention the engine can approve."""

    REMINDER = "reminder"
    SUSTAINED_USE = "sustained_use"


class UserChoice(str, Enum):
    """What the user did with a shown intervention."""

    GO_BACK = "go_back"  # left the app, the desired outcome
    PROCEED = "proceed"
    DISMISS = "dismiss"
    TIMEOUT = "timeout"
    SNOOZE = "snooze"


class Feedback(str, Enum):
    """Explicit user rating of an intervention."""

    HELPFUL = "helpful"
    DISRUPTIVE = "disruptive"
    NONE = "none"


class UsageRecord(BaseModel):
    """A finished usage session as kept by the usage-history store."""

    target_app: str
    start_time: datetime
    end_time: datetime

    model_config = {"frozen": True}

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60


class GoalConfig(BaseModel):
    """Per-app goal and streak configuration."""

    target_app: str
    daily_limit_minutes: int | None = Field(
        default=None, ge=0, description="Daily usage goal, None when unset"
    )
    current_streak: int = Field(default=0, ge=0, description="Days goal was met")


class InterventionOutcome(BaseModel):
    """Result of one shown intervention."""

    timestamp: datetime
    target_app: str
    intervention_type: InterventionType = InterventionType.SUSTAINED_USE
    user_choice: UserChoice
    feedback: Feedback = Feedback.NONE
    response_time: timedelta | None = None
    session_duration: timedelta | None = None

    model_config = {"frozen": True}

    @property
    def hour_of_day(self) -> int:
        return self.timestamp.hour

    @property
    def engaged(self) -> bool:
        """User actively responded (not dismissed, not ignored)."""
        return self.user_choice not in (UserChoice.DISMISS, UserChoice.TIMEOUT)
