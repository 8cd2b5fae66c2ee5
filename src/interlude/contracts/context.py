"""Context contracts - the immutable snapshot every decision is made from."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class DeviceEventKind(str, Enum):
    """Raw device signals delivered by the foreground source."""

    FOREGROUND = "foreground"
    SCREEN_ON = "screen_on"
    SCREEN_OFF = "screen_off"
    UNLOCK = "unlock"


class DeviceEvent(BaseModel):
    """A single usage event reported by the platform."""

    kind: DeviceEventKind
    timestamp: datetime
    app: str | None = Field(default=None, description="Set for FOREGROUND events")

    model_config = {"frozen": True}


class BehavioralCues(BaseModel):
    """Short-horizon behavioral flags derived from recent device activity."""

    rapid_app_switching: bool = False
    compulsive_reopen: bool = False
    long_screen_on: bool = False
    excessive_unlocks: bool = False
    unlocks_last_hour: int = Field(default=0, ge=0)
    screen_on_minutes: float = Field(default=0.0, ge=0.0)
    distinct_recent_apps: int = Field(default=0, ge=0)
    recent_reopens: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class InterventionContext(BaseModel):
    """Immutable snapshot of current and historical behavior.

    Built fresh by the ContextBuilder for every decision and never mutated.
    Fields listed in degraded_sources were replaced by their defaults because
    the corresponding lookup failed.
    """

    # Moment
    target_app: str
    timestamp: datetime
    hour_of_day: int = Field(ge=0, le=23)
    day_of_week: int = Field(ge=0, le=6, description="Monday=0")
    is_weekend: bool = False

    # Current session
    current_session_minutes: float = Field(default=0.0, ge=0.0)
    session_count_today: int = Field(default=1, ge=0)
    minutes_since_last_session: float | None = None
    quick_reopen: bool = False

    # Usage history
    total_usage_today_minutes: float = Field(default=0.0, ge=0.0)
    total_usage_yesterday_minutes: float = Field(default=0.0, ge=0.0)
    weekly_average_minutes: float = Field(default=0.0, ge=0.0)
    baseline_session_minutes: float | None = Field(
        default=None, description="Mean session length for this app over 7 days"
    )

    # Goals
    goal_minutes: int | None = None
    is_over_goal: bool = False
    streak_days: int = Field(default=0, ge=0)
    days_since_install: int = Field(default=0, ge=0)

    # Behavioral flags
    rapid_app_switching: bool = False
    compulsive_reopen: bool = False
    unusual_hour: bool = False
    long_screen_on: bool = False
    excessive_unlocks: bool = False
    unlocks_last_hour: int = Field(default=0, ge=0)
    screen_on_minutes: float = Field(default=0.0, ge=0.0)

    # Learned signal
    historical_success_rate: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Go-back rate of past outcomes"
    )
    historical_sample_size: int = Field(default=0, ge=0)

    degraded_sources: tuple[str, ...] = ()

    model_config = {"frozen": True}

    def summary(self) -> dict:
        """Compact view stored alongside decision explanations."""
        return {
            "hour": self.hour_of_day,
            "weekend": self.is_weekend,
            "session_minutes": round(self.current_session_minutes, 1),
            "sessions_today": self.session_count_today,
            "usage_today_minutes": round(self.total_usage_today_minutes, 1),
            "over_goal": self.is_over_goal,
            "streak_days": self.streak_days,
            "days_since_install": self.days_since_install,
            "flags": [
                name
                for name in (
                    "quick_reopen",
                    "rapid_app_switching",
                    "compulsive_reopen",
                    "unusual_hour",
                    "long_screen_on",
                    "excessive_unlocks",
                )
                if getattr(self, name)
            ],
            "degraded": list(self.degraded_sources),
        }
