"""Session contracts - foreground-use sessions and their lifecycle events."""

import uuid
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field


class InterruptionReason(str, Enum):
    """Why a session was closed."""

    SCREEN_OFF = "screen_off"
    APP_SWITCH = "app_switch"
    TIMEOUT = "timeout"
    MANUAL = "manual"
    SHUTDOWN = "shutdown"


class Session(BaseModel):
    """One contiguous period of foreground use of a monitored app.

    Owned and mutated only by the SessionTracker; everything else sees
    copies handed out through SessionEvents or get_current_session().
    """

    session_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex[:12],
        description="Session identifier",
    )
    target_app: str = Field(description="Package/app identifier")
    start_time: datetime = Field(description="First foreground observation")
    last_active: datetime = Field(description="Most recent foreground observation")
    duration: timedelta = Field(
        default=timedelta(0),
        description="Accumulated duration (last_active - start_time)",
    )
    threshold_fired: bool = Field(
        default=False,
        description="Sustained-use threshold already reported for this session",
    )
    ended_at: datetime | None = Field(default=None, description="Close time")
    interruption_reason: InterruptionReason | None = Field(
        default=None,
        description="Why the session closed",
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def was_interrupted(self) -> bool:
        return self.interruption_reason is not None

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60


class SessionEventKind(str, Enum):
    """Lifecycle events emitted by the session tracker."""

    STARTED = "started"
    CONTINUED = "continued"
    THRESHOLD_REACHED = "threshold_reached"
    ENDED = "ended"


class SessionEvent(BaseModel):
    """A session lifecycle transition.

    The attached session is a snapshot taken at the moment of the event.
    """

    kind: SessionEventKind
    session: Session
    timestamp: datetime
    reason: InterruptionReason | None = None
    recorded: bool = Field(
        default=True,
        description="False for ENDED sessions too short to persist",
    )

    model_config = {"frozen": True}
