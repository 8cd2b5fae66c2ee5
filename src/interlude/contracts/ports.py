"""
Collaborator Protocols

Interfaces the engine consumes. Storage engines, platform signal sources and
cloud sync live outside this package and implement these protocols; the
in-memory and SQLite versions in interlude.store are the reference ones.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from interlude.contracts.context import DeviceEvent
from interlude.contracts.decision import DecisionExplanation
from interlude.contracts.history import GoalConfig, InterventionOutcome, UsageRecord


@runtime_checkable
class ForegroundSource(Protocol):
    """Platform source of foreground and device-state signals.

    An implementation that cannot answer should return False / an empty
    list; the monitor treats missing signals as "no change".
    """

    async def is_in_foreground(self, app: str) -> bool:
        """Whether the app is in the foreground right now."""
        ...

    async def events_since(self, since: datetime) -> list[DeviceEvent]:
        """Usage events (foreground, screen, unlock) newer than since."""
        ...

    async def is_power_save(self) -> bool:
        """Whether the device is in power-save mode."""
        ...


@runtime_checkable
class UsageHistoryStore(Protocol):
    """Read/write access to finished usage sessions."""

    async def sessions_between(
        self, start: datetime, end: datetime
    ) -> list[UsageRecord]:
        """All sessions starting in [start, end)."""
        ...

    async def sessions_for_app(
        self, app: str, start: datetime, end: datetime
    ) -> list[UsageRecord]:
        """Sessions of one app starting in [start, end)."""
        ...

    async def add_session(self, record: UsageRecord) -> None:
        ...


@runtime_checkable
class GoalStore(Protocol):
    async def goal_for(self, app: str) -> GoalConfig | None:
        """Goal/streak configuration for an app, None when unset."""
        ...


@runtime_checkable
class OutcomeStore(Protocol):
    """History of shown interventions and how the user responded."""

    async def outcomes_between(
        self, start: datetime, end: datetime
    ) -> list[InterventionOutcome]:
        ...

    async def recent_for_app(
        self, app: str, limit: int = 50
    ) -> list[InterventionOutcome]:
        """Most recent outcomes for an app, newest first."""
        ...

    async def add_outcome(self, outcome: InterventionOutcome) -> None:
        ...


@runtime_checkable
class CounterStore(Protocol):
    """Small key-value store for counters, timestamps and the multiplier.

    Synchronous because it is only touched inside the rate limiter's lock.
    """

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def set_many(self, values: dict[str, Any]) -> None:
        """Write several keys in one transaction."""
        ...


@runtime_checkable
class ExplanationSink(Protocol):
    """Append-only destination for decision explanations."""

    def append(self, explanation: DecisionExplanation) -> None:
        ...
