"""Shared fixtures and fakes."""

from datetime import datetime, timedelta

import pytest

from interlude.config import Config
from interlude.store.preferences import InMemoryCounterStore


APP = "com.example.feed"
OTHER_APP = "com.example.chat"

# Tuesday, 10:00 local
WEEKDAY_MORNING = datetime(2026, 3, 10, 10, 0)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: datetime = WEEKDAY_MORNING):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


class FailingHistory:
    """Usage-history store that is always unreachable."""

    def __init__(self):
        self.calls = 0

    async def sessions_between(self, start, end):
        self.calls += 1
        raise RuntimeError("history unavailable")

    async def sessions_for_app(self, app, start, end):
        self.calls += 1
        raise RuntimeError("history unavailable")

    async def add_session(self, record):
        raise RuntimeError("history unavailable")


class FailingGoalStore:
    async def goal_for(self, app):
        raise RuntimeError("goals unavailable")


class FailingOutcomeStore:
    async def outcomes_between(self, start, end):
        raise RuntimeError("outcomes unavailable")

    async def recent_for_app(self, app, limit=50):
        raise RuntimeError("outcomes unavailable")

    async def add_outcome(self, outcome):
        raise RuntimeError("outcomes unavailable")


class FailingCounterStore:
    """Counter store whose reads and writes always fail."""

    def get(self, key, default=None):
        raise OSError("counter store unavailable")

    def set(self, key, value):
        raise OSError("counter store unavailable")

    def set_many(self, values):
        raise OSError("counter store unavailable")


class UnwritableCounterStore(InMemoryCounterStore):
    """Counter store that reads fine but rejects state writes, like a locked database."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writable = False

    def set_many(self, values):
        if not self.writable:
            raise OSError("database is locked")
        super().set_many(values)


@pytest.fixture
def config():
    """Defaults only, never a config.py from the working tree."""
    cfg = Config(load_user_config=False)
    cfg.MONITORED_APPS = [APP, OTHER_APP]
    return cfg


@pytest.fixture
def clock():
    return FakeClock()
