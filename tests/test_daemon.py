"""Tests for the usage monitor daemon."""

from datetime import datetime, timedelta

import pytest

from interlude.contracts.context import DeviceEvent, DeviceEventKind
from interlude.contracts.decision import DecisionSource
from interlude.contracts.session import InterruptionReason, SessionEventKind
from interlude.daemon import PollingMode, UsageMonitorDaemon, select_polling_mode
from interlude.engine.decision_engine import AdaptiveDecisionEngine
from interlude.store.memory import (
    InMemoryExplanationSink,
    InMemoryGoalStore,
    InMemoryOutcomeStore,
    InMemoryUsageHistory,
)
from interlude.store.preferences import InMemoryCounterStore

from conftest import APP, OTHER_APP


class MockForegroundSource:
    """Mock platform signal source for testing."""

    def __init__(self):
        self.pending: list[DeviceEvent] = []
        self.foreground: str | None = None
        self.power_save = False

    def push(self, kind: DeviceEventKind, timestamp: datetime, app: str | None = None):
        self.pending.append(DeviceEvent(kind=kind, timestamp=timestamp, app=app))

    async def events_since(self, since: datetime) -> list[DeviceEvent]:
        events, self.pending = self.pending, []
        return events

    async def is_in_foreground(self, app: str) -> bool:
        return self.foreground == app

    async def is_power_save(self) -> bool:
        return self.power_save


class BrokenSource:
    async def events_since(self, since):
        raise PermissionError("usage access revoked")

    async def is_in_foreground(self, app):
        raise PermissionError("usage access revoked")

    async def is_power_save(self):
        raise PermissionError("usage access revoked")


@pytest.fixture
def daemon_config(config):
    config.MONITORED_APPS = [APP]
    config.SUSTAINED_USE_THRESHOLD_MINUTES = 3.0
    return config


@pytest.fixture
def history():
    return InMemoryUsageHistory()


@pytest.fixture
def sink():
    return InMemoryExplanationSink()


@pytest.fixture
def source():
    return MockForegroundSource()


@pytest.fixture
def daemon(daemon_config, clock, history, sink, source):
    engine = AdaptiveDecisionEngine.create(
        history=history,
        goals=InMemoryGoalStore(),
        counters=InMemoryCounterStore(),
        outcomes=InMemoryOutcomeStore(),
        sink=sink,
        config=daemon_config,
        clock=clock,
    )
    return UsageMonitorDaemon(
        source=source,
        engine=engine,
        history=history,
        config=daemon_config,
        clock=clock,
    )


async def open_session(daemon, source, clock, app=APP):
    source.foreground = app
    source.push(DeviceEventKind.FOREGROUND, clock(), app)
    return await daemon.tick()


class TestPollingMode:
    def test_power_save_wins(self):
        assert select_polling_mode(True, True, 0.0, 60.0) == PollingMode.POWER_SAVE

    def test_screen_off(self):
        assert select_polling_mode(False, False, 0.0, 60.0) == PollingMode.SCREEN_OFF

    def test_active_while_target_recent(self):
        assert select_polling_mode(False, True, 10.0, 60.0) == PollingMode.ACTIVE

    def test_idle(self):
        assert select_polling_mode(False, True, 120.0, 60.0) == PollingMode.IDLE
        assert select_polling_mode(False, True, None, 60.0) == PollingMode.IDLE


class TestTick:
    @pytest.mark.asyncio
    async def test_foreground_starts_session(self, daemon, source, clock):
        events = await open_session(daemon, source, clock)

        assert events[0].kind == SessionEventKind.STARTED
        assert daemon.tracker.get_current_session().target_app == APP
        assert daemon.mode == PollingMode.ACTIVE
        assert daemon.current_interval() == 1.5

    @pytest.mark.asyncio
    async def test_unmonitored_app_ignored(self, daemon, source, clock):
        events = await open_session(daemon, source, clock, app=OTHER_APP)

        assert events == []
        assert daemon.tracker.get_current_session() is None
        assert daemon.mode == PollingMode.IDLE

    @pytest.mark.asyncio
    async def test_threshold_triggers_decision(self, daemon, source, clock, sink):
        shown = []

        async def on_intervention(verdict, session):
            shown.append((verdict, session))

        daemon.intervention_callback = on_intervention
        await open_session(daemon, source, clock)

        kinds = []
        for _ in range(6):
            clock.advance(seconds=30)
            kinds.extend(e.kind for e in await daemon.tick())

        assert kinds.count(SessionEventKind.THRESHOLD_REACHED) == 1
        assert len(daemon.verdicts) == 1
        verdict = daemon.verdicts[0]
        assert verdict.allowed
        assert verdict.decision_source == DecisionSource.ADAPTIVE_APPROVED
        assert verdict.opportunity_score == 51

        assert len(shown) == 1
        assert shown[0][1].duration == timedelta(minutes=3)

        await daemon.engine.shutdown()
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_sync_callback(self, daemon, source, clock):
        shown = []
        daemon.intervention_callback = lambda verdict, session: shown.append(verdict)
        await open_session(daemon, source, clock)

        for _ in range(6):
            clock.advance(seconds=30)
            await daemon.tick()
        await daemon.engine.shutdown()

        assert len(shown) == 1

    @pytest.mark.asyncio
    async def test_screen_off_persists_session(self, daemon, source, clock, history):
        await open_session(daemon, source, clock)
        clock.advance(seconds=30)
        await daemon.tick()

        clock.advance(seconds=5)
        source.foreground = None
        source.push(DeviceEventKind.SCREEN_OFF, clock())
        events = await daemon.tick()

        ended = [e for e in events if e.kind == SessionEventKind.ENDED]
        assert ended[0].reason == InterruptionReason.SCREEN_OFF
        assert len(history.records) == 1
        assert history.records[0].duration == timedelta(seconds=35)
        assert daemon.mode == PollingMode.SCREEN_OFF
        assert daemon.current_interval() == 30.0

    @pytest.mark.asyncio
    async def test_lost_foreground_times_out(self, daemon, source, clock, history):
        start = clock()
        await open_session(daemon, source, clock)
        clock.advance(seconds=20)
        await daemon.tick()

        source.foreground = None
        clock.advance(seconds=20)
        assert await daemon.tick() == []

        clock.advance(seconds=20)
        events = await daemon.tick()

        assert events[0].reason == InterruptionReason.TIMEOUT
        assert events[0].session.ended_at == start + timedelta(seconds=20)
        assert history.records[0].end_time == start + timedelta(seconds=20)

    @pytest.mark.asyncio
    async def test_short_session_not_persisted(self, daemon, source, clock, history):
        await open_session(daemon, source, clock)
        clock.advance(seconds=2)
        source.push(DeviceEventKind.SCREEN_OFF, clock())
        await daemon.tick()

        assert history.records == []

    @pytest.mark.asyncio
    async def test_power_save_mode(self, daemon, source, clock):
        source.power_save = True
        await open_session(daemon, source, clock)

        assert daemon.mode == PollingMode.POWER_SAVE
        assert daemon.current_interval() == 10.0

    @pytest.mark.asyncio
    async def test_unavailable_source_is_no_change(self, daemon, clock):
        daemon.source = BrokenSource()

        assert await daemon.tick() == []
        assert daemon.get_status()["tick_count"] == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_stop(self, daemon):
        await daemon.start()
        assert daemon.is_running

        await daemon.stop()
        assert not daemon.is_running

    @pytest.mark.asyncio
    async def test_stop_persists_open_session(self, daemon, source, clock, history):
        await daemon.start()
        await open_session(daemon, source, clock)
        for _ in range(2):
            clock.advance(seconds=30)
            await daemon.tick()

        await daemon.stop()

        assert daemon.tracker.get_current_session() is None
        assert len(history.records) == 1
        assert history.records[0].duration == timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_status(self, daemon, source, clock):
        await open_session(daemon, source, clock)

        status = daemon.get_status()

        assert status["mode"] == "active"
        assert status["session"]["current_app"] == APP
        assert status["session"]["threshold_minutes"] == 3.0
        assert status["evaluated"] == 0
        assert status["last_verdict"] is None

    @pytest.mark.asyncio
    async def test_verdict_history_is_bounded(self, daemon, source, clock):
        monitor = UsageMonitorDaemon(
            source=source,
            engine=daemon.engine,
            history=daemon.history,
            config=daemon.config,
            recent_verdicts=2,
            clock=clock,
        )
        session = (await open_session(monitor, source, clock))[0].session

        for _ in range(3):
            await monitor._evaluate(session)
        await monitor.engine.shutdown()

        status = monitor.get_status()
        assert len(monitor.verdicts) == 2
        assert status["evaluated"] == 3
        assert status["allowed"] == 0
        assert status["last_verdict"].startswith("Session too short")
