"""Tests for the session tracker."""

from datetime import timedelta

import pytest

from interlude.contracts.session import InterruptionReason, SessionEventKind
from interlude.tracking.session_tracker import SessionTracker

from conftest import APP, OTHER_APP, WEEKDAY_MORNING

T0 = WEEKDAY_MORNING


def kinds(events):
    return [e.kind for e in events]


@pytest.fixture
def tracker(config, clock):
    return SessionTracker(config=config, monitored_apps=[APP, OTHER_APP], clock=clock)


class TestSessionLifecycle:
    def test_first_signal_starts_session(self, tracker):
        events = tracker.on_foreground_signal(APP, T0)

        assert kinds(events) == [SessionEventKind.STARTED]
        current = tracker.get_current_session()
        assert current.target_app == APP
        assert current.start_time == T0
        assert current.is_open

    def test_signal_within_gap_continues(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        events = tracker.on_foreground_signal(APP, T0 + timedelta(seconds=20))

        assert kinds(events) == [SessionEventKind.CONTINUED]
        assert tracker.get_current_session().duration == timedelta(seconds=20)

    def test_duration_accumulates_across_signals(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        for seconds in (25, 50, 75, 100):
            tracker.on_foreground_signal(APP, T0 + timedelta(seconds=seconds))

        assert tracker.get_current_session().duration == timedelta(seconds=100)

    def test_app_switch_ends_and_starts(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        events = tracker.on_foreground_signal(OTHER_APP, T0 + timedelta(seconds=10))

        assert kinds(events) == [SessionEventKind.ENDED, SessionEventKind.STARTED]
        ended = events[0]
        assert ended.reason == InterruptionReason.APP_SWITCH
        assert ended.session.target_app == APP
        assert ended.session.ended_at == T0 + timedelta(seconds=10)
        assert tracker.get_current_session().target_app == OTHER_APP

    def test_unmonitored_app_only_ends_session(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        events = tracker.on_foreground_signal("com.example.calculator", T0 + timedelta(seconds=10))

        assert kinds(events) == [SessionEventKind.ENDED]
        assert tracker.get_current_session() is None

    def test_unmonitored_app_without_session_is_ignored(self, tracker):
        assert tracker.on_foreground_signal("com.example.calculator", T0) == []

    def test_stale_signal_ignored(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(APP, T0 + timedelta(seconds=10))

        assert tracker.on_foreground_signal(APP, T0 + timedelta(seconds=5)) == []
        assert tracker.get_current_session().last_active == T0 + timedelta(seconds=10)

    def test_ambiguous_signal_keeps_session(self, tracker):
        tracker.on_foreground_signal(APP, T0)

        assert tracker.on_foreground_signal(None, T0 + timedelta(seconds=10)) == []
        assert tracker.get_current_session() is not None


class TestGraceWindow:
    def test_timeout_ends_at_last_active(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(APP, T0 + timedelta(seconds=10))

        events = tracker.check_timeout(T0 + timedelta(seconds=50))

        assert kinds(events) == [SessionEventKind.ENDED]
        assert events[0].reason == InterruptionReason.TIMEOUT
        assert events[0].session.ended_at == T0 + timedelta(seconds=10)
        assert events[0].session.duration == timedelta(seconds=10)

    def test_no_timeout_inside_gap(self, tracker):
        tracker.on_foreground_signal(APP, T0)

        assert tracker.on_foreground_lost(T0 + timedelta(seconds=30)) == []
        assert tracker.get_current_session() is not None

    def test_same_app_after_gap_starts_fresh(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(APP, T0 + timedelta(seconds=10))

        events = tracker.on_foreground_signal(APP, T0 + timedelta(seconds=60))

        assert kinds(events) == [SessionEventKind.ENDED, SessionEventKind.STARTED]
        assert events[0].reason == InterruptionReason.TIMEOUT
        assert tracker.get_current_session().start_time == T0 + timedelta(seconds=60)

    def test_screen_off_ends_session(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(APP, T0 + timedelta(seconds=20))

        events = tracker.on_screen_off(T0 + timedelta(seconds=25))

        assert kinds(events) == [SessionEventKind.ENDED]
        assert events[0].reason == InterruptionReason.SCREEN_OFF
        assert tracker.get_current_session() is None

    def test_short_session_not_recorded(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(APP, T0 + timedelta(seconds=2))

        events = tracker.on_screen_off(T0 + timedelta(seconds=3))

        assert events[0].recorded is False

    def test_force_end_without_session(self, tracker):
        assert tracker.force_end(InterruptionReason.MANUAL, T0) is None

    def test_force_end_uses_clock(self, tracker, clock):
        tracker.on_foreground_signal(APP, T0)
        clock.advance(seconds=40)

        event = tracker.force_end(InterruptionReason.SHUTDOWN)

        assert event.reason == InterruptionReason.SHUTDOWN
        assert event.session.ended_at == T0 + timedelta(seconds=40)
        assert event.recorded


class TestThreshold:
    def test_threshold_fires_once(self, config, clock):
        config.SUSTAINED_USE_THRESHOLD_MINUTES = 1.0
        tracker = SessionTracker(config=config, monitored_apps=[APP], clock=clock)

        events = tracker.on_foreground_signal(APP, T0)
        for seconds in range(20, 181, 20):
            events += tracker.on_foreground_signal(APP, T0 + timedelta(seconds=seconds))

        fired = [e for e in events if e.kind == SessionEventKind.THRESHOLD_REACHED]
        assert len(fired) == 1
        assert fired[0].session.duration == timedelta(seconds=60)

    def test_multiplier_scales_threshold(self, config, clock):
        tracker = SessionTracker(
            config=config, monitored_apps=[APP], threshold_multiplier=lambda: 2.0, clock=clock
        )
        assert tracker.effective_threshold() == timedelta(minutes=20)

    def test_failing_multiplier_uses_base(self, config, clock):
        def broken():
            raise RuntimeError("no multiplier")

        tracker = SessionTracker(
            config=config, monitored_apps=[APP], threshold_multiplier=broken, clock=clock
        )
        assert tracker.effective_threshold() == timedelta(minutes=10)

    def test_stats(self, tracker):
        tracker.on_foreground_signal(APP, T0)
        tracker.on_foreground_signal(OTHER_APP, T0 + timedelta(seconds=30))

        stats = tracker.get_stats()
        assert stats["sessions_started"] == 2
        assert stats["sessions_ended"] == 1
        assert stats["current_app"] == OTHER_APP
