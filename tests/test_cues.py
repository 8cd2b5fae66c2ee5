"""Tests for behavioral cue tracking."""

from datetime import timedelta

from interlude.tracking.cues import BehavioralCueTracker

from conftest import APP, WEEKDAY_MORNING

T0 = WEEKDAY_MORNING


class TestRapidSwitching:
    def test_three_apps_within_window(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        cues.record_foreground("a", T0)
        cues.record_foreground("b", T0 + timedelta(seconds=5))
        cues.record_foreground("c", T0 + timedelta(seconds=10))

        snapshot = cues.snapshot(now=T0 + timedelta(seconds=12))
        assert snapshot.rapid_app_switching
        assert snapshot.distinct_recent_apps == 3

    def test_switching_ages_out(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        for i, app in enumerate(["a", "b", "c"]):
            cues.record_foreground(app, T0 + timedelta(seconds=i))

        assert not cues.snapshot(now=T0 + timedelta(minutes=2)).rapid_app_switching

    def test_repeated_app_counted_once(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        for i in range(5):
            cues.record_foreground("a", T0 + timedelta(seconds=i))

        assert cues.snapshot(now=T0 + timedelta(seconds=6)).distinct_recent_apps == 1


class TestReopens:
    def test_quick_reopen_detected(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        cues.record_session_end(APP, T0)

        assert cues.record_session_start(APP, T0 + timedelta(seconds=30))

    def test_slow_reopen_not_quick(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        cues.record_session_end(APP, T0)

        assert not cues.record_session_start(APP, T0 + timedelta(minutes=3))

    def test_compulsive_reopen_after_three(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        t = T0
        for _ in range(3):
            cues.record_session_end(APP, t)
            t += timedelta(seconds=30)
            cues.record_session_start(APP, t)
            t += timedelta(seconds=30)

        snapshot = cues.snapshot(APP, now=t)
        assert snapshot.compulsive_reopen
        assert snapshot.recent_reopens == 3

    def test_reopens_of_other_app_ignored(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        t = T0
        for _ in range(3):
            cues.record_session_end("other", t)
            t += timedelta(seconds=30)
            cues.record_session_start("other", t)

        assert not cues.snapshot(APP, now=t).compulsive_reopen


class TestDeviceState:
    def test_excessive_unlocks(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        for i in range(15):
            cues.record_unlock(T0 + timedelta(minutes=i))

        snapshot = cues.snapshot(now=T0 + timedelta(minutes=20))
        assert snapshot.excessive_unlocks
        assert snapshot.unlocks_last_hour == 15

    def test_unlocks_age_out_after_an_hour(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        for i in range(15):
            cues.record_unlock(T0 + timedelta(minutes=i))

        snapshot = cues.snapshot(now=T0 + timedelta(hours=2))
        assert snapshot.unlocks_last_hour == 0
        assert not snapshot.excessive_unlocks

    def test_long_screen_on(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        cues.record_screen_on(T0)

        assert not cues.snapshot(now=T0 + timedelta(minutes=30)).long_screen_on
        assert cues.snapshot(now=T0 + timedelta(minutes=45)).long_screen_on

    def test_screen_off_resets(self, config, clock):
        cues = BehavioralCueTracker(config=config, clock=clock)
        cues.record_screen_on(T0)
        cues.record_screen_off(T0 + timedelta(minutes=50))

        snapshot = cues.snapshot(now=T0 + timedelta(minutes=55))
        assert snapshot.screen_on_minutes == 0.0
        assert not snapshot.long_screen_on
