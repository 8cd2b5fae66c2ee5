"""
Behavioral cue tracking.

Keeps a short in-memory history of foreground switches, unlocks, screen
state and quick reopens, and derives the behavioral flags used by the
context builder.
"""

import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Callable

from interlude.config import Config, get_config
from interlude.contracts.context import BehavioralCues

logger = logging.getLogger(__name__)


class BehavioralCueTracker:
    """Short-horizon history of device activity.

    Flags:
    - rapid switching: RAPID_SWITCH_MIN_APPS distinct apps within
      RAPID_SWITCH_WINDOW_SECONDS
    - compulsive reopen: COMPULSIVE_MIN_REOPENS quick reopens of one app
      within COMPULSIVE_WINDOW_MINUTES, each under QUICK_REOPEN_SECONDS
      after the previous session of that app ended
    - long screen-on: screen continuously on for LONG_SCREEN_ON_MINUTES
    - excessive unlocks: EXCESSIVE_UNLOCKS_PER_HOUR unlocks in the last hour
    """

    UNLOCK_HORIZON = timedelta(hours=1)

    def __init__(
        self,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or get_config()
        self.clock = clock

        self.switch_window = timedelta(seconds=self.config.RAPID_SWITCH_WINDOW_SECONDS)
        self.reopen_window = timedelta(minutes=self.config.COMPULSIVE_WINDOW_MINUTES)
        self.quick_reopen = timedelta(seconds=self.config.QUICK_REOPEN_SECONDS)

        self._foreground: deque[tuple[datetime, str]] = deque()
        self._unlocks: deque[datetime] = deque()
        self._reopens: dict[str, deque[datetime]] = {}
        self._last_session_end: dict[str, datetime] = {}
        self._screen_on_since: datetime | None = None

    # ─────────────────────────────────────────────────────────────────────
    # Recording
    # ─────────────────────────────────────────────────────────────────────

    def record_foreground(self, app: str, timestamp: datetime | None = None) -> None:
        """Record that an app (monitored or not) came to the foreground."""
        ts = timestamp or self.clock()
        if self._foreground and self._foreground[-1][1] == app:
            return
        self._foreground.append((ts, app))
        self._prune(ts)

    def record_session_start(self, app: str, timestamp: datetime | None = None) -> bool:
        """Record a session start; returns True if it was a quick reopen."""
        ts = timestamp or self.clock()
        last_end = self._last_session_end.get(app)
        if last_end is None or ts - last_end >= self.quick_reopen or ts < last_end:
            return False

        self._reopens.setdefault(app, deque()).append(ts)
        self._prune(ts)
        logger.debug(
            f"Quick reopen of {app} ({(ts - last_end).total_seconds():.0f}s after close)"
        )
        return True

    def record_session_end(self, app: str, timestamp: datetime | None = None) -> None:
        self._last_session_end[app] = timestamp or self.clock()

    def record_unlock(self, timestamp: datetime | None = None) -> None:
        ts = timestamp or self.clock()
        self._unlocks.append(ts)
        self._prune(ts)
        if self._screen_on_since is None:
            self._screen_on_since = ts

    def record_screen_on(self, timestamp: datetime | None = None) -> None:
        if self._screen_on_since is None:
            self._screen_on_since = timestamp or self.clock()

    def record_screen_off(self, timestamp: datetime | None = None) -> None:
        self._screen_on_since = None

    # ─────────────────────────────────────────────────────────────────────
    # Derivation
    # ─────────────────────────────────────────────────────────────────────

    def snapshot(self, app: str | None = None, now: datetime | None = None) -> BehavioralCues:
        """Derive behavioral flags as of now.

        Args:
            app: App whose reopen pattern is checked (None skips that flag)
            now: Evaluation time (defaults to the clock)
        """
        now = now or self.clock()
        self._prune(now)

        switch_cutoff = now - self.switch_window
        recent_apps = {a for ts, a in self._foreground if ts >= switch_cutoff}

        reopen_cutoff = now - self.reopen_window
        reopens = 0
        if app is not None:
            reopens = sum(1 for ts in self._reopens.get(app, ()) if ts >= reopen_cutoff)

        unlocks = len(self._unlocks)

        screen_on_minutes = 0.0
        if self._screen_on_since is not None and now >= self._screen_on_since:
            screen_on_minutes = (now - self._screen_on_since).total_seconds() / 60

        return BehavioralCues(
            rapid_app_switching=len(recent_apps) >= self.config.RAPID_SWITCH_MIN_APPS,
            compulsive_reopen=reopens >= self.config.COMPULSIVE_MIN_REOPENS,
            long_screen_on=screen_on_minutes >= self.config.LONG_SCREEN_ON_MINUTES,
            excessive_unlocks=unlocks >= self.config.EXCESSIVE_UNLOCKS_PER_HOUR,
            unlocks_last_hour=unlocks,
            screen_on_minutes=screen_on_minutes,
            distinct_recent_apps=len(recent_apps),
            recent_reopens=reopens,
        )

    def _prune(self, now: datetime) -> None:
        switch_cutoff = now - self.switch_window
        # Keep the newest entry so a lone long-running app is still known
        while len(self._foreground) > 1 and self._foreground[0][0] < switch_cutoff:
            self._foreground.popleft()

        unlock_cutoff = now - self.UNLOCK_HORIZON
        while self._unlocks and self._unlocks[0] < unlock_cutoff:
            self._unlocks.popleft()

        reopen_cutoff = now - self.reopen_window
        for history in self._reopens.values():
            while history and history[0] < reopen_cutoff:
                history.popleft()
