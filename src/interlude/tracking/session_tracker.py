"""
Session Tracker

Turns raw foreground signals into session lifecycle events:
STARTED, CONTINUED, THRESHOLD_REACHED (one-shot per session) and ENDED.

Only one session is open at a time. The tracker is driven by a single
worker (the monitor's polling loop) and is not thread-safe by itself.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from interlude.config import Config, get_config
from interlude.contracts.session import (
    InterruptionReason,
    Session,
    SessionEvent,
    SessionEventKind,
)

logger = logging.getLogger(__name__)


class SessionTracker:
    """Tracks continuous foreground use of monitored apps.

    Grace window: a session survives gaps in the foreground signal up to
    SESSION_GAP_SECONDS, so polling jitter or one missed tick never splits
    it. Past that window the session is closed as a timeout.
    """

    def __init__(
        self,
        config: Config | None = None,
        monitored_apps: Iterable[str] | None = None,
        threshold_multiplier: Optional[Callable[[], float]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the tracker.

        Args:
            config: Configuration (defaults to the global config)
            monitored_apps: Apps that open sessions; None means every app
            threshold_multiplier: Provider of the adaptive multiplier applied
                to the sustained-use threshold
            clock: Time source used when callers omit timestamps
        """
        self.config = config or get_config()
        self.monitored_apps = set(monitored_apps) if monitored_apps is not None else None
        self.threshold_multiplier = threshold_multiplier
        self.clock = clock

        self.gap = timedelta(seconds=self.config.SESSION_GAP_SECONDS)
        self.min_recorded = timedelta(seconds=self.config.MIN_RECORDED_SESSION_SECONDS)
        self.base_threshold = timedelta(
            minutes=self.config.SUSTAINED_USE_THRESHOLD_MINUTES
        )

        self._current: Session | None = None
        self._sessions_started = 0
        self._sessions_ended = 0

    # ─────────────────────────────────────────────────────────────────────
    # Signals
    # ─────────────────────────────────────────────────────────────────────

    def on_foreground_signal(
        self, app: str | None, timestamp: datetime | None = None
    ) -> list[SessionEvent]:
        """Handle an observation that app is in the foreground.

        Args:
            app: Foreground app, None when the source could not tell
            timestamp: Observation time (defaults to now)

        Returns:
            Events produced by this observation, in order
        """
        ts = timestamp or self.clock()

        # Ambiguous signal: keep the current session, let the grace window decide
        if app is None:
            return self.check_timeout(ts)

        current = self._current
        if current is not None and ts < current.last_active:
            logger.debug(f"Ignoring stale signal for {app} at {ts.isoformat()}")
            return []

        events: list[SessionEvent] = []

        if current is not None:
            if app == current.target_app:
                if ts - current.last_active <= self.gap:
                    return self._continue(current, ts)
                events.extend(self._end(InterruptionReason.TIMEOUT, current.last_active))
            else:
                events.extend(self._end(InterruptionReason.APP_SWITCH, ts))

        if self._is_monitored(app):
            events.append(self._start(app, ts))

        return events

    def on_foreground_lost(self, timestamp: datetime | None = None) -> list[SessionEvent]:
        """Handle a tick where the tracked app was not confirmed in foreground.

        The session is kept open until the grace window runs out.
        """
        return self.check_timeout(timestamp or self.clock())

    def on_screen_off(self, timestamp: datetime | None = None) -> list[SessionEvent]:
        """Screen off always closes the current session."""
        event = self.force_end(InterruptionReason.SCREEN_OFF, timestamp)
        return [event] if event else []

    def check_timeout(self, now: datetime | None = None) -> list[SessionEvent]:
        """Close the session if no signal arrived within the grace window."""
        current = self._current
        if current is None:
            return []

        now = now or self.clock()
        if now - current.last_active > self.gap:
            logger.debug(
                f"Session {current.session_id} timed out "
                f"({(now - current.last_active).total_seconds():.0f}s idle)"
            )
            return self._end(InterruptionReason.TIMEOUT, current.last_active)
        return []

    def force_end(
        self,
        reason: InterruptionReason = InterruptionReason.MANUAL,
        timestamp: datetime | None = None,
    ) -> SessionEvent | None:
        """End the current session immediately.

        Returns:
            The ENDED event, or None when no session was open
        """
        if self._current is None:
            return None

        ts = timestamp or self.clock()
        end_time = max(ts, self._current.last_active)
        events = self._end(reason, end_time)
        return events[0] if events else None

    # ─────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────

    def get_current_session(self) -> Session | None:
        """Snapshot of the open session, if any."""
        return self._current.model_copy() if self._current else None

    def effective_threshold(self) -> timedelta:
        """Sustained-use threshold after the adaptive multiplier."""
        multiplier = 1.0
        if self.threshold_multiplier is not None:
            try:
                multiplier = float(self.threshold_multiplier())
            except Exception as e:
                logger.warning(f"Threshold multiplier unavailable, using 1.0: {e}")
                multiplier = 1.0
            if multiplier <= 0:
                multiplier = 1.0
        return self.base_threshold * multiplier

    def get_stats(self) -> dict:
        return {
            "current_app": self._current.target_app if self._current else None,
            "current_minutes": self._current.duration_minutes if self._current else 0.0,
            "sessions_started": self._sessions_started,
            "sessions_ended": self._sessions_ended,
            "threshold_minutes": self.effective_threshold().total_seconds() / 60,
        }

    # ─────────────────────────────────────────────────────────────────────
    # Internal transitions
    # ─────────────────────────────────────────────────────────────────────

    def _is_monitored(self, app: str) -> bool:
        return self.monitored_apps is None or app in self.monitored_apps

    def _start(self, app: str, ts: datetime) -> SessionEvent:
        self._current = Session(target_app=app, start_time=ts, last_active=ts)
        self._sessions_started += 1
        logger.debug(f"Session started: {app} ({self._current.session_id})")
        return SessionEvent(
            kind=SessionEventKind.STARTED,
            session=self._current.model_copy(),
            timestamp=ts,
        )

    def _continue(self, current: Session, ts: datetime) -> list[SessionEvent]:
        current.last_active = ts
        current.duration = ts - current.start_time

        events = [
            SessionEvent(
                kind=SessionEventKind.CONTINUED,
                session=current.model_copy(),
                timestamp=ts,
            )
        ]

        if not current.threshold_fired and current.duration >= self.effective_threshold():
            current.threshold_fired = True
            logger.info(
                f"Sustained-use threshold reached: {current.target_app} "
                f"after {current.duration_minutes:.1f} min"
            )
            events.append(
                SessionEvent(
                    kind=SessionEventKind.THRESHOLD_REACHED,
                    session=current.model_copy(),
                    timestamp=ts,
                )
            )

        return events

    def _end(self, reason: InterruptionReason, end_time: datetime) -> list[SessionEvent]:
        current = self._current
        if current is None:
            return []

        self._current = None
        self._sessions_ended += 1

        current.duration = max(end_time - current.start_time, timedelta(0))
        current.ended_at = end_time
        current.interruption_reason = reason

        recorded = current.duration >= self.min_recorded
        logger.debug(
            f"Session ended: {current.target_app} reason={reason.value} "
            f"duration={current.duration.total_seconds():.0f}s recorded={recorded}"
        )
        return [
            SessionEvent(
                kind=SessionEventKind.ENDED,
                session=current,
                timestamp=end_time,
                reason=reason,
                recorded=recorded,
            )
        ]
