"""Usage monitor - adaptive polling loop driving sessions and decisions."""

import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from interlude.config import Config, get_config
from interlude.contracts.context import DeviceEvent, DeviceEventKind
from interlude.contracts.decision import Verdict
from interlude.contracts.history import InterventionType, UsageRecord
from interlude.contracts.ports import ForegroundSource, UsageHistoryStore
from interlude.contracts.session import (
    InterruptionReason,
    Session,
    SessionEvent,
    SessionEventKind,
)
from interlude.engine.decision_engine import AdaptiveDecisionEngine
from interlude.tracking.cues import BehavioralCueTracker
from interlude.tracking.session_tracker import SessionTracker

logger = logging.getLogger(__name__)

# Recent verdicts kept in memory for get_status()
RECENT_VERDICTS = 50


class PollingMode(str, Enum):
    ACTIVE = "active"
    IDLE = "idle"
    SCREEN_OFF = "screen_off"
    POWER_SAVE = "power_save"


def select_polling_mode(
    power_save: bool,
    screen_on: bool,
    seconds_since_target: float | None,
    idle_after_seconds: float,
) -> PollingMode:
    """Pick the polling mode from device state.

    Args:
        power_save: Device power-save mode is on
        screen_on: Screen is on
        seconds_since_target: Seconds since a monitored app was last seen,
            None if never
        idle_after_seconds: Seconds without a monitored app before idling
    """
    if power_save:
        return PollingMode.POWER_SAVE
    if not screen_on:
        return PollingMode.SCREEN_OFF
    if seconds_since_target is not None and seconds_since_target < idle_after_seconds:
        return PollingMode.ACTIVE
    return PollingMode.IDLE


class UsageMonitorDaemon:
    """Background process feeding the session tracker and the engine.

    All ticks run sequentially on one task, so session state transitions
    never race. The loop:
    - Pulls device events since the previous tick
    - Updates behavioral cues and the session tracker
    - Confirms the open session is still in the foreground
    - Persists finished sessions
    - Evaluates a sustained-use intervention on each threshold crossing
    """

    def __init__(
        self,
        source: ForegroundSource,
        engine: AdaptiveDecisionEngine,
        history: UsageHistoryStore,
        tracker: SessionTracker | None = None,
        cues: BehavioralCueTracker | None = None,
        monitored_apps: Iterable[str] | None = None,
        config: Config | None = None,
        intervention_callback: Optional[Callable[[Verdict, Session], Any]] = None,
        recent_verdicts: int = RECENT_VERDICTS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the monitor.

        Args:
            source: Platform foreground/device signal source
            engine: Decision engine
            history: Usage-history store finished sessions are written to
            tracker: Session tracker (built from config when omitted)
            cues: Behavioral cue tracker (the engine's, or a new one shared with it)
            monitored_apps: Apps to track (defaults to MONITORED_APPS)
            config: Configuration (defaults to the global config)
            intervention_callback: Called with (verdict, session) when an
                intervention is approved; sync or async
            recent_verdicts: How many recent verdicts to keep for diagnostics
            clock: Time source
        """
        self.config = config or get_config()
        self.source = source
        self.engine = engine
        self.history = history
        self.clock = clock
        self.intervention_callback = intervention_callback

        apps = monitored_apps if monitored_apps is not None else self.config.MONITORED_APPS
        self.monitored_apps = set(apps)

        self.tracker = tracker or SessionTracker(
            config=self.config,
            monitored_apps=self.monitored_apps,
            threshold_multiplier=engine.threshold_multiplier,
            clock=clock,
        )
        # Cues observed here must be the ones the engine's context reads
        builder = engine.context_builder
        self.cues = cues or builder.cues or BehavioralCueTracker(config=self.config, clock=clock)
        if builder.cues is None:
            builder.cues = self.cues

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._tick_count = 0
        self._last_poll: datetime | None = None
        self._last_target_seen: datetime | None = None
        self._screen_on = True
        self._power_save = False
        self.mode = PollingMode.IDLE
        self.verdicts: deque[Verdict] = deque(maxlen=recent_verdicts)
        self._evaluated = 0
        self._allowed = 0

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            return

        self._running = True
        self._tick_count = 0
        self._last_poll = self.clock()
        await self.engine.start()
        self._task = asyncio.create_task(self._tick_loop())
        logger.info(f"Usage monitor started for {len(self.monitored_apps)} apps")

    async def stop(self) -> None:
        """Stop the loop, close the open session and flush decision logs."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        event = self.tracker.force_end(InterruptionReason.SHUTDOWN)
        if event is not None:
            await self._handle_session_events([event])

        dropped = await self.engine.shutdown(flush=True)
        logger.info(f"Usage monitor stopped after {self._tick_count} ticks (dropped logs: {dropped})")

    async def _tick_loop(self) -> None:
        """Main polling loop."""
        while self._running:
            try:
                await asyncio.sleep(self.current_interval())
                if not self._running:
                    break
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # Log error but keep running
                logger.error(f"Monitor tick {self._tick_count} failed: {e}")

    # ─────────────────────────────────────────────────────────────────────
    # Tick
    # ─────────────────────────────────────────────────────────────────────

    async def tick(self) -> list[SessionEvent]:
        """Execute a single polling tick.

        Returns:
            Session events produced during the tick
        """
        self._tick_count += 1
        tick_start = time.monotonic()
        now = self.clock()
        since = self._last_poll or now - timedelta(seconds=self.config.POLL_INTERVAL_IDLE)
        produced: list[SessionEvent] = []

        # 1. Device events since the previous tick
        for event in sorted(await self._fetch_events(since), key=lambda e: e.timestamp):
            produced.extend(self._apply_device_event(event))

        # 2. Confirm the open session
        current = self.tracker.get_current_session()
        if current is not None and self._screen_on:
            if await self._in_foreground(current.target_app):
                produced.extend(self.tracker.on_foreground_signal(current.target_app, now))
            else:
                produced.extend(self.tracker.on_foreground_lost(now))

        # 3. Grace window
        produced.extend(self.tracker.check_timeout(now))

        await self._handle_session_events(produced)

        if self.tracker.get_current_session() is not None:
            self._last_target_seen = now

        self._power_save = await self._check_power_save()
        self._last_poll = now
        self._update_mode(now)

        tick_duration = time.monotonic() - tick_start
        if tick_duration > 1.0:
            logger.warning(f"Slow monitor tick: {int(tick_duration * 1000)}ms")

        return produced

    def _apply_device_event(self, event: DeviceEvent) -> list[SessionEvent]:
        if event.kind == DeviceEventKind.SCREEN_OFF:
            self._screen_on = False
            self.cues.record_screen_off(event.timestamp)
            return self.tracker.on_screen_off(event.timestamp)

        if event.kind == DeviceEventKind.SCREEN_ON:
            self._screen_on = True
            self.cues.record_screen_on(event.timestamp)
            return []

        if event.kind == DeviceEventKind.UNLOCK:
            self._screen_on = True
            self.cues.record_unlock(event.timestamp)
            return []

        if event.kind == DeviceEventKind.FOREGROUND and event.app:
            self.cues.record_foreground(event.app, event.timestamp)
            return self.tracker.on_foreground_signal(event.app, event.timestamp)

        return []

    async def _handle_session_events(self, events: list[SessionEvent]) -> None:
        for event in events:
            session = event.session
            if event.kind == SessionEventKind.STARTED:
                self.cues.record_session_start(session.target_app, event.timestamp)
                self._last_target_seen = event.timestamp

            elif event.kind == SessionEventKind.ENDED:
                self.cues.record_session_end(session.target_app, event.timestamp)
                if event.recorded:
                    await self._persist(session)

            elif event.kind == SessionEventKind.THRESHOLD_REACHED:
                await self._evaluate(session)

    async def _evaluate(self, session: Session) -> None:
        verdict = await self.engine.evaluate(
            session.target_app,
            session.duration,
            InterventionType.SUSTAINED_USE,
            session=session,
        )
        self.verdicts.append(verdict)
        self._evaluated += 1
        if verdict.allowed:
            self._allowed += 1

        if verdict.allowed and self.intervention_callback:
            try:
                await self._call_callback(verdict, session)
            except Exception as e:
                logger.error(f"Intervention callback failed: {e}")

    async def _call_callback(self, verdict: Verdict, session: Session) -> None:
        """Call the intervention callback, handling sync and async."""
        if asyncio.iscoroutinefunction(self.intervention_callback):
            await self.intervention_callback(verdict, session)
        else:
            self.intervention_callback(verdict, session)

    async def _persist(self, session: Session) -> None:
        record = UsageRecord(
            target_app=session.target_app,
            start_time=session.start_time,
            end_time=session.ended_at or session.last_active,
        )
        try:
            await self.history.add_session(record)
        except Exception as e:
            logger.warning(f"Could not persist session {session.session_id}: {e}")

    # ─────────────────────────────────────────────────────────────────────
    # Signal access (unavailable signals mean "no change")
    # ─────────────────────────────────────────────────────────────────────

    async def _fetch_events(self, since: datetime) -> list[DeviceEvent]:
        try:
            return list(await self.source.events_since(since) or [])
        except Exception as e:
            logger.debug(f"Usage events unavailable: {e}")
            return []

    async def _in_foreground(self, app: str) -> bool:
        try:
            return bool(await self.source.is_in_foreground(app))
        except Exception as e:
            logger.debug(f"Foreground check unavailable for {app}: {e}")
            return False

    async def _check_power_save(self) -> bool:
        try:
            return bool(await self.source.is_power_save())
        except Exception as e:
            logger.debug(f"Power-save state unavailable: {e}")
            return self._power_save

    # ─────────────────────────────────────────────────────────────────────
    # Polling cadence
    # ─────────────────────────────────────────────────────────────────────

    def _update_mode(self, now: datetime) -> None:
        seconds_since = (
            (now - self._last_target_seen).total_seconds()
            if self._last_target_seen is not None
            else None
        )
        mode = select_polling_mode(
            self._power_save, self._screen_on, seconds_since, self.config.IDLE_AFTER_SECONDS
        )
        if mode != self.mode:
            logger.debug(f"Polling mode {self.mode.value} -> {mode.value}")
            self.mode = mode

    def current_interval(self) -> float:
        """Seconds until the next tick."""
        return {
            PollingMode.ACTIVE: self.config.POLL_INTERVAL_ACTIVE,
            PollingMode.IDLE: self.config.POLL_INTERVAL_IDLE,
            PollingMode.SCREEN_OFF: self.config.POLL_INTERVAL_SCREEN_OFF,
            PollingMode.POWER_SAVE: self.config.POLL_INTERVAL_POWER_SAVE,
        }[self.mode]

    @property
    def is_running(self) -> bool:
        """Check if the monitor is running."""
        return self._running and self._task is not None

    def get_status(self) -> dict:
        """Get monitor status for diagnostics."""
        return {
            "running": self.is_running,
            "tick_count": self._tick_count,
            "mode": self.mode.value,
            "interval": self.current_interval(),
            "screen_on": self._screen_on,
            "power_save": self._power_save,
            "session": self.tracker.get_stats(),
            "evaluated": self._evaluated,
            "allowed": self._allowed,
            "last_verdict": self.verdicts[-1].reason if self.verdicts else None,
        }
