"""
Base Rate Limiter

Hard floors and ceilings every intervention must clear, checked in order:
1. session-duration floor
2. global cooldown (scaled by the persisted multiplier)
3. type-specific cooldown
4. hourly cap (trailing hour)
5. daily cap (calendar day)

Owns the only mutable shared state in the engine. Every read-modify-write
of the counter store happens under one lock, so feedback arriving on
another thread cannot lose an update made by the polling loop.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from interlude.config import Config, get_config
from interlude.contracts.assessments import RateLimitState
from interlude.contracts.history import Feedback, InterventionType
from interlude.contracts.ports import CounterStore

logger = logging.getLogger(__name__)

# Persisted keys
KEY_LAST_INTERVENTION = "last_intervention_at"
KEY_LAST_BY_TYPE = "last_intervention_by_type"
KEY_RECENT = "recent_interventions"
KEY_MULTIPLIER = "cooldown_multiplier"

MIN_MULTIPLIER = 0.5
MAX_MULTIPLIER = 3.0
ESCALATION_FACTOR = 1.5
HELPFUL_FACTOR = 0.9
DISRUPTIVE_FACTOR = 1.2


@dataclass
class RateLimitResult:
    """Outcome of can_show()."""

    allowed: bool
    reason: str
    cooldown_remaining: timedelta = timedelta(0)
    applied_multiplier: float = 1.0

    @property
    def cooldown_remaining_ms(self) -> int:
        return max(0, int(self.cooldown_remaining.total_seconds() * 1000))


def clamp_multiplier(value: float) -> float:
    return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, value))


class RateLimiter:
    """Layered cooldowns and caps backed by a counter store."""

    def __init__(
        self,
        counters: CounterStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the limiter.

        Args:
            counters: Persistent counter store
            config: Configuration (defaults to the global config)
            clock: Time source
        """
        self.counters = counters
        self.config = config or get_config()
        self.clock = clock

        self._lock = threading.RLock()
        self._state = RateLimitState()
        # Set while the store is behind the in-memory state
        self._dirty = False

        self.total_recorded = 0
        self.total_blocked = 0

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────

    def _load(self) -> RateLimitState:
        """Read state from the store, falling back to the last known state.

        After a failed write the in-memory state is newer than the store, so
        it is used as-is until a later write succeeds.
        """
        if self._dirty:
            return self._state
        try:
            last = self.counters.get(KEY_LAST_INTERVENTION)
            by_type = self.counters.get(KEY_LAST_BY_TYPE) or {}
            recent = self.counters.get(KEY_RECENT) or []
            multiplier = self.counters.get(KEY_MULTIPLIER, 1.0)

            self._state = RateLimitState(
                last_intervention_at=datetime.fromisoformat(last) if last else None,
                last_by_type={k: datetime.fromisoformat(v) for k, v in by_type.items()},
                recent_interventions=[datetime.fromisoformat(t) for t in recent],
                cooldown_multiplier=clamp_multiplier(float(multiplier)),
            )
        except Exception as e:
            logger.warning(f"Counter store read failed, using in-memory state: {e}")
        return self._state

    def _save(self, state: RateLimitState) -> None:
        """Write state to the store; the in-memory copy is updated regardless."""
        self._state = state
        try:
            self.counters.set_many({
                KEY_LAST_INTERVENTION: (
                    state.last_intervention_at.isoformat()
                    if state.last_intervention_at else None
                ),
                KEY_LAST_BY_TYPE: {k: v.isoformat() for k, v in state.last_by_type.items()},
                KEY_RECENT: [t.isoformat() for t in state.recent_interventions],
                KEY_MULTIPLIER: state.cooldown_multiplier,
            })
            if self._dirty:
                logger.info("Counter store writable again, in-memory state saved")
            self._dirty = False
        except Exception as e:
            self._dirty = True
            logger.warning(f"Counter store write failed, keeping in-memory state: {e}")

    def state(self) -> RateLimitState:
        """Current persisted state (copy)."""
        with self._lock:
            return self._load().model_copy(deep=True)

    # ─────────────────────────────────────────────────────────────────────
    # Gates
    # ─────────────────────────────────────────────────────────────────────

    def can_show(
        self,
        intervention_type: InterventionType,
        session_duration: timedelta,
        extra_multiplier: float = 1.0,
    ) -> RateLimitResult:
        """Check every gate; the first failure short-circuits.

        Args:
            intervention_type: Kind of intervention being considered
            session_duration: How long the current session has run
            extra_multiplier: Additional cooldown factor (burden)

        Returns:
            RateLimitResult with the reason and time until the gate opens
        """
        now = self.clock()
        with self._lock:
            state = self._load()
        multiplier = min(
            state.cooldown_multiplier * max(extra_multiplier, 0.0),
            self.config.MAX_COMBINED_COOLDOWN_MULTIPLIER,
        )

        result = self._check(state, intervention_type, session_duration, multiplier, now)
        if not result.allowed:
            self.total_blocked += 1
            logger.debug(f"Rate limit: {result.reason}")
        return result

    def _check(
        self,
        state: RateLimitState,
        intervention_type: InterventionType,
        session_duration: timedelta,
        multiplier: float,
        now: datetime,
    ) -> RateLimitResult:
        floor = timedelta(seconds=self.config.MIN_SESSION_FOR_INTERVENTION_SECONDS)
        if session_duration < floor:
            return RateLimitResult(
                False,
                f"Session too short ({int(session_duration.total_seconds())}s < "
                f"{int(floor.total_seconds())}s)",
                floor - session_duration,
                multiplier,
            )

        if state.last_intervention_at is not None:
            cooldown = timedelta(minutes=self.config.GLOBAL_COOLDOWN_MINUTES) * multiplier
            elapsed = now - state.last_intervention_at
            if elapsed < cooldown:
                return RateLimitResult(
                    False,
                    f"Global cooldown ({_minutes(cooldown - elapsed)} min remaining, "
                    f"multiplier {multiplier:.2f}x)",
                    cooldown - elapsed,
                    multiplier,
                )

        last_of_type = state.last_by_type.get(intervention_type.value)
        if last_of_type is not None:
            cooldown = timedelta(
                minutes=self.config.type_cooldown_minutes(intervention_type.value)
            )
            elapsed = now - last_of_type
            if elapsed < cooldown:
                return RateLimitResult(
                    False,
                    f"{intervention_type.value} cooldown "
                    f"({_minutes(cooldown - elapsed)} min remaining)",
                    cooldown - elapsed,
                    multiplier,
                )

        hour_ago = now - timedelta(hours=1)
        in_last_hour = sorted(t for t in state.recent_interventions if t > hour_ago)
        if len(in_last_hour) >= self.config.MAX_INTERVENTIONS_PER_HOUR:
            # Opens when the oldest one in the window ages out
            remaining = in_last_hour[0] + timedelta(hours=1) - now
            return RateLimitResult(
                False,
                f"Hourly limit reached ({len(in_last_hour)}/"
                f"{self.config.MAX_INTERVENTIONS_PER_HOUR})",
                remaining,
                multiplier,
            )

        today = [t for t in state.recent_interventions if t.date() == now.date()]
        if len(today) >= self.config.MAX_INTERVENTIONS_PER_DAY:
            next_midnight = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
            return RateLimitResult(
                False,
                f"Daily limit reached ({len(today)}/{self.config.MAX_INTERVENTIONS_PER_DAY})",
                next_midnight - now,
                multiplier,
            )

        return RateLimitResult(True, "Rate limits passed", timedelta(0), multiplier)

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    def record(self, intervention_type: InterventionType) -> None:
        """Record a shown intervention: timestamps and rolling counts."""
        now = self.clock()
        with self._lock:
            state = self._load()
            keep_after = min(
                now - timedelta(hours=1),
                datetime.combine(now.date(), datetime.min.time()),
            )
            recent = [t for t in state.recent_interventions if t >= keep_after]
            recent.append(now)

            self._save(state.model_copy(update={
                "last_intervention_at": now,
                "last_by_type": {**state.last_by_type, intervention_type.value: now},
                "recent_interventions": recent,
            }))
            self.total_recorded += 1

        logger.info(f"Recorded {intervention_type.value} intervention at {now.isoformat()}")

    def _update_multiplier(self, fn: Callable[[float], float], label: str) -> float:
        with self._lock:
            state = self._load()
            new_value = clamp_multiplier(fn(state.cooldown_multiplier))
            self._save(state.model_copy(update={"cooldown_multiplier": new_value}))
        logger.info(f"Cooldown multiplier {label}: {state.cooldown_multiplier:.2f} -> {new_value:.2f}")
        return new_value

    def escalate(self) -> float:
        """Grow the multiplier after repeated negative dismissals (capped at 3.0)."""
        return self._update_multiplier(lambda m: m * ESCALATION_FACTOR, "escalated")

    def reset(self) -> float:
        """Snap the multiplier back to 1.0 after positive engagement."""
        return self._update_multiplier(lambda m: 1.0, "reset")

    def adjust_for_feedback(self, feedback: Feedback) -> float:
        """Nudge the multiplier by a small step for explicit feedback."""
        if feedback == Feedback.HELPFUL:
            return self._update_multiplier(lambda m: m * HELPFUL_FACTOR, "eased (helpful)")
        if feedback == Feedback.DISRUPTIVE:
            return self._update_multiplier(lambda m: m * DISRUPTIVE_FACTOR, "raised (disruptive)")
        return self.cooldown_multiplier

    @property
    def cooldown_multiplier(self) -> float:
        with self._lock:
            return self._load().cooldown_multiplier

    def get_stats(self) -> dict:
        now = self.clock()
        state = self.state()
        return {
            "cooldown_multiplier": state.cooldown_multiplier,
            "last_intervention_at": (
                state.last_intervention_at.isoformat() if state.last_intervention_at else None
            ),
            "last_by_type": {k: v.isoformat() for k, v in state.last_by_type.items()},
            "last_hour": sum(1 for t in state.recent_interventions if t > now - timedelta(hours=1)),
            "today": sum(1 for t in state.recent_interventions if t.date() == now.date()),
            "total_recorded": self.total_recorded,
            "total_blocked": self.total_blocked,
        }


def _minutes(delta: timedelta) -> str:
    return f"{delta.total_seconds() / 60:.1f}"
