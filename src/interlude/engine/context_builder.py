"""
Context Builder

Aggregates the open session, usage history, goal configuration, install
date, behavioral cues and past intervention outcomes into one immutable
InterventionContext.

Independent lookups run concurrently. A failing lookup never fails the
build: its fields fall back to documented defaults and the source is named
in degraded_sources.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from interlude.config import Config, get_config
from interlude.contracts.context import BehavioralCues, InterventionContext
from interlude.contracts.history import GoalConfig, InterventionOutcome, UsageRecord, UserChoice
from interlude.contracts.ports import CounterStore, GoalStore, OutcomeStore, UsageHistoryStore
from interlude.contracts.session import Session
from interlude.tracking.cues import BehavioralCueTracker

logger = logging.getLogger(__name__)

INSTALL_DATE_KEY = "install_date"

# Outcome history used for the learned success signal
HISTORY_LIMIT = 50
SIMILAR_HOUR_SPAN = 2
MIN_SIMILAR_OUTCOMES = 5


def midnight(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def ensure_install_date(counters: CounterStore, now: datetime) -> datetime:
    """Read the install date, recording now on first use."""
    raw = counters.get(INSTALL_DATE_KEY)
    if raw:
        return datetime.fromisoformat(raw)
    counters.set(INSTALL_DATE_KEY, now.isoformat())
    logger.info(f"Recorded install date {now.date().isoformat()}")
    return now


def historical_success(
    outcomes: list[InterventionOutcome], hour: int
) -> tuple[float | None, int]:
    """Go-back rate of past outcomes, preferring ones near the current hour.

    Returns:
        (rate or None when there is no history, sample size used)
    """
    if not outcomes:
        return None, 0

    similar = [
        o for o in outcomes
        if min(abs(o.hour_of_day - hour), 24 - abs(o.hour_of_day - hour)) <= SIMILAR_HOUR_SPAN
    ]
    relevant = similar if len(similar) >= MIN_SIMILAR_OUTCOMES else outcomes
    went_back = sum(1 for o in relevant if o.user_choice == UserChoice.GO_BACK)
    return went_back / len(relevant), len(relevant)


class ContextBuilder:
    """Builds InterventionContext snapshots for the decision engine."""

    def __init__(
        self,
        history: UsageHistoryStore,
        goals: GoalStore,
        counters: CounterStore,
        outcomes: OutcomeStore | None = None,
        cues: BehavioralCueTracker | None = None,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the builder.

        Args:
            history: Usage-history store
            goals: Goal/streak store
            counters: Counter store (install date)
            outcomes: Past intervention outcomes (optional)
            cues: Short-history cue tracker (optional)
            config: Configuration (defaults to the global config)
            clock: Time source
        """
        self.history = history
        self.goals = goals
        self.counters = counters
        self.outcomes = outcomes
        self.cues = cues
        self.config = config or get_config()
        self.clock = clock

    async def _lookup(
        self,
        name: str,
        call: Callable[[], Awaitable[Any]],
        default: Any,
        degraded: list[str],
    ) -> Any:
        """Await one lookup, substituting the default on failure."""
        try:
            return await call()
        except Exception as e:
            logger.warning(f"Context lookup '{name}' failed, using defaults: {e}")
            degraded.append(name)
            return default

    async def build(self, session: Session) -> InterventionContext:
        """Build a fresh context for the given session.

        Args:
            session: The session being evaluated (open or synthesized)

        Returns:
            Immutable context snapshot
        """
        started = time.monotonic()
        now = self.clock()
        app = session.target_app
        today = midnight(now)
        yesterday = today - timedelta(days=1)
        week_start = today - timedelta(days=7)
        degraded: list[str] = []

        async def _recent_outcomes() -> list[InterventionOutcome]:
            if self.outcomes is None:
                return []
            return await self.outcomes.recent_for_app(app, HISTORY_LIMIT)

        today_sessions, yesterday_sessions, week_sessions, goal, outcomes = await asyncio.gather(
            self._lookup("today", lambda: self.history.sessions_for_app(app, today, now), None, degraded),
            self._lookup("yesterday", lambda: self.history.sessions_for_app(app, yesterday, today), None, degraded),
            self._lookup("week", lambda: self.history.sessions_for_app(app, week_start, today), None, degraded),
            self._lookup("goal", lambda: self.goals.goal_for(app), None, degraded),
            self._lookup("outcomes", _recent_outcomes, None, degraded),
        )

        try:
            install_date = ensure_install_date(self.counters, now)
        except Exception as e:
            logger.warning(f"Install date unavailable, assuming today: {e}")
            degraded.append("install_date")
            install_date = now
        days_since_install = max(0, (now.date() - install_date.date()).days)

        cues = self.cues.snapshot(app, now) if self.cues is not None else BehavioralCues()

        current_minutes = session.duration.total_seconds() / 60
        fields: dict[str, Any] = {}
        fields.update(self._today_fields(session, today_sessions, current_minutes))
        if yesterday_sessions is not None:
            fields["total_usage_yesterday_minutes"] = sum(r.duration_minutes for r in yesterday_sessions)
        if week_sessions is not None:
            fields.update(self._week_fields(week_sessions))
        fields.update(self._goal_fields(goal, fields.get("total_usage_today_minutes", current_minutes)))

        rate, sample = historical_success(outcomes or [], now.hour)

        context = InterventionContext(
            target_app=app,
            timestamp=now,
            hour_of_day=now.hour,
            day_of_week=now.weekday(),
            is_weekend=now.weekday() >= 5,
            current_session_minutes=current_minutes,
            days_since_install=days_since_install,
            rapid_app_switching=cues.rapid_app_switching,
            compulsive_reopen=cues.compulsive_reopen,
            unusual_hour=self.config.is_night(now.hour),
            long_screen_on=cues.long_screen_on,
            excessive_unlocks=cues.excessive_unlocks,
            unlocks_last_hour=cues.unlocks_last_hour,
            screen_on_minutes=cues.screen_on_minutes,
            historical_success_rate=rate,
            historical_sample_size=sample,
            degraded_sources=tuple(degraded),
            **fields,
        )

        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > self.config.CONTEXT_BUDGET_MS:
            logger.warning(
                f"Context build for {app} took {elapsed_ms:.0f}ms "
                f"(budget {self.config.CONTEXT_BUDGET_MS}ms)"
            )
        else:
            logger.debug(f"Context built for {app} in {elapsed_ms:.1f}ms")

        return context

    def _today_fields(
        self,
        session: Session,
        today_sessions: list[UsageRecord] | None,
        current_minutes: float,
    ) -> dict[str, Any]:
        if today_sessions is None:
            return {"total_usage_today_minutes": current_minutes}

        # Persisted sessions that finished before the current one began
        earlier = [r for r in today_sessions if r.end_time <= session.start_time]
        fields: dict[str, Any] = {
            "session_count_today": len(earlier) + 1,
            "total_usage_today_minutes": sum(r.duration_minutes for r in earlier) + current_minutes,
        }
        if earlier:
            last_end = max(r.end_time for r in earlier)
            gap_minutes = (session.start_time - last_end).total_seconds() / 60
            fields["minutes_since_last_session"] = gap_minutes
            fields["quick_reopen"] = gap_minutes * 60 < self.config.QUICK_REOPEN_SECONDS
        return fields

    @staticmethod
    def _week_fields(week_sessions: list[UsageRecord]) -> dict[str, Any]:
        total = sum(r.duration_minutes for r in week_sessions)
        fields: dict[str, Any] = {"weekly_average_minutes": total / 7}
        if week_sessions:
            fields["baseline_session_minutes"] = total / len(week_sessions)
        return fields

    @staticmethod
    def _goal_fields(goal: GoalConfig | None, usage_today: float) -> dict[str, Any]:
        if goal is None:
            return {}
        limit = goal.daily_limit_minutes
        return {
            "goal_minutes": limit,
            "is_over_goal": limit is not None and usage_today >= limit,
            "streak_days": goal.current_streak,
        }
