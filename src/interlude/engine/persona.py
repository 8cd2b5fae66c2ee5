"""
Persona Classifier

Derives a coarse behavioral persona from aggregate usage statistics and
binds it to a frequency policy. Results are cached for PERSONA_CACHE_HOURS.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

import numpy as np

from interlude.config import Config, get_config
from interlude.contracts.assessments import (
    ConfidenceLevel,
    FrequencyPolicy,
    Persona,
    PersonaAnalytics,
    PersonaAssessment,
    UsageTrend,
)
from interlude.contracts.history import UsageRecord
from interlude.contracts.ports import CounterStore, UsageHistoryStore
from interlude.engine.context_builder import ensure_install_date

logger = logging.getLogger(__name__)


# Persona -> policy binding
PERSONA_POLICY: dict[Persona, FrequencyPolicy] = {
    Persona.PROBLEMATIC_PATTERN: FrequencyPolicy.MINIMAL,
    Persona.HEAVY_COMPULSIVE: FrequencyPolicy.CONSERVATIVE,
    Persona.MODERATE_BALANCED: FrequencyPolicy.BALANCED,
    Persona.HEAVY_BINGE: FrequencyPolicy.MODERATE,
    Persona.CASUAL: FrequencyPolicy.ADAPTIVE,
    Persona.NEW_USER: FrequencyPolicy.ONBOARDING,
}

# Base multiplier applied to the persona cooldown when the policy blocks
PERSONA_COOLDOWN_MULTIPLIER: dict[Persona, float] = {
    Persona.PROBLEMATIC_PATTERN: 2.0,
    Persona.HEAVY_COMPULSIVE: 1.5,
    Persona.MODERATE_BALANCED: 1.0,
    Persona.HEAVY_BINGE: 1.0,
    Persona.CASUAL: 0.7,
    Persona.NEW_USER: 0.5,
}

# Analysis window bounds (days)
MIN_ANALYSIS_DAYS = 3
MAX_ANALYSIS_DAYS = 14


def usage_trend(daily_counts: Sequence[float]) -> UsageTrend:
    """Classify the direction of daily session counts (oldest first).

    Uses the least-squares slope in sessions/day per day.
    """
    if len(daily_counts) < 3 or sum(daily_counts) < 3:
        return UsageTrend.STABLE

    y = np.asarray(daily_counts, dtype=float)
    slope = float(np.polyfit(np.arange(len(y)), y, 1)[0])
    mean = float(y.mean())

    if slope > 0.5 and mean > 10:
        return UsageTrend.ESCALATING
    if slope > 0.2:
        return UsageTrend.INCREASING
    if slope < -0.5:
        return UsageTrend.DECLINING
    if slope < -0.2:
        return UsageTrend.DECREASING
    return UsageTrend.STABLE


def quick_reopen_rate(records: Sequence[UsageRecord], quick_reopen_seconds: float) -> float:
    """Fraction of sessions that began shortly after the same app closed."""
    if not records:
        return 0.0

    last_end: dict[str, datetime] = {}
    quick = 0
    for record in sorted(records, key=lambda r: r.start_time):
        previous = last_end.get(record.target_app)
        if previous is not None:
            gap = (record.start_time - previous).total_seconds()
            if 0 <= gap < quick_reopen_seconds:
                quick += 1
        last_end[record.target_app] = record.end_time
    return quick / len(records)


def compute_analytics(
    records: Sequence[UsageRecord],
    days_since_install: int,
    analysis_days: int,
    now: datetime,
    quick_reopen_seconds: float = 120.0,
) -> PersonaAnalytics:
    """Aggregate statistics over an analysis window ending at now."""
    today = now.date()
    daily_counts = [0.0] * analysis_days
    daily_minutes = [0.0] * analysis_days
    for record in records:
        offset = (today - record.start_time.date()).days
        if 0 <= offset < analysis_days:
            index = analysis_days - 1 - offset
            daily_counts[index] += 1
            daily_minutes[index] += record.duration_minutes

    total = len(records)
    total_minutes = sum(r.duration_minutes for r in records)

    return PersonaAnalytics(
        days_since_install=days_since_install,
        analysis_days=analysis_days,
        total_sessions=total,
        avg_daily_sessions=total / analysis_days if analysis_days else 0.0,
        avg_session_minutes=total_minutes / total if total else 0.0,
        avg_daily_minutes=total_minutes / analysis_days if analysis_days else 0.0,
        daily_minutes_stddev=float(np.std(daily_minutes)) if daily_minutes else 0.0,
        quick_reopen_rate=quick_reopen_rate(records, quick_reopen_seconds),
        usage_trend=usage_trend(daily_counts),
    )


def classify(analytics: PersonaAnalytics, new_user_days: int = 14) -> Persona:
    """Map usage statistics to a persona. Rules are checked in order."""
    a = analytics

    if a.days_since_install < new_user_days:
        return Persona.NEW_USER

    if a.usage_trend == UsageTrend.ESCALATING and a.quick_reopen_rate > 0.40:
        return Persona.PROBLEMATIC_PATTERN

    if a.avg_daily_sessions >= 15 and a.quick_reopen_rate >= 0.35 and a.avg_session_minutes < 5:
        return Persona.HEAVY_COMPULSIVE

    if a.avg_daily_sessions >= 6 and a.avg_session_minutes >= 20:
        return Persona.HEAVY_BINGE

    # Few but very long, irregular days
    if a.avg_session_minutes >= 30 and a.usage_variation >= 0.75:
        return Persona.HEAVY_BINGE

    if 8 <= a.avg_daily_sessions <= 13:
        return Persona.MODERATE_BALANCED

    if a.avg_daily_sessions < 8:
        return Persona.CASUAL

    return Persona.MODERATE_BALANCED


def confidence_for(analytics: PersonaAnalytics) -> ConfidenceLevel:
    """Confidence grows with tenure and sample size."""
    if analytics.days_since_install < 7 or analytics.total_sessions < 10:
        return ConfidenceLevel.LOW
    if analytics.days_since_install < 14:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH


class PersonaClassifier:
    """Detects and caches the user's behavioral persona."""

    def __init__(
        self,
        history: UsageHistoryStore,
        counters: CounterStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.history = history
        self.counters = counters
        self.config = config or get_config()
        self.clock = clock

        self._cached: PersonaAssessment | None = None
        self._cached_at: datetime | None = None

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.config.PERSONA_CACHE_HOURS)

    def invalidate(self) -> None:
        """Drop the cached assessment."""
        self._cached = None
        self._cached_at = None

    async def detect(self, force_refresh: bool = False) -> PersonaAssessment:
        """Classify the user, reusing the cached result while it is valid.

        Args:
            force_refresh: Bypass the cache

        Returns:
            Persona assessment (never raises)
        """
        now = self.clock()
        if (
            not force_refresh
            and self._cached is not None
            and self._cached_at is not None
            and now - self._cached_at < self.cache_ttl
        ):
            return self._cached

        try:
            analytics = await self.analytics(now)
        except Exception as e:
            if self._cached is not None:
                logger.warning(f"Persona refresh failed, keeping cached persona: {e}")
                return self._cached
            logger.warning(f"Persona detection failed, assuming new user: {e}")
            return PersonaAssessment(
                persona=Persona.NEW_USER,
                policy=PERSONA_POLICY[Persona.NEW_USER],
                confidence=ConfidenceLevel.LOW,
                detected_at=now,
            )

        persona = classify(analytics, self.config.NEW_USER_DAYS)
        assessment = PersonaAssessment(
            persona=persona,
            policy=PERSONA_POLICY[persona],
            confidence=confidence_for(analytics),
            analytics=analytics,
            detected_at=now,
        )

        if self._cached is None or self._cached.persona != persona:
            logger.info(
                f"Persona: {persona.value} (policy={assessment.policy.value}, "
                f"confidence={assessment.confidence.value}, "
                f"{analytics.avg_daily_sessions:.1f} sessions/day)"
            )

        self._cached = assessment
        self._cached_at = now
        return assessment

    async def analytics(self, now: datetime | None = None) -> PersonaAnalytics:
        """Compute the usage statistics the persona is derived from."""
        now = now or self.clock()
        install_date = ensure_install_date(self.counters, now)
        days_since_install = max(0, (now.date() - install_date.date()).days)

        analysis_days = min(MAX_ANALYSIS_DAYS, max(MIN_ANALYSIS_DAYS, days_since_install))
        start = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(
            days=analysis_days - 1
        )
        records = await self.history.sessions_between(start, now)

        return compute_analytics(
            records,
            days_since_install,
            analysis_days,
            now,
            self.config.QUICK_REOPEN_SECONDS,
        )
