"""
Burden Tracker

Computes a recent-fatigue signal from intervention outcomes and turns it
into a cooldown multiplier. Independent of persona: the engine layers the
two multipliers.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Sequence

import numpy as np

from interlude.config import Config, get_config
from interlude.contracts.assessments import BurdenLevel, BurdenMetrics, Trend
from interlude.contracts.history import Feedback, InterventionOutcome, UserChoice
from interlude.contracts.ports import OutcomeStore

logger = logging.getLogger(__name__)

BURDEN_MULTIPLIERS: dict[BurdenLevel, float] = {
    BurdenLevel.LOW: 1.0,
    BurdenLevel.MODERATE: 1.5,
    BurdenLevel.HIGH: 2.5,
    BurdenLevel.CRITICAL: 4.0,
}

# Trend detection
ENGAGEMENT_TREND_MIN = 20
ENGAGEMENT_TREND_DELTA = 0.10
EFFECTIVENESS_TREND_MIN = 10
EFFECTIVENESS_TREND_WINDOW = 30
EFFECTIVENESS_TREND_SLOPE = 0.02


def engagement_trend(outcomes: Sequence[InterventionOutcome]) -> Trend:
    """Compare engagement of the older and newer halves (oldest first)."""
    if len(outcomes) < ENGAGEMENT_TREND_MIN:
        return Trend.STABLE

    half = len(outcomes) // 2
    older, newer = outcomes[:half], outcomes[half:]
    older_rate = sum(o.engaged for o in older) / len(older)
    newer_rate = sum(o.engaged for o in newer) / len(newer)
    delta = newer_rate - older_rate

    if delta > ENGAGEMENT_TREND_DELTA:
        return Trend.IMPROVING
    if delta < -ENGAGEMENT_TREND_DELTA:
        return Trend.DECLINING
    return Trend.STABLE


def effectiveness_trend(outcomes: Sequence[InterventionOutcome]) -> Trend:
    """Slope of go-back success over the most recent outcomes (oldest first)."""
    window = list(outcomes)[-EFFECTIVENESS_TREND_WINDOW:]
    if len(window) < EFFECTIVENESS_TREND_MIN:
        return Trend.STABLE

    y = np.array([1.0 if o.user_choice == UserChoice.GO_BACK else 0.0 for o in window])
    slope = float(np.polyfit(np.arange(len(y)), y, 1)[0])

    if slope > EFFECTIVENESS_TREND_SLOPE:
        return Trend.IMPROVING
    if slope < -EFFECTIVENESS_TREND_SLOPE:
        return Trend.DECLINING
    return Trend.STABLE


def burden_score(m: BurdenMetrics) -> int:
    """Points for every fatigue marker present."""
    score = 0
    if m.dismiss_rate > 0.4:
        score += 3
    if m.timeout_rate > 0.3:
        score += 3
    if m.engagement_trend == Trend.DECLINING:
        score += 4
    if m.effectiveness_trend == Trend.DECLINING:
        score += 4
    if m.shown_last_24h > 15:
        score += 2
    if m.avg_spacing_minutes is not None and m.avg_spacing_minutes < 10:
        score += 2
    if m.min_spacing_minutes is not None and m.min_spacing_minutes < 3:
        score += 3
    if m.effectiveness_7d is not None and m.effectiveness_7d < 0.35:
        score += 3
    helpfulness = m.helpfulness_ratio
    if helpfulness is not None and m.helpful_count + m.disruptive_count >= 5 and helpfulness < 0.3:
        score += 5
    if m.snooze_count > 5:
        score += 2
    return score


def burden_level(score: int) -> BurdenLevel:
    if score >= 15:
        return BurdenLevel.CRITICAL
    if score >= 10:
        return BurdenLevel.HIGH
    if score >= 5:
        return BurdenLevel.MODERATE
    return BurdenLevel.LOW


def compute_metrics(
    outcomes: Sequence[InterventionOutcome],
    now: datetime,
    min_samples: int = 10,
) -> BurdenMetrics:
    """Derive burden metrics from outcomes in the trailing window."""
    ordered = sorted(outcomes, key=lambda o: o.timestamp)
    total = len(ordered)
    if total == 0:
        return BurdenMetrics(computed_at=now)

    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)
    last_day = [o for o in ordered if o.timestamp >= day_ago]
    last_week = [o for o in ordered if o.timestamp >= week_ago]

    def rate(items: Sequence[InterventionOutcome], choice: UserChoice) -> float:
        return sum(1 for o in items if o.user_choice == choice) / len(items) if items else 0.0

    spacings = [
        (b.timestamp - a.timestamp).total_seconds() / 60
        for a, b in zip(last_day, last_day[1:])
    ]
    responses = [o.response_time.total_seconds() for o in ordered if o.response_time is not None]

    metrics = BurdenMetrics(
        sample_size=total,
        shown_last_24h=len(last_day),
        shown_last_7d=len(last_week),
        dismiss_rate=rate(ordered, UserChoice.DISMISS),
        timeout_rate=rate(ordered, UserChoice.TIMEOUT),
        go_back_rate=rate(ordered, UserChoice.GO_BACK),
        effectiveness_7d=rate(last_week, UserChoice.GO_BACK) if last_week else None,
        snooze_count=sum(1 for o in ordered if o.user_choice == UserChoice.SNOOZE),
        helpful_count=sum(1 for o in ordered if o.feedback == Feedback.HELPFUL),
        disruptive_count=sum(1 for o in ordered if o.feedback == Feedback.DISRUPTIVE),
        avg_spacing_minutes=sum(spacings) / len(spacings) if spacings else None,
        min_spacing_minutes=min(spacings) if spacings else None,
        avg_response_seconds=sum(responses) / len(responses) if responses else None,
        engagement_trend=engagement_trend(ordered),
        effectiveness_trend=effectiveness_trend(ordered),
        is_reliable=total >= min_samples,
        computed_at=now,
    )

    score = burden_score(metrics)
    return metrics.model_copy(update={"burden_score": score, "burden_level": burden_level(score)})


def multiplier_for(metrics: BurdenMetrics) -> float:
    """Cooldown multiplier; neutral when the sample is too small."""
    if not metrics.is_reliable:
        return 1.0
    return BURDEN_MULTIPLIERS[metrics.burden_level]


class BurdenTracker:
    """Caches burden metrics computed from the outcome store."""

    def __init__(
        self,
        outcomes: OutcomeStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.outcomes = outcomes
        self.config = config or get_config()
        self.clock = clock

        self._cached: BurdenMetrics | None = None
        self._cached_at: datetime | None = None

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = None

    async def current_metrics(self, force_refresh: bool = False) -> BurdenMetrics:
        """Burden metrics for the trailing window (never raises)."""
        now = self.clock()
        ttl = timedelta(minutes=self.config.BURDEN_CACHE_MINUTES)
        if (
            not force_refresh
            and self._cached is not None
            and self._cached_at is not None
            and now - self._cached_at < ttl
        ):
            return self._cached

        try:
            window_start = now - timedelta(days=self.config.BURDEN_WINDOW_DAYS)
            outcomes = await self.outcomes.outcomes_between(window_start, now)
        except Exception as e:
            if self._cached is not None:
                logger.warning(f"Burden refresh failed, keeping cached metrics: {e}")
                return self._cached
            logger.warning(f"Burden metrics unavailable, using neutral: {e}")
            return BurdenMetrics(computed_at=now)

        metrics = compute_metrics(outcomes, now, self.config.BURDEN_MIN_SAMPLES)
        if metrics.is_reliable and metrics.burden_level != BurdenLevel.LOW:
            logger.info(
                f"Intervention burden {metrics.burden_level.value} "
                f"(score {metrics.burden_score}, {metrics.sample_size} outcomes)"
            )

        self._cached = metrics
        self._cached_at = now
        return metrics

    async def is_reliable(self) -> bool:
        return (await self.current_metrics()).is_reliable

    async def recommended_cooldown_multiplier(self) -> float:
        return multiplier_for(await self.current_metrics())

    async def get_report(self) -> dict:
        """Summary for diagnostics and the CLI."""
        m = await self.current_metrics()
        warnings = []
        if m.dismiss_rate > 0.4:
            warnings.append("Most interventions are dismissed")
        if m.min_spacing_minutes is not None and m.min_spacing_minutes < 3:
            warnings.append("Interventions shown minutes apart")
        if m.engagement_trend == Trend.DECLINING:
            warnings.append("Engagement is declining")
        if m.effectiveness_trend == Trend.DECLINING:
            warnings.append("Effectiveness is declining")
        helpfulness = m.helpfulness_ratio
        if helpfulness is not None and helpfulness < 0.3:
            warnings.append("Users rate interventions as disruptive")
        return {
            "level": m.burden_level.value,
            "score": m.burden_score,
            "reliable": m.is_reliable,
            "sample_size": m.sample_size,
            "multiplier": multiplier_for(m),
            "warnings": warnings,
        }
