"""Tests for burden tracking."""

from datetime import timedelta

import pytest

from interlude.contracts.assessments import BurdenLevel, BurdenMetrics, Trend
from interlude.contracts.history import Feedback, InterventionOutcome, UserChoice
from interlude.engine.burden import (
    BurdenTracker,
    burden_level,
    compute_metrics,
    effectiveness_trend,
    engagement_trend,
    multiplier_for,
)
from interlude.store.memory import InMemoryOutcomeStore

from conftest import APP, WEEKDAY_MORNING, FailingOutcomeStore

NOW = WEEKDAY_MORNING


def outcomes(choices, spacing_minutes=60, feedback=Feedback.NONE):
    """Outcomes ending one spacing before NOW, oldest first."""
    n = len(choices)
    return [
        InterventionOutcome(
            timestamp=NOW - timedelta(minutes=spacing_minutes * (n - i)),
            target_app=APP,
            user_choice=choice,
            feedback=feedback,
        )
        for i, choice in enumerate(choices)
    ]


class TestTrends:
    def test_engagement_declining(self):
        items = outcomes([UserChoice.GO_BACK] * 10 + [UserChoice.DISMISS] * 10)
        assert engagement_trend(items) == Trend.DECLINING

    def test_engagement_improving(self):
        items = outcomes([UserChoice.TIMEOUT] * 10 + [UserChoice.PROCEED] * 10)
        assert engagement_trend(items) == Trend.IMPROVING

    def test_engagement_needs_sample(self):
        items = outcomes([UserChoice.GO_BACK] * 5 + [UserChoice.DISMISS] * 5)
        assert engagement_trend(items) == Trend.STABLE

    def test_effectiveness_declining(self):
        items = outcomes([UserChoice.GO_BACK] * 10 + [UserChoice.PROCEED] * 10)
        assert effectiveness_trend(items) == Trend.DECLINING

    def test_effectiveness_needs_sample(self):
        items = outcomes([UserChoice.GO_BACK] * 3 + [UserChoice.PROCEED] * 3)
        assert effectiveness_trend(items) == Trend.STABLE


class TestMetrics:
    def test_empty_is_neutral(self):
        metrics = compute_metrics([], NOW)

        assert not metrics.is_reliable
        assert metrics.burden_level == BurdenLevel.LOW
        assert multiplier_for(metrics) == 1.0

    def test_healthy_history_is_low(self):
        metrics = compute_metrics(outcomes([UserChoice.GO_BACK] * 12), NOW)

        assert metrics.is_reliable
        assert metrics.burden_score == 0
        assert metrics.burden_level == BurdenLevel.LOW
        assert multiplier_for(metrics) == 1.0

    def test_dismissed_rapid_fire_is_high(self):
        metrics = compute_metrics(outcomes([UserChoice.DISMISS] * 12, spacing_minutes=1), NOW)

        # dismiss rate, mean spacing, min spacing, weekly effectiveness
        assert metrics.burden_score == 11
        assert metrics.burden_level == BurdenLevel.HIGH
        assert multiplier_for(metrics) == 2.5

    def test_disruptive_feedback_adds_points(self):
        metrics = compute_metrics(
            outcomes([UserChoice.GO_BACK] * 12, feedback=Feedback.DISRUPTIVE), NOW
        )

        assert metrics.helpfulness_ratio == 0.0
        assert metrics.burden_score == 5
        assert metrics.burden_level == BurdenLevel.MODERATE

    def test_small_sample_not_reliable(self):
        metrics = compute_metrics(outcomes([UserChoice.DISMISS] * 5, spacing_minutes=1), NOW)

        assert not metrics.is_reliable
        assert metrics.burden_score > 0
        assert multiplier_for(metrics) == 1.0

    @pytest.mark.parametrize(
        "score,level",
        [(0, BurdenLevel.LOW), (4, BurdenLevel.LOW), (5, BurdenLevel.MODERATE),
         (10, BurdenLevel.HIGH), (15, BurdenLevel.CRITICAL), (30, BurdenLevel.CRITICAL)],
    )
    def test_levels(self, score, level):
        assert burden_level(score) == level

    def test_multiplier_at_least_one(self):
        for level in BurdenLevel:
            metrics = BurdenMetrics(is_reliable=True, burden_level=level)
            assert multiplier_for(metrics) >= 1.0


class TestBurdenTracker:
    @pytest.mark.asyncio
    async def test_reads_outcome_store(self, config, clock):
        store = InMemoryOutcomeStore(outcomes([UserChoice.DISMISS] * 12, spacing_minutes=1))
        tracker = BurdenTracker(store, config, clock)

        assert await tracker.is_reliable()
        assert await tracker.recommended_cooldown_multiplier() == 2.5

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self, config, clock):
        store = InMemoryOutcomeStore()
        tracker = BurdenTracker(store, config, clock)

        first = await tracker.current_metrics()
        store.outcomes.extend(outcomes([UserChoice.DISMISS] * 12, spacing_minutes=1))

        assert await tracker.current_metrics() is first

        tracker.invalidate()
        assert (await tracker.current_metrics()).sample_size == 12

    @pytest.mark.asyncio
    async def test_store_failure_is_neutral(self, config, clock):
        tracker = BurdenTracker(FailingOutcomeStore(), config, clock)

        metrics = await tracker.current_metrics()

        assert not metrics.is_reliable
        assert await tracker.recommended_cooldown_multiplier() == 1.0

    @pytest.mark.asyncio
    async def test_report(self, config, clock):
        store = InMemoryOutcomeStore(outcomes([UserChoice.DISMISS] * 12, spacing_minutes=1))
        report = await BurdenTracker(store, config, clock).get_report()

        assert report["level"] == "high"
        assert report["multiplier"] == 2.5
        assert "Most interventions are dismissed" in report["warnings"]
