"""Tests for persona classification."""

from datetime import datetime, timedelta

import pytest

from interlude.contracts.assessments import (
    ConfidenceLevel,
    FrequencyPolicy,
    Persona,
    PersonaAnalytics,
    UsageTrend,
)
from interlude.contracts.history import UsageRecord
from interlude.engine.context_builder import INSTALL_DATE_KEY
from interlude.engine.persona import (
    PERSONA_POLICY,
    PersonaClassifier,
    classify,
    confidence_for,
    quick_reopen_rate,
    usage_trend,
)
from interlude.store.memory import InMemoryUsageHistory
from interlude.store.preferences import InMemoryCounterStore

from conftest import APP, WEEKDAY_MORNING, FailingHistory

NOW = WEEKDAY_MORNING


def analytics(**overrides) -> PersonaAnalytics:
    values = dict(days_since_install=30, analysis_days=14, total_sessions=100)
    values.update(overrides)
    return PersonaAnalytics(**values)


def casual_history(days: int = 14) -> InMemoryUsageHistory:
    records = []
    for d in range(1, days + 1):
        day = NOW - timedelta(days=d)
        for hour in (8, 12, 18):
            start = day.replace(hour=hour, minute=0)
            records.append(
                UsageRecord(target_app=APP, start_time=start, end_time=start + timedelta(minutes=5))
            )
    return InMemoryUsageHistory(records)


def established_counters(days: int = 30) -> InMemoryCounterStore:
    return InMemoryCounterStore({INSTALL_DATE_KEY: (NOW - timedelta(days=days)).isoformat()})


class TestUsageTrend:
    @pytest.mark.parametrize(
        "counts,expected",
        [
            ([10, 12, 14, 16, 18], UsageTrend.ESCALATING),
            ([1, 2, 3, 4, 5], UsageTrend.INCREASING),
            ([5, 4, 3, 2, 1], UsageTrend.DECLINING),
            ([3, 3, 3, 3], UsageTrend.STABLE),
            ([3, 3], UsageTrend.STABLE),
            ([0, 1, 0, 1], UsageTrend.STABLE),
        ],
    )
    def test_trend(self, counts, expected):
        assert usage_trend(counts) == expected

    def test_quick_reopen_rate(self):
        start = NOW.replace(hour=8)
        records = [
            UsageRecord(target_app=APP, start_time=start, end_time=start + timedelta(minutes=5)),
            UsageRecord(
                target_app=APP,
                start_time=start + timedelta(minutes=6),
                end_time=start + timedelta(minutes=10),
            ),
            UsageRecord(
                target_app=APP,
                start_time=start + timedelta(hours=1),
                end_time=start + timedelta(hours=1, minutes=5),
            ),
        ]
        assert quick_reopen_rate(records, 120) == pytest.approx(1 / 3)


class TestClassify:
    def test_new_user(self):
        assert classify(analytics(days_since_install=5)) == Persona.NEW_USER

    def test_problematic_pattern(self):
        a = analytics(usage_trend=UsageTrend.ESCALATING, quick_reopen_rate=0.5, avg_daily_sessions=12)
        assert classify(a) == Persona.PROBLEMATIC_PATTERN

    def test_heavy_compulsive(self):
        a = analytics(avg_daily_sessions=20, quick_reopen_rate=0.4, avg_session_minutes=3)
        assert classify(a) == Persona.HEAVY_COMPULSIVE

    def test_heavy_binge_by_volume(self):
        a = analytics(avg_daily_sessions=7, avg_session_minutes=25)
        assert classify(a) == Persona.HEAVY_BINGE

    def test_heavy_binge_by_irregular_long_sessions(self):
        a = analytics(
            avg_daily_sessions=2,
            avg_session_minutes=45,
            avg_daily_minutes=90,
            daily_minutes_stddev=90,
        )
        assert classify(a) == Persona.HEAVY_BINGE

    def test_moderate_balanced(self):
        assert classify(analytics(avg_daily_sessions=10, avg_session_minutes=8)) == Persona.MODERATE_BALANCED

    def test_casual(self):
        assert classify(analytics(avg_daily_sessions=3, avg_session_minutes=5)) == Persona.CASUAL

    def test_heavy_without_other_markers_is_balanced(self):
        a = analytics(avg_daily_sessions=14, avg_session_minutes=5, quick_reopen_rate=0.1)
        assert classify(a) == Persona.MODERATE_BALANCED

    def test_confidence(self):
        assert confidence_for(analytics(days_since_install=3)) == ConfidenceLevel.LOW
        assert confidence_for(analytics(days_since_install=30, total_sessions=5)) == ConfidenceLevel.LOW
        assert confidence_for(analytics(days_since_install=10, total_sessions=20)) == ConfidenceLevel.MEDIUM
        assert confidence_for(analytics(days_since_install=30, total_sessions=50)) == ConfidenceLevel.HIGH

    def test_every_persona_bound_to_one_policy(self):
        assert set(PERSONA_POLICY) == set(Persona)
        assert set(PERSONA_POLICY.values()) == set(FrequencyPolicy)
        assert PERSONA_POLICY[Persona.NEW_USER] == FrequencyPolicy.ONBOARDING
        assert PERSONA_POLICY[Persona.PROBLEMATIC_PATTERN] == FrequencyPolicy.MINIMAL


class TestPersonaClassifier:
    @pytest.mark.asyncio
    async def test_fresh_install_is_new_user(self, config, clock):
        classifier = PersonaClassifier(InMemoryUsageHistory(), InMemoryCounterStore(), config, clock)

        assessment = await classifier.detect()

        assert assessment.persona == Persona.NEW_USER
        assert assessment.policy == FrequencyPolicy.ONBOARDING
        assert assessment.confidence == ConfidenceLevel.LOW

    @pytest.mark.asyncio
    async def test_casual_user(self, config, clock):
        classifier = PersonaClassifier(casual_history(), established_counters(), config, clock)

        assessment = await classifier.detect()

        assert assessment.persona == Persona.CASUAL
        assert assessment.policy == FrequencyPolicy.ADAPTIVE
        assert assessment.confidence == ConfidenceLevel.HIGH
        assert assessment.analytics.analysis_days == 14
        assert assessment.analytics.avg_session_minutes == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_result_cached(self, config, clock):
        history = casual_history()
        classifier = PersonaClassifier(history, established_counters(), config, clock)

        first = await classifier.detect()
        history.records.clear()
        clock.advance(hours=1)

        assert await classifier.detect() is first
        assert (await classifier.detect(force_refresh=True)) is not first

    @pytest.mark.asyncio
    async def test_cache_expires(self, config, clock):
        classifier = PersonaClassifier(casual_history(), established_counters(), config, clock)

        first = await classifier.detect()
        clock.advance(hours=7)

        assert await classifier.detect() is not first

    @pytest.mark.asyncio
    async def test_failure_without_cache_is_new_user(self, config, clock):
        classifier = PersonaClassifier(FailingHistory(), established_counters(), config, clock)

        assessment = await classifier.detect()

        assert assessment.persona == Persona.NEW_USER
        assert assessment.confidence == ConfidenceLevel.LOW

    @pytest.mark.asyncio
    async def test_failure_keeps_cached(self, config, clock):
        classifier = PersonaClassifier(casual_history(), established_counters(), config, clock)
        first = await classifier.detect()

        classifier.history = FailingHistory()
        assessment = await classifier.detect(force_refresh=True)

        assert assessment is first
        assert assessment.persona == Persona.CASUAL
