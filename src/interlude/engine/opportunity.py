"""
Opportunity Scorer

Scores how receptive the current moment is to an interruption.

Five sub-scores, each clamped to its own range, add up to 0-100:
- time_receptiveness  0-25
- session_pattern     0-20
- cognitive_load      0-15
- historical_success  0-20
- user_state          0-20

Levels: POOR < 25 <= MODERATE < 50 <= GOOD < 75 <= EXCELLENT.
Pure functions of the context; no caching, no side effects.
"""

from interlude.contracts.assessments import (
    DecisionHint,
    OpportunityAssessment,
    OpportunityLevel,
)
from interlude.contracts.context import InterventionContext

TIME_RECEPTIVENESS = "time_receptiveness"
SESSION_PATTERN = "session_pattern"
COGNITIVE_LOAD = "cognitive_load"
HISTORICAL_SUCCESS = "historical_success"
USER_STATE = "user_state"

SUB_SCORE_RANGES: dict[str, tuple[int, int]] = {
    TIME_RECEPTIVENESS: (0, 25),
    SESSION_PATTERN: (0, 20),
    COGNITIVE_LOAD: (0, 15),
    HISTORICAL_SUCCESS: (0, 20),
    USER_STATE: (0, 20),
}

# Lower bound of each level, highest first
LEVEL_THRESHOLDS: list[tuple[int, OpportunityLevel]] = [
    (75, OpportunityLevel.EXCELLENT),
    (50, OpportunityLevel.GOOD),
    (25, OpportunityLevel.MODERATE),
    (0, OpportunityLevel.POOR),
]

# Scores below this hint SKIP (all of POOR, the low end of MODERATE)
SKIP_HINT_BELOW = 30

DEFAULT_BASELINE_MINUTES = 10.0
MIN_HISTORICAL_SAMPLES = 10


def _clamp(name: str, value: int) -> int:
    low, high = SUB_SCORE_RANGES[name]
    return max(low, min(high, value))


def level_for_score(score: int) -> OpportunityLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return OpportunityLevel.POOR


def hint_for_score(score: int) -> DecisionHint:
    return DecisionHint.SKIP if score < SKIP_HINT_BELOW else DecisionHint.SHOW


# ─────────────────────────────────────────────────────────────────────────────
# Sub-scores
# ─────────────────────────────────────────────────────────────────────────────


def time_receptiveness(ctx: InterventionContext, factors: list[str]) -> int:
    """Favor waking hours; penalize the unusual-hour flag."""
    hour = ctx.hour_of_day
    first_session = ctx.session_count_today == 1

    if 6 <= hour <= 9:
        if ctx.is_weekend and first_session:
            score = 25
        elif ctx.is_weekend:
            score = 22
        elif first_session:
            score = 23
        else:
            score = 20
        factors.append("Morning")
    elif 10 <= hour <= 16:
        if ctx.is_over_goal:
            score = 18
        elif ctx.current_session_minutes >= 15:
            score = 15
        else:
            score = 12
        factors.append("Midday")
    elif 17 <= hour <= 21:
        if ctx.is_weekend and ctx.is_over_goal:
            score = 23
        elif ctx.is_over_goal:
            score = 20
        else:
            score = 15
        factors.append("Evening")
    elif hour == 22:
        score = 14 if ctx.is_over_goal else 10
        factors.append("Late evening")
    else:
        score = 8 if ctx.is_over_goal else 5
        factors.append("Night")

    if ctx.unusual_hour:
        score -= 5
        factors.append("Unusual hour")

    return _clamp(TIME_RECEPTIVENESS, score)


def session_pattern(ctx: InterventionContext, factors: list[str]) -> int:
    """Reward sessions long relative to the user's own baseline."""
    minutes = ctx.current_session_minutes
    if minutes < 2:
        factors.append("Very short session")
        return _clamp(SESSION_PATTERN, 2)

    baseline = ctx.baseline_session_minutes or DEFAULT_BASELINE_MINUTES
    ratio = minutes / max(baseline, 1.0)

    if ratio >= 2.0:
        score = 20
        factors.append(f"Session {ratio:.1f}x baseline")
    elif ratio >= 1.5:
        score = 17
        factors.append(f"Session {ratio:.1f}x baseline")
    elif ratio >= 1.0:
        score = 14
    elif ratio >= 0.5:
        score = 10
    else:
        score = 6

    # Absolute floor for long sessions regardless of baseline
    if minutes >= 30:
        score = max(score, 18)

    return _clamp(SESSION_PATTERN, score)


def cognitive_load(ctx: InterventionContext, factors: list[str]) -> int:
    """Start from full receptiveness; frazzled or absorbed users lose points."""
    score = 15
    if ctx.rapid_app_switching:
        score -= 6
        factors.append("Rapid app switching")
    if ctx.compulsive_reopen:
        score -= 6
        factors.append("Compulsive reopening")
    if ctx.current_session_minutes >= 20:
        score -= 2
    return _clamp(COGNITIVE_LOAD, score)


def historical_success(ctx: InterventionContext, factors: list[str]) -> int:
    """Past go-back rate; neutral when history is thin or unavailable."""
    if "outcomes" in ctx.degraded_sources:
        return _clamp(HISTORICAL_SUCCESS, 10)

    rate = ctx.historical_success_rate
    if rate is None or ctx.historical_sample_size < MIN_HISTORICAL_SAMPLES:
        return _clamp(HISTORICAL_SUCCESS, 12)

    percent = rate * 100
    if percent >= 60:
        score = 20
        factors.append("Interventions usually work here")
    elif percent >= 50:
        score = 17
    elif percent >= 40:
        score = 14
    elif percent >= 30:
        score = 10
    else:
        score = 5
        factors.append("Interventions rarely work here")
    return _clamp(HISTORICAL_SUCCESS, score)


def user_state(ctx: InterventionContext, factors: list[str]) -> int:
    """Fatigue and doom-scroll markers, plus goal/streak state."""
    score = 6
    if ctx.excessive_unlocks:
        score += 5
        factors.append("Excessive unlocks")
    if ctx.long_screen_on:
        score += 5
        factors.append("Long screen-on")
    if ctx.is_over_goal:
        score += 3
        factors.append("Over daily goal")
    if ctx.streak_days >= 7:
        score += 2
    elif ctx.streak_days >= 3:
        score += 1
    if 0 < ctx.total_usage_yesterday_minutes < ctx.total_usage_today_minutes:
        score += 1
    return _clamp(USER_STATE, score)


_SUB_SCORES = [
    (TIME_RECEPTIVENESS, time_receptiveness),
    (SESSION_PATTERN, session_pattern),
    (COGNITIVE_LOAD, cognitive_load),
    (HISTORICAL_SUCCESS, historical_success),
    (USER_STATE, user_state),
]


class OpportunityScorer:
    """Stateless scorer; kept as a class so the engine can be handed a variant."""

    def score(self, context: InterventionContext) -> OpportunityAssessment:
        factors: list[str] = []
        breakdown = {name: fn(context, factors) for name, fn in _SUB_SCORES}
        total = max(0, min(100, sum(breakdown.values())))

        return OpportunityAssessment(
            score=total,
            level=level_for_score(total),
            hint=hint_for_score(total),
            breakdown=breakdown,
            factors=factors,
        )
