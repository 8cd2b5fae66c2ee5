"""Assessment contracts - outputs of the persona, opportunity and burden stages."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ─────────────────────────────────────────────────────────────────────────────
# Persona
# ─────────────────────────────────────────────────────────────────────────────


class Persona(str, Enum):
    """Behavioral categories, most to least restrictive frequency policy."""

    PROBLEMATIC_PATTERN = "problematic_pattern"
    HEAVY_COMPULSIVE = "heavy_compulsive"
    MODERATE_BALANCED = "moderate_balanced"
    HEAVY_BINGE = "heavy_binge"
    CASUAL = "casual"
    NEW_USER = "new_user"


class FrequencyPolicy(str, Enum):
    """Named intervention-frequency policies."""

    MINIMAL = "minimal"
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    MODERATE = "moderate"
    ADAPTIVE = "adaptive"
    ONBOARDING = "onboarding"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UsageTrend(str, Enum):
    ESCALATING = "escalating"
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"
    DECLINING = "declining"


class PersonaAnalytics(BaseModel):
    """Aggregate usage statistics the persona is classified from."""

    days_since_install: int = Field(default=0, ge=0)
    analysis_days: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)
    avg_daily_sessions: float = 0.0
    avg_session_minutes: float = 0.0
    avg_daily_minutes: float = 0.0
    daily_minutes_stddev: float = 0.0
    quick_reopen_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    usage_trend: UsageTrend = UsageTrend.STABLE

    @property
    def usage_variation(self) -> float:
        """Coefficient of variation of daily usage minutes."""
        if self.avg_daily_minutes <= 0:
            return 0.0
        return self.daily_minutes_stddev / self.avg_daily_minutes


class PersonaAssessment(BaseModel):
    """Classified persona with the policy it is bound to."""

    persona: Persona
    policy: FrequencyPolicy
    confidence: ConfidenceLevel
    analytics: PersonaAnalytics = Field(default_factory=PersonaAnalytics)
    detected_at: datetime

    model_config = {"frozen": True}


# ─────────────────────────────────────────────────────────────────────────────
# Opportunity
# ─────────────────────────────────────────────────────────────────────────────


class OpportunityLevel(str, Enum):
    POOR = "poor"
    MODERATE = "moderate"
    GOOD = "good"
    EXCELLENT = "excellent"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    OpportunityLevel.POOR: 0,
    OpportunityLevel.MODERATE: 1,
    OpportunityLevel.GOOD: 2,
    OpportunityLevel.EXCELLENT: 3,
}


class DecisionHint(str, Enum):
    SHOW = "show"
    SKIP = "skip"


class OpportunityAssessment(BaseModel):
    """Receptiveness of the current moment to an interruption."""

    score: int = Field(ge=0, le=100)
    level: OpportunityLevel
    hint: DecisionHint
    breakdown: dict[str, int] = Field(
        default_factory=dict, description="Named sub-scores"
    )
    factors: list[str] = Field(
        default_factory=list, description="Human-readable signals that fired"
    )

    model_config = {"frozen": True}


# ─────────────────────────────────────────────────────────────────────────────
# Burden
# ─────────────────────────────────────────────────────────────────────────────


class BurdenLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class BurdenMetrics(BaseModel):
    """Recent-fatigue signal derived from intervention outcomes."""

    sample_size: int = Field(default=0, ge=0)
    shown_last_24h: int = Field(default=0, ge=0)
    shown_last_7d: int = Field(default=0, ge=0)
    dismiss_rate: float = 0.0
    timeout_rate: float = 0.0
    go_back_rate: float = 0.0
    effectiveness_7d: float | None = None
    snooze_count: int = 0
    helpful_count: int = 0
    disruptive_count: int = 0
    avg_spacing_minutes: float | None = None
    min_spacing_minutes: float | None = None
    avg_response_seconds: float | None = None
    engagement_trend: Trend = Trend.STABLE
    effectiveness_trend: Trend = Trend.STABLE
    burden_score: int = Field(default=0, ge=0)
    burden_level: BurdenLevel = BurdenLevel.LOW
    is_reliable: bool = False
    computed_at: datetime | None = None

    model_config = {"frozen": True}

    @property
    def helpfulness_ratio(self) -> float | None:
        rated = self.helpful_count + self.disruptive_count
        if rated == 0:
            return None
        return self.helpful_count / rated


# ─────────────────────────────────────────────────────────────────────────────
# Rate limiting
# ─────────────────────────────────────────────────────────────────────────────


class RateLimitState(BaseModel):
    """Per-device counters persisted in the counter store."""

    last_intervention_at: datetime | None = None
    last_by_type: dict[str, datetime] = Field(default_factory=dict)
    recent_interventions: list[datetime] = Field(
        default_factory=list, description="Recorded times, pruned to today/last hour"
    )
    cooldown_multiplier: float = Field(default=1.0, ge=0.5, le=3.0)
