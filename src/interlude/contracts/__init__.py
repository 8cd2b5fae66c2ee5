"""Interlude contracts - typed schemas shared by every stage."""

from interlude.contracts.assessments import (
    BurdenLevel,
    BurdenMetrics,
    ConfidenceLevel,
    DecisionHint,
    FrequencyPolicy,
    OpportunityAssessment,
    OpportunityLevel,
    Persona,
    PersonaAnalytics,
    PersonaAssessment,
    RateLimitState,
    Trend,
    UsageTrend,
)
from interlude.contracts.context import (
    BehavioralCues,
    DeviceEvent,
    DeviceEventKind,
    InterventionContext,
)
from interlude.contracts.decision import (
    BlockingReason,
    DecisionExplanation,
    DecisionSource,
    Verdict,
)
from interlude.contracts.history import (
    Feedback,
    GoalConfig,
    InterventionOutcome,
    InterventionType,
    UsageRecord,
    UserChoice,
)
from interlude.contracts.ports import (
    CounterStore,
    ExplanationSink,
    ForegroundSource,
    GoalStore,
    OutcomeStore,
    UsageHistoryStore,
)
from interlude.contracts.session import (
    InterruptionReason,
    Session,
    SessionEvent,
    SessionEventKind,
)

__all__ = [
    # Session
    "InterruptionReason",
    "Session",
    "SessionEvent",
    "SessionEventKind",
    # History
    "Feedback",
    "GoalConfig",
    "InterventionOutcome",
    "InterventionType",
    "UsageRecord",
    "UserChoice",
    # Context
    "BehavioralCues",
    "DeviceEvent",
    "DeviceEventKind",
    "InterventionContext",
    # Assessments
    "BurdenLevel",
    "BurdenMetrics",
    "ConfidenceLevel",
    "DecisionHint",
    "FrequencyPolicy",
    "OpportunityAssessment",
    "OpportunityLevel",
    "Persona",
    "PersonaAnalytics",
    "PersonaAssessment",
    "RateLimitState",
    "Trend",
    "UsageTrend",
    # Decisions
    "BlockingReason",
    "DecisionExplanation",
    "DecisionSource",
    "Verdict",
    # Ports
    "CounterStore",
    "ExplanationSink",
    "ForegroundSource",
    "GoalStore",
    "OutcomeStore",
    "UsageHistoryStore",
]
