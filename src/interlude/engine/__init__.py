"""
Adaptive Intervention Decision Engine

Provides:
- ContextBuilder: session + history + cues -> InterventionContext
- PersonaClassifier: usage statistics -> persona bound to a frequency policy
- OpportunityScorer: context -> 0-100 receptiveness score
- BurdenTracker: recent outcomes -> fatigue multiplier
- RateLimiter: cooldowns and caps over persisted counters
- AdaptiveDecisionEngine: orchestrates the above into a Verdict
- DecisionLogger: background delivery of decision explanations
"""

from interlude.engine.burden import BurdenTracker
from interlude.engine.context_builder import ContextBuilder
from interlude.engine.decision_engine import AdaptiveDecisionEngine
from interlude.engine.decision_logger import DecisionLogger
from interlude.engine.opportunity import OpportunityScorer
from interlude.engine.persona import PERSONA_POLICY, PersonaClassifier
from interlude.engine.policy import POLICY_RULES
from interlude.engine.rate_limiter import RateLimiter, RateLimitResult

__all__ = [
    "AdaptiveDecisionEngine",
    "BurdenTracker",
    "ContextBuilder",
    "DecisionLogger",
    "OpportunityScorer",
    "PERSONA_POLICY",
    "POLICY_RULES",
    "PersonaClassifier",
    "RateLimitResult",
    "RateLimiter",
]
