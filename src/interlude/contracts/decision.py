"""Decision contracts - verdicts and their audit records."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from interlude.contracts.assessments import (
    BurdenLevel,
    ConfidenceLevel,
    DecisionHint,
    OpportunityLevel,
    Persona,
)
from interlude.contracts.history import InterventionType


class DecisionSource(str, Enum):
    """Which stage produced the final verdict."""

    BASIC_RATE_LIMIT = "basic_rate_limit"
    PERSONA_FREQUENCY = "persona_frequency"
    OPPORTUNITY_FILTER = "opportunity_filter"
    ADAPTIVE_APPROVED = "adaptive_approved"
    INTERNAL_ERROR = "internal_error"


class BlockingReason(str, Enum):
    """Why a decision was skipped."""

    BASIC_RATE_LIMIT = "basic_rate_limit"
    PERSONA_FREQUENCY_LIMIT = "persona_frequency_limit"
    POOR_OPPORTUNITY = "poor_opportunity"
    BURDEN_MITIGATION = "burden_mitigation"
    OTHER = "other"


class Verdict(BaseModel):
    """Answer returned by AdaptiveDecisionEngine.evaluate()."""

    allowed: bool
    reason: str
    cooldown_remaining_ms: int = Field(default=0, ge=0)
    persona: Persona | None = None
    persona_confidence: ConfidenceLevel | None = None
    opportunity_score: int | None = None
    opportunity_level: OpportunityLevel | None = None
    decision_source: DecisionSource
    explanation_id: str | None = None

    model_config = {"frozen": True}


class DecisionExplanation(BaseModel):
    """Append-only audit record of one evaluate() call.

    Carries enough to reconstruct why the engine allowed or skipped:
    every gate's outcome, the scores behind them and the multiplier that
    was actually applied to cooldowns.
    """

    explanation_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime
    target_app: str
    intervention_type: InterventionType
    session_minutes: float = 0.0

    # Verdict
    decision: DecisionHint
    decision_source: DecisionSource
    blocking_reason: BlockingReason | None = None
    cooldown_remaining_ms: int = 0

    # Opportunity
    opportunity_score: int | None = None
    opportunity_level: OpportunityLevel | None = None
    opportunity_breakdown: dict[str, int] = Field(default_factory=dict)
    opportunity_hint: DecisionHint | None = None

    # Persona
    persona: Persona | None = None
    persona_confidence: ConfidenceLevel | None = None
    persona_rule: str | None = None

    # Gates (None means the gate was not reached)
    passed_basic_rate_limit: bool | None = None
    passed_persona_frequency: bool | None = None
    passed_opportunity_filter: bool | None = None

    # Burden
    burden_level: BurdenLevel | None = None
    burden_score: int | None = None
    burden_reliable: bool = False
    burden_mitigation_applied: bool = False
    applied_cooldown_multiplier: float = 1.0

    context_snapshot: dict[str, Any] = Field(default_factory=dict)
    explanation: str
    detailed_explanation: str = ""

    model_config = {"frozen": True}

    @property
    def allowed(self) -> bool:
        return self.decision == DecisionHint.SHOW
