"""
Frequency policies.

Each FrequencyPolicy maps to one rule over the opportunity assessment and
the time of day. The persona -> policy binding lives in engine.persona; the
two tables are kept apart so each can be tested on its own.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from interlude.contracts.assessments import (
    FrequencyPolicy,
    OpportunityAssessment,
    OpportunityLevel,
)

# Returns None when the rule allows, otherwise the blocking reason
RuleCheck = Callable[[OpportunityAssessment, bool], Optional[str]]


@dataclass(frozen=True)
class PolicyRule:
    """A named allow/block rule."""

    policy: FrequencyPolicy
    description: str
    check: RuleCheck

    def blocking_reason(
        self, opportunity: OpportunityAssessment, is_daytime: bool
    ) -> str | None:
        return self.check(opportunity, is_daytime)

    def allows(self, opportunity: OpportunityAssessment, is_daytime: bool) -> bool:
        return self.check(opportunity, is_daytime) is None


def _level(opportunity: OpportunityAssessment) -> str:
    return f"{opportunity.level.name} ({opportunity.score}/100)"


def _minimal(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if opportunity.level == OpportunityLevel.EXCELLENT:
        return None
    return f"Minimal policy: EXCELLENT opportunities only, got {_level(opportunity)}"


def _conservative(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if opportunity.level.rank >= OpportunityLevel.GOOD.rank:
        return None
    return f"Conservative policy: GOOD or better required, got {_level(opportunity)}"


def _balanced(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if opportunity.level != OpportunityLevel.POOR:
        return None
    return f"Balanced policy: POOR opportunities skipped, got {_level(opportunity)}"


def _moderate(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if opportunity.score >= 25:
        return None
    return f"Moderate policy: score >= 25 required, got {opportunity.score}"


def _adaptive(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if opportunity.level == OpportunityLevel.EXCELLENT:
        return None
    if opportunity.level == OpportunityLevel.GOOD and is_daytime:
        return None
    if opportunity.score >= 40:
        return None
    return (
        f"Adaptive policy: needs EXCELLENT, GOOD in daytime, or score >= 40, "
        f"got {_level(opportunity)}{'' if is_daytime else ' at night'}"
    )


def _onboarding(opportunity: OpportunityAssessment, is_daytime: bool) -> str | None:
    if not is_daytime:
        return "New user onboarding: daytime-only restriction, outside daytime hours"
    if opportunity.score < 30:
        return f"New user onboarding: score >= 30 required, got {opportunity.score}"
    return None


POLICY_RULES: dict[FrequencyPolicy, PolicyRule] = {
    FrequencyPolicy.MINIMAL: PolicyRule(
        FrequencyPolicy.MINIMAL, "EXCELLENT only", _minimal
    ),
    FrequencyPolicy.CONSERVATIVE: PolicyRule(
        FrequencyPolicy.CONSERVATIVE, "GOOD or EXCELLENT", _conservative
    ),
    FrequencyPolicy.BALANCED: PolicyRule(
        FrequencyPolicy.BALANCED, "anything but POOR", _balanced
    ),
    FrequencyPolicy.MODERATE: PolicyRule(
        FrequencyPolicy.MODERATE, "score >= 25", _moderate
    ),
    FrequencyPolicy.ADAPTIVE: PolicyRule(
        FrequencyPolicy.ADAPTIVE,
        "EXCELLENT, GOOD during daytime, or score >= 40",
        _adaptive,
    ),
    FrequencyPolicy.ONBOARDING: PolicyRule(
        FrequencyPolicy.ONBOARDING, "daytime only and score >= 30", _onboarding
    ),
}


def rule_for(policy: FrequencyPolicy) -> PolicyRule:
    return POLICY_RULES[policy]
