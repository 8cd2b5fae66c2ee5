"""
Adaptive Decision Engine

Orchestrates one allow/skip decision:

1. Build the context, classify the persona and score the opportunity
   (always, so skipped decisions are explainable too)
2. Get the burden multiplier
3. Base rate limiter gates
4. Persona frequency policy
5. Opportunity decision hint
6. ALLOW and record

Every call produces exactly one DecisionExplanation, handed to the decision
logger without waiting on it. Nothing raises past evaluate(): an internal
failure becomes a SKIP with decision_source INTERNAL_ERROR.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from interlude.config import Config, get_config
from interlude.contracts.assessments import (
    BurdenMetrics,
    DecisionHint,
    OpportunityAssessment,
    PersonaAssessment,
)
from interlude.contracts.context import InterventionContext
from interlude.contracts.decision import (
    BlockingReason,
    DecisionExplanation,
    DecisionSource,
    Verdict,
)
from interlude.contracts.history import (
    Feedback,
    InterventionOutcome,
    InterventionType,
    UserChoice,
)
from interlude.contracts.ports import (
    CounterStore,
    ExplanationSink,
    GoalStore,
    OutcomeStore,
    UsageHistoryStore,
)
from interlude.contracts.session import Session
from interlude.engine.burden import BurdenTracker, multiplier_for
from interlude.engine.context_builder import ContextBuilder
from interlude.engine.decision_logger import DecisionLogger, ErrorReporter
from interlude.engine.opportunity import OpportunityScorer
from interlude.engine.persona import PERSONA_COOLDOWN_MULTIPLIER, PersonaClassifier
from interlude.engine.policy import rule_for
from interlude.engine.rate_limiter import RateLimiter
from interlude.tracking.cues import BehavioralCueTracker

logger = logging.getLogger(__name__)


@dataclass
class _Trace:
    """What the pipeline learned so far; feeds the explanation on any branch."""

    target_app: str
    intervention_type: InterventionType
    timestamp: datetime
    session_minutes: float
    context: InterventionContext | None = None
    persona: PersonaAssessment | None = None
    opportunity: OpportunityAssessment | None = None
    burden: BurdenMetrics | None = None
    burden_multiplier: float = 1.0
    applied_multiplier: float = 1.0
    persona_rule: str | None = None
    passed_basic: bool | None = None
    passed_persona: bool | None = None
    passed_opportunity: bool | None = None


class AdaptiveDecisionEngine:
    """Single entry point deciding whether to interrupt the user."""

    def __init__(
        self,
        context_builder: ContextBuilder,
        persona_classifier: PersonaClassifier,
        burden_tracker: BurdenTracker,
        rate_limiter: RateLimiter,
        decision_logger: DecisionLogger,
        opportunity_scorer: OpportunityScorer | None = None,
        outcomes: OutcomeStore | None = None,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.context_builder = context_builder
        self.persona_classifier = persona_classifier
        self.burden_tracker = burden_tracker
        self.rate_limiter = rate_limiter
        self.decision_logger = decision_logger
        self.opportunity_scorer = opportunity_scorer or OpportunityScorer()
        self.outcomes = outcomes
        self.config = config or get_config()
        self.clock = clock

        # Decisions are serialized so two ALLOWs can never pass the gates together
        self._lock = asyncio.Lock()
        self.decisions = 0
        self.allowed = 0

    @classmethod
    def create(
        cls,
        history: UsageHistoryStore,
        goals: GoalStore,
        counters: CounterStore,
        outcomes: OutcomeStore,
        sink: ExplanationSink,
        cues: BehavioralCueTracker | None = None,
        config: Config | None = None,
        clock: Callable[[], datetime] = datetime.now,
        error_reporter: Optional[ErrorReporter] = None,
    ) -> "AdaptiveDecisionEngine":
        """Wire an engine from its collaborators."""
        config = config or get_config()
        return cls(
            context_builder=ContextBuilder(
                history, goals, counters, outcomes=outcomes, cues=cues,
                config=config, clock=clock,
            ),
            persona_classifier=PersonaClassifier(history, counters, config=config, clock=clock),
            burden_tracker=BurdenTracker(outcomes, config=config, clock=clock),
            rate_limiter=RateLimiter(counters, config=config, clock=clock),
            decision_logger=DecisionLogger(
                sink,
                max_pending=config.DECISION_LOG_QUEUE_SIZE,
                error_reporter=error_reporter,
            ),
            outcomes=outcomes,
            config=config,
            clock=clock,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Decision
    # ─────────────────────────────────────────────────────────────────────

    async def evaluate(
        self,
        target_app: str,
        session_duration: timedelta,
        intervention_type: InterventionType = InterventionType.SUSTAINED_USE,
        session: Session | None = None,
        record_on_allow: bool = True,
    ) -> Verdict:
        """Decide whether to show an intervention now.

        Args:
            target_app: App being used
            session_duration: How long the current session has run
            intervention_type: Kind of intervention considered
            session: The open session, if the caller has one
            record_on_allow: Record the intervention immediately on ALLOW

        Returns:
            Verdict (never raises)
        """
        async with self._lock:
            now = self.clock()
            trace = _Trace(
                target_app=target_app,
                intervention_type=intervention_type,
                timestamp=now,
                session_minutes=session_duration.total_seconds() / 60,
            )
            try:
                verdict, explanation = await self._decide(
                    trace, session_duration, session, record_on_allow
                )
            except Exception as e:
                logger.exception(f"Decision for {target_app} failed, skipping: {e}")
                verdict, explanation = self._conclude(
                    trace,
                    allowed=False,
                    reason=f"Internal error: {type(e).__name__}",
                    source=DecisionSource.INTERNAL_ERROR,
                    blocking=BlockingReason.OTHER,
                )

            self.decisions += 1
            if verdict.allowed:
                self.allowed += 1
            logger.info(
                f"Decision for {target_app}: {explanation.decision.value.upper()} "
                f"[{verdict.decision_source.value}] {verdict.reason}"
            )

        self.decision_logger.log(explanation)
        return verdict

    async def _decide(
        self,
        trace: _Trace,
        session_duration: timedelta,
        session: Session | None,
        record_on_allow: bool,
    ) -> tuple[Verdict, DecisionExplanation]:
        now = trace.timestamp
        if session is None:
            session = Session(
                target_app=trace.target_app,
                start_time=now - session_duration,
                last_active=now,
                duration=session_duration,
            )

        # 1. Persona + opportunity, on every path
        trace.context = await self.context_builder.build(session)
        trace.persona = await self.persona_classifier.detect()
        trace.opportunity = self.opportunity_scorer.score(trace.context)
        trace.persona_rule = rule_for(trace.persona.policy).description

        # 2. Burden
        trace.burden = await self.burden_tracker.current_metrics()
        trace.burden_multiplier = multiplier_for(trace.burden)

        # 3. Base rate limits
        basic = self.rate_limiter.can_show(
            trace.intervention_type, session_duration, extra_multiplier=trace.burden_multiplier
        )
        trace.applied_multiplier = basic.applied_multiplier
        trace.passed_basic = basic.allowed
        if not basic.allowed:
            blocking = BlockingReason.BASIC_RATE_LIMIT
            if trace.burden_multiplier > 1.0:
                unburdened = self.rate_limiter.can_show(trace.intervention_type, session_duration)
                if unburdened.allowed:
                    blocking = BlockingReason.BURDEN_MITIGATION
            return self._conclude(
                trace,
                allowed=False,
                reason=basic.reason,
                source=DecisionSource.BASIC_RATE_LIMIT,
                blocking=blocking,
                cooldown=basic.cooldown_remaining,
                burden_applied=blocking == BlockingReason.BURDEN_MITIGATION,
            )

        # 4. Persona frequency policy
        rule = rule_for(trace.persona.policy)
        is_daytime = self.config.is_daytime(trace.context.hour_of_day)
        block_reason = rule.blocking_reason(trace.opportunity, is_daytime)
        trace.passed_persona = block_reason is None
        if block_reason is not None:
            combined = self._combined(
                PERSONA_COOLDOWN_MULTIPLIER[trace.persona.persona]
                * self.rate_limiter.cooldown_multiplier
                * trace.burden_multiplier
            )
            trace.applied_multiplier = combined
            return self._conclude(
                trace,
                allowed=False,
                reason=block_reason,
                source=DecisionSource.PERSONA_FREQUENCY,
                blocking=BlockingReason.PERSONA_FREQUENCY_LIMIT,
                cooldown=timedelta(minutes=self.config.PERSONA_BASE_COOLDOWN_MINUTES) * combined,
                burden_applied=trace.burden_multiplier > 1.0,
            )

        # 5. Opportunity hint
        trace.passed_opportunity = trace.opportunity.hint == DecisionHint.SHOW
        if not trace.passed_opportunity:
            combined = self._combined(trace.burden_multiplier)
            trace.applied_multiplier = combined
            return self._conclude(
                trace,
                allowed=False,
                reason=(
                    f"Opportunity too low: {trace.opportunity.level.name} "
                    f"({trace.opportunity.score}/100)"
                ),
                source=DecisionSource.OPPORTUNITY_FILTER,
                blocking=BlockingReason.POOR_OPPORTUNITY,
                cooldown=timedelta(minutes=self.config.OPPORTUNITY_SKIP_COOLDOWN_MINUTES) * combined,
                burden_applied=trace.burden_multiplier > 1.0,
            )

        # 6. Approved
        reason = (
            f"Persona: {trace.persona.persona.name} | "
            f"Opportunity: {trace.opportunity.level.name} ({trace.opportunity.score}/100) | "
            f"Decision: SHOW"
        )
        if record_on_allow:
            self.rate_limiter.record(trace.intervention_type)
        return self._conclude(
            trace,
            allowed=True,
            reason=reason,
            source=DecisionSource.ADAPTIVE_APPROVED,
        )

    def _combined(self, multiplier: float) -> float:
        return min(multiplier, self.config.MAX_COMBINED_COOLDOWN_MULTIPLIER)

    def _conclude(
        self,
        trace: _Trace,
        allowed: bool,
        reason: str,
        source: DecisionSource,
        blocking: BlockingReason | None = None,
        cooldown: timedelta = timedelta(0),
        burden_applied: bool = False,
    ) -> tuple[Verdict, DecisionExplanation]:
        """Build the verdict and its explanation from the trace."""
        cooldown_ms = max(0, int(cooldown.total_seconds() * 1000))
        persona = trace.persona
        opportunity = trace.opportunity
        burden = trace.burden

        explanation = DecisionExplanation(
            timestamp=trace.timestamp,
            target_app=trace.target_app,
            intervention_type=trace.intervention_type,
            session_minutes=trace.session_minutes,
            decision=DecisionHint.SHOW if allowed else DecisionHint.SKIP,
            decision_source=source,
            blocking_reason=None if allowed else blocking,
            cooldown_remaining_ms=cooldown_ms,
            opportunity_score=opportunity.score if opportunity else None,
            opportunity_level=opportunity.level if opportunity else None,
            opportunity_breakdown=dict(opportunity.breakdown) if opportunity else {},
            opportunity_hint=opportunity.hint if opportunity else None,
            persona=persona.persona if persona else None,
            persona_confidence=persona.confidence if persona else None,
            persona_rule=trace.persona_rule,
            passed_basic_rate_limit=trace.passed_basic,
            passed_persona_frequency=trace.passed_persona,
            passed_opportunity_filter=trace.passed_opportunity,
            burden_level=burden.burden_level if burden else None,
            burden_score=burden.burden_score if burden else None,
            burden_reliable=burden.is_reliable if burden else False,
            burden_mitigation_applied=burden_applied,
            applied_cooldown_multiplier=round(trace.applied_multiplier, 4),
            context_snapshot=trace.context.summary() if trace.context else {},
            explanation=f"{'SHOW' if allowed else 'SKIP'}: {reason}",
            detailed_explanation=self._describe(trace, allowed, reason, cooldown_ms),
        )

        verdict = Verdict(
            allowed=allowed,
            reason=reason,
            cooldown_remaining_ms=cooldown_ms,
            persona=persona.persona if persona else None,
            persona_confidence=persona.confidence if persona else None,
            opportunity_score=opportunity.score if opportunity else None,
            opportunity_level=opportunity.level if opportunity else None,
            decision_source=source,
            explanation_id=explanation.explanation_id,
        )
        return verdict, explanation

    @staticmethod
    def _describe(trace: _Trace, allowed: bool, reason: str, cooldown_ms: int) -> str:
        def gate(value: bool | None) -> str:
            return "not reached" if value is None else ("pass" if value else "fail")

        lines = [
            f"Decision: {'SHOW' if allowed else 'SKIP'} for {trace.target_app} "
            f"({trace.intervention_type.value}, {trace.session_minutes:.1f} min session)",
            f"Reason: {reason}",
        ]
        if trace.persona:
            lines.append(
                f"Persona: {trace.persona.persona.name} "
                f"({trace.persona.confidence.value} confidence, policy {trace.persona.policy.name}: "
                f"{trace.persona_rule})"
            )
        if trace.opportunity:
            parts = ", ".join(f"{k}={v}" for k, v in trace.opportunity.breakdown.items())
            lines.append(
                f"Opportunity: {trace.opportunity.score}/100 {trace.opportunity.level.name} [{parts}]"
            )
            if trace.opportunity.factors:
                lines.append(f"Signals: {', '.join(trace.opportunity.factors)}")
        if trace.burden:
            lines.append(
                f"Burden: {trace.burden.burden_level.name} (score {trace.burden.burden_score}, "
                f"{'reliable' if trace.burden.is_reliable else 'insufficient data'}, "
                f"x{trace.burden_multiplier:.1f})"
            )
        lines.append(
            f"Gates: basic={gate(trace.passed_basic)}, persona={gate(trace.passed_persona)}, "
            f"opportunity={gate(trace.passed_opportunity)}"
        )
        lines.append(f"Cooldown multiplier applied: {trace.applied_multiplier:.2f}x")
        if cooldown_ms:
            lines.append(f"Next eligible in {cooldown_ms / 60000:.1f} min")
        if trace.context and trace.context.degraded_sources:
            lines.append(f"Degraded sources: {', '.join(trace.context.degraded_sources)}")
        return "\n".join(lines)

    # ─────────────────────────────────────────────────────────────────────
    # Feedback
    # ─────────────────────────────────────────────────────────────────────

    def record_shown(self, intervention_type: InterventionType) -> None:
        """Record an intervention shown outside evaluate()'s own recording."""
        self.rate_limiter.record(intervention_type)

    def adjust_for_feedback(self, feedback: Feedback) -> float:
        """Nudge the cooldown multiplier for explicit feedback."""
        return self.rate_limiter.adjust_for_feedback(feedback)

    def escalate(self) -> float:
        return self.rate_limiter.escalate()

    def reset(self) -> float:
        return self.rate_limiter.reset()

    async def record_outcome(self, outcome: InterventionOutcome) -> None:
        """Store how the user responded and adapt the cooldown multiplier."""
        if self.outcomes is not None:
            try:
                await self.outcomes.add_outcome(outcome)
            except Exception as e:
                logger.warning(f"Could not store intervention outcome: {e}")

        if outcome.user_choice == UserChoice.DISMISS:
            self.rate_limiter.escalate()
        elif outcome.user_choice == UserChoice.GO_BACK:
            self.rate_limiter.reset()

        if outcome.feedback != Feedback.NONE:
            self.rate_limiter.adjust_for_feedback(outcome.feedback)

        self.burden_tracker.invalidate()

    def threshold_multiplier(self) -> float:
        """Multiplier for the session tracker's sustained-use threshold."""
        return self.rate_limiter.cooldown_multiplier

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        await self.decision_logger.start()

    async def shutdown(self, flush: bool = True) -> int:
        """Flush (or drop) pending decision logs.

        Returns:
            Number of dropped log entries
        """
        return await self.decision_logger.stop(flush=flush)

    def get_stats(self) -> dict:
        return {
            "decisions": self.decisions,
            "allowed": self.allowed,
            "rate_limiter": self.rate_limiter.get_stats(),
            "decision_logger": self.decision_logger.get_stats(),
        }
