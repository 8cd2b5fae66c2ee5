"""In-memory collaborators.

Reference implementations of the usage-history, goal, outcome and
explanation-sink protocols. Used by the tests and by embedders whose
persistence lives elsewhere.
"""

from datetime import datetime

from interlude.contracts.decision import DecisionExplanation
from interlude.contracts.history import GoalConfig, InterventionOutcome, UsageRecord


class InMemoryUsageHistory:
    """Usage-history store backed by a list."""

    def __init__(self, records: list[UsageRecord] | None = None):
        self.records: list[UsageRecord] = list(records or [])

    async def sessions_between(
        self, start: datetime, end: datetime
    ) -> list[UsageRecord]:
        return [r for r in self.records if start <= r.start_time < end]

    async def sessions_for_app(
        self, app: str, start: datetime, end: datetime
    ) -> list[UsageRecord]:
        return [
            r for r in self.records
            if r.target_app == app and start <= r.start_time < end
        ]

    async def add_session(self, record: UsageRecord) -> None:
        self.records.append(record)


class InMemoryGoalStore:
    def __init__(self, goals: dict[str, GoalConfig] | None = None):
        self.goals: dict[str, GoalConfig] = dict(goals or {})

    async def goal_for(self, app: str) -> GoalConfig | None:
        return self.goals.get(app)

    def set_goal(self, goal: GoalConfig) -> None:
        self.goals[goal.target_app] = goal


class InMemoryOutcomeStore:
    """Outcome store backed by a list kept in insertion order."""

    def __init__(self, outcomes: list[InterventionOutcome] | None = None):
        self.outcomes: list[InterventionOutcome] = list(outcomes or [])

    async def outcomes_between(
        self, start: datetime, end: datetime
    ) -> list[InterventionOutcome]:
        return sorted(
            (o for o in self.outcomes if start <= o.timestamp < end),
            key=lambda o: o.timestamp,
        )

    async def recent_for_app(
        self, app: str, limit: int = 50
    ) -> list[InterventionOutcome]:
        matching = [o for o in self.outcomes if o.target_app == app]
        matching.sort(key=lambda o: o.timestamp, reverse=True)
        return matching[:limit]

    async def add_outcome(self, outcome: InterventionOutcome) -> None:
        self.outcomes.append(outcome)


class InMemoryExplanationSink:
    """Explanation sink that keeps every record in a list."""

    def __init__(self) -> None:
        self.explanations: list[DecisionExplanation] = []

    def append(self, explanation: DecisionExplanation) -> None:
        self.explanations.append(explanation)

    def __len__(self) -> int:
        return len(self.explanations)
