"""
Storage for Interlude.

Provides:
- DecisionLogStore: append-only SQLite log of decision explanations
- SqliteCounterStore / InMemoryCounterStore: rate-limiter counters
- In-memory usage history, goal, outcome and explanation stores
"""

from interlude.store.decision_log import DecisionLogStore
from interlude.store.memory import (
    InMemoryExplanationSink,
    InMemoryGoalStore,
    InMemoryOutcomeStore,
    InMemoryUsageHistory,
)
from interlude.store.preferences import InMemoryCounterStore, SqliteCounterStore

__all__ = [
    "DecisionLogStore",
    "InMemoryCounterStore",
    "InMemoryExplanationSink",
    "InMemoryGoalStore",
    "InMemoryOutcomeStore",
    "InMemoryUsageHistory",
    "SqliteCounterStore",
]
