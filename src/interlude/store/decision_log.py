"""Decision log - append-only SQLite record of every decision explanation."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator

from interlude.contracts.decision import DecisionExplanation

logger = logging.getLogger(__name__)


class DecisionLogStore:
    """Durable sink for DecisionExplanation records.

    Records are never modified once written; the only deletion is the
    retention cleanup. Indexed columns mirror the fields analytics group by,
    and the full explanation is kept as JSON so it can be rebuilt exactly.

    Thread Safety:
    - Each call opens its own connection, so appends may come from the
      decision logger's worker thread while readers query elsewhere
    """

    def __init__(self, db_path: Path | str):
        """Initialize decision log.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS decisions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    explanation_id TEXT NOT NULL UNIQUE,
                    timestamp TEXT NOT NULL,
                    target_app TEXT NOT NULL,
                    intervention_type TEXT NOT NULL,
                    decision TEXT NOT NULL,
                    decision_source TEXT NOT NULL,
                    blocking_reason TEXT,
                    opportunity_score INTEGER,
                    opportunity_level TEXT,
                    persona TEXT,
                    burden_level TEXT,
                    applied_multiplier REAL NOT NULL,
                    explanation_json TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_decisions_timestamp
                    ON decisions(timestamp);
                CREATE INDEX IF NOT EXISTS idx_decisions_app
                    ON decisions(target_app);
                CREATE INDEX IF NOT EXISTS idx_decisions_decision
                    ON decisions(decision);
            """)

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with automatic commit/rollback."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row(e: DecisionExplanation) -> tuple:
        return (
            e.explanation_id,
            e.timestamp.isoformat(),
            e.target_app,
            e.intervention_type.value,
            e.decision.value,
            e.decision_source.value,
            e.blocking_reason.value if e.blocking_reason else None,
            e.opportunity_score,
            e.opportunity_level.value if e.opportunity_level else None,
            e.persona.value if e.persona else None,
            e.burden_level.value if e.burden_level else None,
            e.applied_cooldown_multiplier,
            e.model_dump_json(),
        )

    _INSERT = """
        INSERT INTO decisions
            (explanation_id, timestamp, target_app, intervention_type,
             decision, decision_source, blocking_reason, opportunity_score,
             opportunity_level, persona, burden_level, applied_multiplier,
             explanation_json)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """

    def append(self, explanation: DecisionExplanation) -> None:
        """Append one explanation."""
        with self._conn() as conn:
            conn.execute(self._INSERT, self._row(explanation))

    def append_batch(self, explanations: list[DecisionExplanation]) -> None:
        """Append multiple explanations in a single transaction."""
        with self._conn() as conn:
            conn.executemany(self._INSERT, [self._row(e) for e in explanations])

    # ─────────────────────────────────────────────────────────────────────
    # Query Methods
    # ─────────────────────────────────────────────────────────────────────

    def recent(
        self, limit: int = 20, target_app: str | None = None
    ) -> list[DecisionExplanation]:
        """Most recent explanations, newest first."""
        query = "SELECT explanation_json FROM decisions"
        params: list = []
        if target_app:
            query += " WHERE target_app = ?"
            params.append(target_app)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        with self._conn() as conn:
            rows = conn.execute(query, params).fetchall()
        return [DecisionExplanation.model_validate_json(r["explanation_json"]) for r in rows]

    def between(self, start: datetime, end: datetime) -> list[DecisionExplanation]:
        """Explanations with start <= timestamp < end, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT explanation_json FROM decisions
                WHERE timestamp >= ? AND timestamp < ?
                ORDER BY timestamp, id
                """,
                (start.isoformat(), end.isoformat()),
            ).fetchall()
        return [DecisionExplanation.model_validate_json(r["explanation_json"]) for r in rows]

    def count(self) -> int:
        with self._conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM decisions").fetchone()[0]

    def skip_stats(self, since: datetime) -> dict[str, int]:
        """Skipped decisions per blocking reason."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT blocking_reason, COUNT(*) AS n FROM decisions
                WHERE decision = 'skip' AND timestamp >= ?
                GROUP BY blocking_reason
                ORDER BY n DESC
                """,
                (since.isoformat(),),
            ).fetchall()
        return {(r["blocking_reason"] or "unknown"): r["n"] for r in rows}

    def decisions_by_level(self, since: datetime) -> dict[str, dict[str, int]]:
        """Shown/skipped counts per opportunity level."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT opportunity_level, decision, COUNT(*) AS n FROM decisions
                WHERE timestamp >= ?
                GROUP BY opportunity_level, decision
                """,
                (since.isoformat(),),
            ).fetchall()

        result: dict[str, dict[str, int]] = {}
        for r in rows:
            level = r["opportunity_level"] or "unknown"
            result.setdefault(level, {"show": 0, "skip": 0})[r["decision"]] = r["n"]
        return result

    def summary(self, since: datetime) -> dict:
        """Aggregate decision statistics since a point in time."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN decision = 'show' THEN 1 ELSE 0 END) AS shown,
                    AVG(opportunity_score) AS avg_score,
                    AVG(applied_multiplier) AS avg_multiplier
                FROM decisions
                WHERE timestamp >= ?
                """,
                (since.isoformat(),),
            ).fetchone()

            personas = conn.execute(
                """
                SELECT persona, COUNT(*) AS n FROM decisions
                WHERE timestamp >= ? GROUP BY persona
                """,
                (since.isoformat(),),
            ).fetchall()

        total = row["total"] or 0
        shown = row["shown"] or 0
        return {
            "since": since.isoformat(),
            "total": total,
            "shown": shown,
            "skipped": total - shown,
            "show_rate": shown / total if total else 0.0,
            "avg_opportunity_score": round(row["avg_score"], 1) if row["avg_score"] is not None else None,
            "avg_applied_multiplier": round(row["avg_multiplier"], 2) if row["avg_multiplier"] is not None else None,
            "skip_reasons": self.skip_stats(since),
            "by_opportunity_level": self.decisions_by_level(since),
            "by_persona": {(p["persona"] or "unknown"): p["n"] for p in personas},
        }

    def export_jsonl(self, path: Path | str, since: datetime | None = None) -> int:
        """Write explanations to a JSON-lines file for offline analysis.

        Returns:
            Number of records written
        """
        since = since or datetime.min
        records = self.between(since, datetime.max)
        with open(path, "w") as f:
            for e in records:
                f.write(json.dumps(e.model_dump(mode="json")) + "\n")
        return len(records)

    def cleanup(self, older_than_days: int = 90, now: datetime | None = None) -> int:
        """Delete explanations older than the retention window.

        Returns:
            Number of deleted records
        """
        cutoff = (now or datetime.now()) - timedelta(days=older_than_days)
        with self._conn() as conn:
            cursor = conn.execute(
                "DELETE FROM decisions WHERE timestamp < ?", (cutoff.isoformat(),)
            )
            deleted = cursor.rowcount
        if deleted:
            logger.info(f"Removed {deleted} decision records older than {older_than_days} days")
        return deleted
