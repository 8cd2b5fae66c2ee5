"""
Counter stores.

Small key-value stores for rate-limiter counters, timestamps and the
persisted cooldown multiplier. Values are JSON-encoded so ints, floats,
strings and lists round-trip unchanged.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class InMemoryCounterStore:
    """Counter store for tests and ephemeral runs."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def set_many(self, values: dict[str, Any]) -> None:
        self._values.update(values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class SqliteCounterStore:
    """Durable counter store in a single SQLite table."""

    def __init__(self, db_path: Path | str):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
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

    def get(self, key: str, default: Any = None) -> Any:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT value_json FROM preferences WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return default
        return json.loads(row["value_json"])

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: dict[str, Any]) -> None:
        with self._conn() as conn:
            conn.executemany(
                """
                INSERT INTO preferences (key, value_json, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at
                """,
                [(key, json.dumps(value)) for key, value in values.items()],
            )

    def as_dict(self) -> dict[str, Any]:
        with self._conn() as conn:
            rows = conn.execute("SELECT key, value_json FROM preferences").fetchall()
        return {row["key"]: json.loads(row["value_json"]) for row in rows}
