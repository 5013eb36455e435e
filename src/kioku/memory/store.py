"""SQLite storage for memory facts."""

import sqlite3
from pathlib import Path

from .models import Fact


class MemoryStore:
    """Persistent storage for facts using SQLite.

    Facts are keyed by their normalized key. Writes are upserts and the last
    write wins; values are never merged.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the facts table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS facts (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                source      TEXT NOT NULL DEFAULT 'auto',
                created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_updated ON facts(updated_at)")
        conn.commit()

    def save_fact(self, fact: Fact) -> Fact:
        """Save a fact, replacing any existing value for its key.

        Args:
            fact: The fact to save.

        Returns:
            The stored fact with its timestamps.
        """
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO facts (key, value, source)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                source = excluded.source,
                updated_at = datetime('now')
            RETURNING created_at, updated_at
            """,
            (fact.key, fact.value, fact.source),
        )
        row = cursor.fetchone()
        conn.commit()
        return Fact(
            key=fact.key,
            value=fact.value,
            source=fact.source,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def save_facts(self, facts: list[Fact]) -> int:
        """Save multiple facts in order, so later duplicates win.

        Returns:
            Number of writes performed.
        """
        count = 0
        for fact in facts:
            self.save_fact(fact)
            count += 1
        return count

    def get_all(self) -> list[Fact]:
        """Get all facts, ordered by key."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT key, value, source, created_at, updated_at FROM facts ORDER BY key"
        )
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def get(self, key: str) -> Fact | None:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT key, value, source, created_at, updated_at FROM facts WHERE key = ?",
            (key,),
        ).fetchone()
        return self._row_to_fact(row) if row else None

    def delete(self, key: str) -> bool:
        """Delete the fact stored under a key.

        Returns:
            True if a fact was deleted, False otherwise.
        """
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM facts WHERE key = ?", (key,))
        conn.commit()
        return cursor.rowcount > 0

    def clear(self) -> int:
        """Delete every fact. Returns the number removed."""
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM facts")
        conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_fact(self, row: sqlite3.Row) -> Fact:
        """Convert a database row to a Fact."""
        return Fact(
            key=row["key"],
            value=row["value"],
            source=row["source"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
