"""SQLite storage for reminders."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import Reminder, ReminderDirective, to_local_naive


class ReminderStore:
    """Persistent storage for reminders using SQLite."""

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
        """Create the reminders table if it doesn't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS reminders (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                text        TEXT NOT NULL,
                due_at      TEXT NOT NULL,
                completed   INTEGER NOT NULL DEFAULT 0,
                created_at  TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_reminders_due ON reminders(due_at)")
        conn.commit()

    def add(self, directive: ReminderDirective) -> Reminder:
        """Persist a parsed reminder directive."""
        due_at = to_local_naive(directive.due_at)
        conn = self._get_connection()
        cursor = conn.execute(
            "INSERT INTO reminders (text, due_at) VALUES (?, ?) RETURNING id",
            (directive.description, due_at.isoformat()),
        )
        reminder_id = cursor.fetchone()["id"]
        conn.commit()
        return Reminder(id=reminder_id, text=directive.description, due_at=due_at)

    def get(self, reminder_id: int) -> Reminder | None:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id, text, due_at, completed FROM reminders WHERE id = ?",
            (reminder_id,),
        ).fetchone()
        return self._row_to_reminder(row) if row else None

    def list_all(self, include_completed: bool = False) -> list[Reminder]:
        """Reminders ordered pending first, then by due time."""
        conn = self._get_connection()
        query = "SELECT id, text, due_at, completed FROM reminders"
        if not include_completed:
            query += " WHERE completed = 0"
        query += " ORDER BY completed, due_at"
        return [self._row_to_reminder(row) for row in conn.execute(query).fetchall()]

    def overdue(self, now: datetime | None = None) -> list[Reminder]:
        """Pending reminders whose due time has passed."""
        return [r for r in self.list_all() if r.is_overdue(now)]

    def complete(self, reminder_id: int) -> bool:
        """Mark a reminder done. Returns False if it doesn't exist."""
        conn = self._get_connection()
        cursor = conn.execute(
            "UPDATE reminders SET completed = 1 WHERE id = ?", (reminder_id,)
        )
        conn.commit()
        return cursor.rowcount > 0

    def delete(self, reminder_id: int) -> bool:
        conn = self._get_connection()
        cursor = conn.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_reminder(self, row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=row["id"],
            text=row["text"],
            due_at=to_local_naive(datetime.fromisoformat(row["due_at"])),
            completed=bool(row["completed"]),
        )
