"""SQLite storage for conversations and their message logs."""

import logging
import sqlite3
import time
from datetime import datetime
from pathlib import Path

from ..providers import Role
from .models import ChatMessage, Conversation

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_LENGTH = 30
MAX_CONVERSATIONS = 5


def _now() -> str:
    # Conversations are ordered by this value, so keep microseconds
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")


def title_from_message(text: str) -> str:
    """Conversation title from the first user message."""
    text = text.strip()
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text


class ConversationStore:
    """Append-only message log keyed by conversation.

    Messages are returned in timestamp order. Each conversation also keeps
    the rolling-synthesis checkpoint, which only moves forward.
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
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def init_db(self) -> None:
        """Create the conversation tables if they don't exist."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS conversations (
                id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                title              TEXT NOT NULL,
                synthesized_count  INTEGER NOT NULL DEFAULT 0,
                created_at         TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at         TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id  INTEGER NOT NULL
                                 REFERENCES conversations(id) ON DELETE CASCADE,
                role             TEXT NOT NULL,
                content          TEXT NOT NULL,
                timestamp        REAL NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
            "ON chat_messages(conversation_id, timestamp)"
        )
        conn.commit()

    def create(self, title: str = DEFAULT_TITLE) -> Conversation:
        """Start a new, empty conversation."""
        conn = self._get_connection()
        cursor = conn.execute(
            "INSERT INTO conversations (title, updated_at) VALUES (?, ?) RETURNING *",
            (title, _now()),
        )
        row = cursor.fetchone()
        conn.commit()
        return self._row_to_conversation(row)

    def get(self, conversation_id: int) -> Conversation | None:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return self._row_to_conversation(row) if row else None

    def list_all(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT * FROM conversations ORDER BY updated_at DESC, id DESC"
        )
        return [self._row_to_conversation(row) for row in cursor.fetchall()]

    def count(self) -> int:
        conn = self._get_connection()
        return conn.execute("SELECT COUNT(*) AS n FROM conversations").fetchone()["n"]

    def find_empty(self) -> Conversation | None:
        """The oldest conversation without any messages, if there is one."""
        conn = self._get_connection()
        row = conn.execute("""
            SELECT * FROM conversations c
            WHERE NOT EXISTS (
                SELECT 1 FROM chat_messages m WHERE m.conversation_id = c.id
            )
            ORDER BY c.id
            LIMIT 1
        """).fetchone()
        return self._row_to_conversation(row) if row else None

    def start_new(self, limit: int = MAX_CONVERSATIONS) -> Conversation:
        """Open a conversation for a new chat.

        An existing empty conversation is reused rather than creating another.
        Otherwise the least recently updated conversations are deleted until
        the new one fits within ``limit``.

        Args:
            limit: Maximum number of stored conversations.

        Returns:
            The reused or newly created conversation.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        empty = self.find_empty()
        if empty is not None:
            return empty

        conn = self._get_connection()
        excess = self.count() - limit + 1
        if excess > 0:
            rows = conn.execute(
                "SELECT id FROM conversations ORDER BY updated_at, id LIMIT ?",
                (excess,),
            ).fetchall()
            for row in rows:
                logger.info(f"Deleting conversation {row['id']} to stay within {limit}")
                self.delete(row["id"])

        return self.create()

    def resume(self) -> Conversation:
        """Conversation to open at start-up.

        An empty conversation if one exists, else the most recently updated
        one, else a new one.
        """
        empty = self.find_empty()
        if empty is not None:
            return empty
        conversations = self.list_all()
        if conversations:
            return conversations[0]
        return self.create()

    def set_title(self, conversation_id: int, title: str) -> None:
        conn = self._get_connection()
        conn.execute(
            "UPDATE conversations SET title = ? WHERE id = ?",
            (title, conversation_id),
        )
        conn.commit()

    def delete(self, conversation_id: int) -> bool:
        """Delete a conversation, its messages and its checkpoint.

        Returns:
            True if a conversation was deleted.
        """
        conn = self._get_connection()
        conn.execute(
            "DELETE FROM chat_messages WHERE conversation_id = ?", (conversation_id,)
        )
        cursor = conn.execute(
            "DELETE FROM conversations WHERE id = ?", (conversation_id,)
        )
        conn.commit()
        return cursor.rowcount > 0

    def add_message(self, conversation_id: int, role: str, content: str) -> ChatMessage:
        """Append a completed message to a conversation.

        Raises:
            ValueError: If the role is unknown or the conversation is missing.
        """
        role = Role(role).value
        if self.get(conversation_id) is None:
            raise ValueError(f"Unknown conversation: {conversation_id}")

        conn = self._get_connection()
        timestamp = time.time()
        cursor = conn.execute(
            """
            INSERT INTO chat_messages (conversation_id, role, content, timestamp)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            (conversation_id, role, content, timestamp),
        )
        message_id = cursor.fetchone()["id"]
        conn.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (_now(), conversation_id),
        )
        conn.commit()
        return ChatMessage(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            timestamp=timestamp,
        )

    def get_messages(
        self, conversation_id: int, offset: int = 0
    ) -> list[ChatMessage]:
        """Messages in timestamp order, skipping the first ``offset``."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT * FROM chat_messages
            WHERE conversation_id = ?
            ORDER BY timestamp, id
            LIMIT -1 OFFSET ?
            """,
            (conversation_id, max(offset, 0)),
        )
        return [self._row_to_message(row) for row in cursor.fetchall()]

    def count_messages(self, conversation_id: int) -> int:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM chat_messages WHERE conversation_id = ?",
            (conversation_id,),
        ).fetchone()
        return row["n"]

    def get_checkpoint(self, conversation_id: int) -> int:
        """Messages already scanned by rolling synthesis (0 if unknown)."""
        conversation = self.get(conversation_id)
        return conversation.synthesized_count if conversation else 0

    def advance_checkpoint(self, conversation_id: int, count: int) -> int:
        """Move the checkpoint forward to ``count``; never moves it back.

        Returns:
            The checkpoint after the update.
        """
        conn = self._get_connection()
        conn.execute(
            """
            UPDATE conversations SET synthesized_count = ?
            WHERE id = ? AND synthesized_count < ?
            """,
            (count, conversation_id, count),
        )
        conn.commit()
        return self.get_checkpoint(conversation_id)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_conversation(self, row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            title=row["title"],
            synthesized_count=row["synthesized_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_message(self, row: sqlite3.Row) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            timestamp=row["timestamp"],
        )
