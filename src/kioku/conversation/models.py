"""Data models for conversations."""

from dataclasses import dataclass

from ..providers import Message


@dataclass(frozen=True)
class Conversation:
    """A conversation and its rolling-synthesis checkpoint.

    Attributes:
        id: Database ID.
        title: Display title, taken from the first user message.
        synthesized_count: Messages already scanned for facts.
        created_at: ISO timestamp when created.
        updated_at: ISO timestamp of the last message.
    """

    id: int
    title: str
    synthesized_count: int = 0
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class ChatMessage:
    """A persisted message in a conversation."""

    id: int
    conversation_id: int
    role: str
    content: str
    timestamp: float

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content)
