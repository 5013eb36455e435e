"""Conversation and message persistence."""

from .models import ChatMessage, Conversation
from .store import MAX_CONVERSATIONS, ConversationStore, title_from_message

__all__ = [
    "MAX_CONVERSATIONS",
    "ChatMessage",
    "Conversation",
    "ConversationStore",
    "title_from_message",
]
