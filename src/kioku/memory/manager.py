"""Memory manager for orchestrating fact storage and retrieval."""

from .explicit import extract_explicit_memory, normalize_key
from .models import Fact
from .store import MemoryStore


class MemoryManager:
    """Orchestrates memory operations: loading, formatting, and storage.

    This is the main interface for the memory system used by the chat
    service and the CLI.
    """

    def __init__(self, store: MemoryStore) -> None:
        """Initialize the manager with a store.

        Args:
            store: The MemoryStore for persistence.
        """
        self.store = store

    def load_all(self) -> list[Fact]:
        """Load all facts from storage."""
        return self.store.get_all()

    def format_for_prompt(self, facts: list[Fact]) -> str:
        """Format facts as a block for the system prompt.

        Args:
            facts: List of facts to format.

        Returns:
            The facts block, or empty string if no facts.
        """
        if not facts:
            return ""

        lines = [f"* {fact.key}: {fact.value}" for fact in facts]
        return "User Profile Facts:\n" + "\n".join(lines)

    def remember_explicit(self, text: str) -> Fact | None:
        """Store the fact stated in a user message, if any.

        Runs synchronously so the fact is already in the store when the
        context for this same message is assembled.
        """
        fact = extract_explicit_memory(text)
        if fact is None:
            return None
        return self.store.save_fact(fact)

    def remember(self, key: str, value: str) -> Fact:
        """Store a fact under a user-supplied key.

        Raises:
            ValueError: If the key normalizes to nothing or value is empty.
        """
        normalized = normalize_key(key)
        if not normalized or not value.strip():
            raise ValueError("Both a key and a value are required")
        return self.store.save_fact(
            Fact(key=normalized, value=value.strip(), source="explicit")
        )

    def forget(self, key: str) -> bool:
        """Remove a fact by key."""
        return self.store.delete(normalize_key(key))
