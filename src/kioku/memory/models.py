"""Data models for the memory system."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Fact:
    """A fact stored in memory about the user.

    Keys are unique: saving a fact with an existing key replaces its value.

    Attributes:
        key: Normalized key (e.g., 'preferred_ide', 'work_at_acme').
        value: The fact content.
        source: 'auto' for LLM-extracted, 'explicit' for user-stated.
        created_at: ISO timestamp when the key was first stored.
        updated_at: ISO timestamp when last written.
    """

    key: str
    value: str
    source: str = "auto"
    created_at: str | None = None
    updated_at: str | None = None
