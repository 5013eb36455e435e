"""Explicit memory: facts the user states outright ("remember that ...")."""

import re

from .models import Fact

FALLBACK_KEY = "user_preference"
KEY_WORDS = 3

# Ordered; the first rule that matches wins
EXPLICIT_PATTERNS = [
    re.compile(
        r"\b(?:remember|don'?t forget|keep in mind|note)\s+(?:that\s+)?(?:i\s+|my\s+)?(.+)",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bi\s+(?:prefer|like|love|hate|use|work with|am|have)\s+(.+)",
        re.IGNORECASE,
    ),
]


def normalize_key(text: str) -> str:
    """Lower-case, join words with underscores, drop everything else."""
    key = "_".join(text.split()).lower()
    return re.sub(r"[^a-z0-9_]", "", key).strip("_")


def derive_key(fact_text: str) -> str:
    """Key from the first few words of a fact, or the fallback key."""
    words = fact_text.split()[:KEY_WORDS]
    return normalize_key(" ".join(words)) or FALLBACK_KEY


def extract_explicit_memory(text: str) -> Fact | None:
    """Match a user message against the explicit-memory rules.

    Args:
        text: Raw user message.

    Returns:
        One explicit Fact, or None if no rule matches.
    """
    for pattern in EXPLICIT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue

        fact_text = re.sub(r"[.!?]$", "", match.group(1).strip())
        if not fact_text:
            continue
        return Fact(key=derive_key(fact_text), value=fact_text, source="explicit")

    return None
