"""Fact extraction from conversation segments using the active provider."""

import json
import logging
from typing import Any, Protocol

from ..providers import Message
from .explicit import normalize_key
from .models import Fact

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = (
    "Extract user facts as JSON. Output only valid JSON, no explanation."
)

EXTRACTION_PROMPT = """Analyze this conversation segment and extract NEW facts about the user.
Focus on: preferences, personal info, habits, work context, relationships, goals.
Be specific with keys (e.g., "preferred_ide" not just "preference").
Return ONLY a flat JSON object mapping keys to values. If no new facts, return {}.

Conversation:
"""


class FactParseError(ValueError):
    """The extraction response did not contain a usable JSON object."""


class ChatCompleter(Protocol):
    async def chat_completion(self, messages: list[Message], on_update: Any = None) -> str:
        ...


def parse_facts(content: str) -> list[Fact]:
    """Parse the first top-level JSON object in a response into facts.

    Args:
        content: Raw provider output, possibly wrapped in prose or fences.

    Returns:
        Facts in the order they appear; an empty object yields [].

    Raises:
        FactParseError: If no JSON object can be decoded.
    """
    start = content.find("{")
    if start == -1:
        raise FactParseError("No JSON object in extraction response")

    try:
        data, _ = json.JSONDecoder().raw_decode(content, start)
    except json.JSONDecodeError as e:
        raise FactParseError(f"Malformed extraction response: {e}") from e

    if not isinstance(data, dict):
        raise FactParseError("Extraction response is not a JSON object")

    facts = []
    for raw_key, raw_value in data.items():
        key = normalize_key(str(raw_key))
        if not key or raw_value is None:
            logger.debug(f"Skipping fact with empty key or value: {raw_key!r}")
            continue
        if isinstance(raw_value, (dict, list)):
            value = json.dumps(raw_value, ensure_ascii=False)
        else:
            value = str(raw_value)
        facts.append(Fact(key=key, value=value, source="auto"))
    return facts


class FactExtractor:
    """Asks the LLM for the facts observed in a slice of conversation."""

    def __init__(self, llm: ChatCompleter) -> None:
        """Initialize the extractor.

        Args:
            llm: Anything with ``chat_completion``; usually the provider registry,
                 so the active provider is resolved per call.
        """
        self.llm = llm

    async def extract(self, messages: list[Message]) -> list[Fact]:
        """Extract facts from conversation messages.

        Raises:
            LLMError: If the provider call fails.
            FactParseError: If the response can't be parsed.
        """
        if not messages:
            return []

        prompt = EXTRACTION_PROMPT + self._format_conversation(messages)
        response = await self.llm.chat_completion([
            Message(role="system", content=EXTRACTION_SYSTEM_PROMPT),
            Message(role="user", content=prompt),
        ])
        return parse_facts(response)

    def _format_conversation(self, messages: list[Message]) -> str:
        return "\n".join(f"{m.role}: {m.content}" for m in messages)
