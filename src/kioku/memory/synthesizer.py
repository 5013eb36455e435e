"""Rolling fact synthesis over a conversation's unprocessed tail."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .extractor import FactExtractor
from .models import Fact
from .store import MemoryStore

if TYPE_CHECKING:
    from ..conversation import ConversationStore
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)

SYNTHESIS_THRESHOLD = 6


@dataclass
class SynthesisResult:
    """Outcome of one ``maybe_synthesize`` call.

    Attributes:
        triggered: Whether enough new messages existed to run extraction.
        checkpoint: Checkpoint after the call.
        facts: Facts written by this pass.
        error: Why extraction failed, if it did.
    """

    triggered: bool
    checkpoint: int
    facts: list[Fact] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.triggered and self.error is None


class RollingSynthesizer:
    """Extracts facts once enough unscanned messages have accumulated.

    Each conversation keeps a checkpoint: the number of messages already
    scanned. Once ``threshold`` messages sit past it, only that tail is sent
    for extraction. The checkpoint moves forward only after the response was
    parsed, so a failed pass is retried with the same tail next time.
    Failures are logged and never raised.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        store: MemoryStore,
        extractor: FactExtractor,
        threshold: int = SYNTHESIS_THRESHOLD,
        event_log: JSONLLogger | None = None,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.conversations = conversations
        self.store = store
        self.extractor = extractor
        self.threshold = threshold
        self.event_log = event_log

    def pending(self, conversation_id: int) -> int:
        """Messages not yet scanned."""
        total = self.conversations.count_messages(conversation_id)
        return total - self.conversations.get_checkpoint(conversation_id)

    async def maybe_synthesize(self, conversation_id: int) -> SynthesisResult:
        """Run extraction on the unscanned tail if it reached the threshold."""
        total = self.conversations.count_messages(conversation_id)
        checkpoint = self.conversations.get_checkpoint(conversation_id)

        if total - checkpoint < self.threshold:
            return SynthesisResult(triggered=False, checkpoint=checkpoint)

        tail = self.conversations.get_messages(conversation_id, offset=checkpoint)
        tail = tail[: total - checkpoint]

        try:
            facts = await self.extractor.extract([m.to_message() for m in tail])
            saved = [self.store.save_fact(fact) for fact in facts]
            new_checkpoint = self.conversations.advance_checkpoint(conversation_id, total)
        except Exception as e:
            logger.warning(f"Rolling synthesis failed for conversation {conversation_id}: {e}")
            self._record(conversation_id, False, checkpoint=checkpoint, error=str(e))
            return SynthesisResult(triggered=True, checkpoint=checkpoint, error=str(e))

        logger.debug(
            f"Rolling synthesis stored {len(saved)} fact(s); checkpoint {new_checkpoint}"
        )
        self._record(conversation_id, True, facts=len(saved), checkpoint=new_checkpoint)
        return SynthesisResult(triggered=True, checkpoint=new_checkpoint, facts=saved)

    def _record(self, conversation_id: int, success: bool, **fields: Any) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.log_synthesis(conversation_id, success, **fields)
        except OSError as e:
            logger.warning(f"Could not write synthesis event: {e}")
