"""Chat service: one send from user message to persisted reply."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass

from ..conversation import ConversationStore, title_from_message
from ..conversation.store import DEFAULT_TITLE
from ..logging import JSONLLogger, get_logger
from ..memory import Fact, MemoryManager, RollingSynthesizer, SynthesisResult
from ..providers import LLMError, Message, OnUpdate, ProviderRegistry, TransportError
from ..reminders import Reminder, ReminderStore, parse_reminder
from .prompt import SUMMARY_PROMPT, SUMMARY_SYSTEM_PROMPT, build_system_prompt, diagnose

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = "Note on previous conversation."


class ChatError(Exception):
    """A send failed; carries a suggestion for the user.

    Attributes:
        diagnosis: Actionable guidance derived from the error.
        status_code: HTTP status when the provider answered.
    """

    def __init__(
        self, message: str, diagnosis: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.diagnosis = diagnosis
        self.status_code = status_code


@dataclass
class ChatResult:
    """Result of a send."""

    conversation_id: int
    reply: str
    explicit_fact: Fact | None = None
    reminder: Reminder | None = None
    synthesis: SynthesisResult | None = None
    superseded: bool = False


class SendGuard:
    """Per-conversation staleness tokens.

    Every send takes a fresh token; only the holder of the latest token for
    a conversation may update the UI or persist its reply.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: dict[int, int] = {}

    def begin(self, conversation_id: int) -> int:
        token = next(self._counter)
        self._latest[conversation_id] = token
        return token

    def is_current(self, conversation_id: int, token: int) -> bool:
        return self._latest.get(conversation_id) == token


class ChatService:
    """Runs the send flow for a conversation.

    Order of a send: explicit memory, persist the user message, snapshot the
    provider, stream the reply, then parse reminders, persist the reply and
    run rolling synthesis.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        conversations: ConversationStore,
        memory: MemoryManager,
        reminders: ReminderStore,
        synthesizer: RollingSynthesizer | None = None,
        event_log: JSONLLogger | None = None,
        date_locales: list[str] | None = None,
    ) -> None:
        self.registry = registry
        self.conversations = conversations
        self.memory = memory
        self.reminders = reminders
        self.synthesizer = synthesizer
        self.event_log = event_log or get_logger()
        self.date_locales = date_locales
        self.guard = SendGuard()
        self._pending: dict[int, str] = {}

    def pending_reply(self, conversation_id: int) -> str | None:
        """Text of the assistant reply currently streaming, if any."""
        return self._pending.get(conversation_id)

    def build_messages(self, conversation_id: int, user_text: str) -> list[Message]:
        """System prompt, stored history, then the new user message."""
        memory_block = self.memory.format_for_prompt(self.memory.load_all())
        history = [m.to_message() for m in self.conversations.get_messages(conversation_id)]
        return [
            Message(role="system", content=build_system_prompt(memory_block)),
            *history,
            Message(role="user", content=user_text),
        ]

    async def send(
        self,
        conversation_id: int,
        text: str,
        on_update: OnUpdate | None = None,
    ) -> ChatResult:
        """Send a user message and stream the assistant's reply.

        Args:
            conversation_id: Target conversation.
            text: The user's message.
            on_update: Called with the cumulative reply text as it grows.

        Returns:
            ChatResult; ``superseded`` is set when a newer send on the same
            conversation started before this one finished.

        Raises:
            ValueError: If the message is empty or the conversation is unknown.
            ChatError: If no provider is configured or the request failed.
        """
        if not text.strip():
            raise ValueError("Message is empty")
        if self.conversations.get(conversation_id) is None:
            raise ValueError(f"Unknown conversation: {conversation_id}")

        token = self.guard.begin(conversation_id)

        explicit_fact = self.memory.remember_explicit(text)
        messages = self.build_messages(conversation_id, text)

        is_first = not any(
            m.role == "user" for m in self.conversations.get_messages(conversation_id)
        )
        self.conversations.add_message(conversation_id, "user", text)
        if is_first:
            conversation = self.conversations.get(conversation_id)
            if conversation and conversation.title == DEFAULT_TITLE:
                self.conversations.set_title(conversation_id, title_from_message(text))

        try:
            provider = self.registry.snapshot()
        except LLMError as e:
            self.event_log.log_error(conversation_id, str(e))
            raise ChatError(str(e), diagnose(str(e))) from e

        def handle_update(cumulative: str) -> None:
            if not self.guard.is_current(conversation_id, token):
                return
            self._pending[conversation_id] = cumulative
            if on_update is not None:
                on_update(cumulative)

        self._pending[conversation_id] = ""
        self.event_log.log_send(conversation_id, provider.name, len(messages))
        started = time.monotonic()

        try:
            reply = await provider.chat_completion(messages, handle_update)
        except LLMError as e:
            current = self.guard.is_current(conversation_id, token)
            if current:
                self._pending.pop(conversation_id, None)
            status_code = e.status_code if isinstance(e, TransportError) else None
            self.event_log.log_error(
                conversation_id, str(e), provider=provider.name, status_code=status_code
            )
            if not current:
                return ChatResult(conversation_id, reply="", superseded=True)
            raise ChatError(str(e), diagnose(str(e)), status_code=status_code) from e

        duration_ms = (time.monotonic() - started) * 1000
        if not self.guard.is_current(conversation_id, token):
            logger.info(f"Discarding superseded reply in conversation {conversation_id}")
            self.event_log.log_complete(
                conversation_id, provider.name, duration_ms, len(reply), superseded=True
            )
            return ChatResult(conversation_id, reply=reply, superseded=True)

        self._pending.pop(conversation_id, None)
        self.event_log.log_complete(conversation_id, provider.name, duration_ms, len(reply))

        reminder = None
        directive = parse_reminder(reply, self.date_locales)
        if directive is not None:
            reminder = self.reminders.add(directive)
            self.event_log.log_reminder(
                conversation_id, reminder.id, reminder.due_at.isoformat()
            )

        self.conversations.add_message(conversation_id, "assistant", reply)

        synthesis = None
        if self.synthesizer is not None:
            synthesis = await self.synthesizer.maybe_synthesize(conversation_id)

        return ChatResult(
            conversation_id,
            reply=reply,
            explicit_fact=explicit_fact,
            reminder=reminder,
            synthesis=synthesis,
        )

    async def summarize(self, conversation_id: int) -> str:
        """One-sentence summary of a conversation; a fallback on failure."""
        history = self.conversations.get_messages(conversation_id)
        history_text = "\n".join(f"{m.role}: {m.content}" for m in history)

        try:
            return await self.registry.chat_completion([
                Message(role="system", content=SUMMARY_SYSTEM_PROMPT),
                Message(role="user", content=SUMMARY_PROMPT + history_text),
            ])
        except LLMError as e:
            logger.warning(f"Summarization failed: {e}")
            return SUMMARY_FALLBACK
