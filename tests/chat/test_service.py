"""Tests for ChatService."""

import asyncio
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from conftest import FakeProvider
from kioku.chat import ChatError, ChatService
from kioku.chat.service import SUMMARY_FALLBACK, SendGuard
from kioku.conversation import ConversationStore
from kioku.logging import JSONLLogger
from kioku.memory import FactExtractor, MemoryManager, MemoryStore, RollingSynthesizer
from kioku.providers import ConfigurationError, TransportError
from kioku.reminders import ReminderStore


class FakeRegistry:
    """Registry stand-in holding one provider (or none)."""

    def __init__(self, provider=None) -> None:
        self.provider = provider

    def snapshot(self):
        if self.provider is None:
            raise ConfigurationError("No AI provider configured. Set a provider.")
        return self.provider

    async def chat_completion(self, messages, on_update=None):
        return await self.snapshot().chat_completion(messages, on_update)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(["Hello there!"])


@pytest.fixture
def registry(provider: FakeProvider) -> FakeRegistry:
    return FakeRegistry(provider)


@pytest.fixture
def service(
    registry: FakeRegistry,
    conversations: ConversationStore,
    memory_store: MemoryStore,
    reminder_store: ReminderStore,
    event_log: JSONLLogger,
) -> ChatService:
    return ChatService(
        registry,
        conversations,
        MemoryManager(memory_store),
        reminder_store,
        event_log=event_log,
    )


@pytest.fixture
def conversation_id(conversations: ConversationStore) -> int:
    return conversations.create().id


class TestSend:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_persists_both_messages(
        self, service: ChatService, conversations: ConversationStore, conversation_id: int
    ):
        result = await service.send(conversation_id, "Hi")

        assert result.reply == "Hello there!"
        assert not result.superseded
        stored = conversations.get_messages(conversation_id)
        assert [(m.role, m.content) for m in stored] == [
            ("user", "Hi"),
            ("assistant", "Hello there!"),
        ]

    @pytest.mark.asyncio
    async def test_streams_cumulative_text(
        self, service: ChatService, provider: FakeProvider, conversation_id: int
    ):
        provider.replies = ["abcdef"]
        provider.chunks = 3
        updates: list[str] = []

        await service.send(conversation_id, "Hi", on_update=updates.append)

        assert updates == ["ab", "abcd", "abcdef"]
        assert service.pending_reply(conversation_id) is None

    @pytest.mark.asyncio
    async def test_request_layout(
        self, service: ChatService, provider: FakeProvider, conversation_id: int
    ):
        await service.send(conversation_id, "first")
        await service.send(conversation_id, "second")

        messages = provider.calls[1]
        assert messages[0].role == "system"
        assert [(m.role, m.content) for m in messages[1:]] == [
            ("user", "first"),
            ("assistant", "Hello there!"),
            ("user", "second"),
        ]

    @pytest.mark.asyncio
    async def test_sets_title_from_first_message(
        self, service: ChatService, conversations: ConversationStore, conversation_id: int
    ):
        await service.send(conversation_id, "Help me plan a trip to the mountains")
        await service.send(conversation_id, "Something else")

        title = conversations.get(conversation_id).title
        assert title == "Help me plan a trip to the mou..."

    @pytest.mark.asyncio
    async def test_rejects_empty_and_unknown(self, service: ChatService, conversation_id: int):
        with pytest.raises(ValueError):
            await service.send(conversation_id, "   ")
        with pytest.raises(ValueError):
            await service.send(999, "Hi")


class TestExplicitMemory:
    """Explicit facts reach the prompt of the same send."""

    @pytest.mark.asyncio
    async def test_fact_in_same_request(
        self,
        service: ChatService,
        provider: FakeProvider,
        memory_store: MemoryStore,
        conversation_id: int,
    ):
        result = await service.send(conversation_id, "Remember that my cat is Luna")

        assert result.explicit_fact.key == "cat_is_luna"
        assert memory_store.get("cat_is_luna").value == "cat is Luna"
        system_prompt = provider.calls[0][0].content
        assert "* cat_is_luna: cat is Luna" in system_prompt


class TestReminders:

    @pytest.mark.asyncio
    async def test_reminder_created(
        self,
        service: ChatService,
        provider: FakeProvider,
        reminder_store: ReminderStore,
        conversation_id: int,
    ):
        provider.replies = ['Done! [REMINDER: "Call mom" AT "2030-01-01 10:00"]']

        result = await service.send(conversation_id, "Remind me to call mom")

        assert result.reminder.text == "Call mom"
        assert [r.due_at for r in reminder_store.list_all()] == [datetime(2030, 1, 1, 10, 0)]

    @pytest.mark.asyncio
    async def test_unparseable_time_ignored(
        self,
        service: ChatService,
        provider: FakeProvider,
        reminder_store: ReminderStore,
        conversation_id: int,
    ):
        provider.replies = ['Ok [REMINDER: "Call mom" AT "someday maybe xyz"]']

        result = await service.send(conversation_id, "Remind me")

        assert result.reminder is None
        assert reminder_store.list_all() == []


class TestErrors:
    """Tests for failed sends."""

    @pytest.mark.asyncio
    async def test_unconfigured(
        self,
        conversations: ConversationStore,
        memory_store: MemoryStore,
        reminder_store: ReminderStore,
        event_log: JSONLLogger,
        conversation_id: int,
    ):
        service = ChatService(
            FakeRegistry(None),
            conversations,
            MemoryManager(memory_store),
            reminder_store,
            event_log=event_log,
        )

        with pytest.raises(ChatError) as exc_info:
            await service.send(conversation_id, "Hi")

        assert "/provider" in exc_info.value.diagnosis
        roles = [m.role for m in conversations.get_messages(conversation_id)]
        assert roles == ["user"]

    @pytest.mark.asyncio
    async def test_transport_error(
        self,
        service: ChatService,
        provider: FakeProvider,
        conversations: ConversationStore,
        event_log: JSONLLogger,
        conversation_id: int,
    ):
        provider.error = TransportError(
            "OpenAI error: HTTP 401: Invalid API key", status_code=401
        )

        with pytest.raises(ChatError) as exc_info:
            await service.send(conversation_id, "Hi")

        assert exc_info.value.status_code == 401
        assert "invalid or expired" in exc_info.value.diagnosis
        assert service.pending_reply(conversation_id) is None
        assert [m.role for m in conversations.get_messages(conversation_id)] == ["user"]
        assert '"event": "chat_error"' in event_log.log_path.read_text()

    @pytest.mark.asyncio
    async def test_error_after_partial_reply(
        self,
        conversations: ConversationStore,
        memory_store: MemoryStore,
        reminder_store: ReminderStore,
        event_log: JSONLLogger,
        conversation_id: int,
    ):
        """Text streamed before a failure is dropped, not left pending."""

        class FailsMidStream:
            name = "Flaky"

            async def chat_completion(self, messages, on_update=None):
                on_update("Hel")
                raise TransportError("Groq error: Service overloaded", provider="Groq")

        service = ChatService(
            FakeRegistry(FailsMidStream()),
            conversations,
            MemoryManager(memory_store),
            reminder_store,
            event_log=event_log,
        )
        updates: list[str] = []

        with pytest.raises(ChatError, match="Service overloaded"):
            await service.send(conversation_id, "Hi", on_update=updates.append)

        assert updates == ["Hel"]
        assert service.pending_reply(conversation_id) is None
        assert [m.role for m in conversations.get_messages(conversation_id)] == ["user"]


class TestStaleness:
    """A newer send on the same conversation supersedes an older one."""

    def test_guard_tokens(self):
        guard = SendGuard()
        first = guard.begin(1)
        second = guard.begin(1)
        other = guard.begin(2)

        assert not guard.is_current(1, first)
        assert guard.is_current(1, second)
        assert guard.is_current(2, other)

    @pytest.mark.asyncio
    async def test_older_reply_discarded(
        self,
        conversations: ConversationStore,
        memory_store: MemoryStore,
        reminder_store: ReminderStore,
        event_log: JSONLLogger,
        conversation_id: int,
    ):
        release_first = asyncio.Event()

        class SlowFirst:
            name = "Slow"

            def __init__(self) -> None:
                self.count = 0

            async def chat_completion(self, messages, on_update=None):
                self.count += 1
                if self.count == 1:
                    await release_first.wait()
                    on_update("old reply")
                    return "old reply"
                on_update("new reply")
                return "new reply"

        service = ChatService(
            FakeRegistry(SlowFirst()),
            conversations,
            MemoryManager(memory_store),
            reminder_store,
            event_log=event_log,
        )
        updates: list[str] = []

        first = asyncio.create_task(
            service.send(conversation_id, "one", on_update=updates.append)
        )
        await asyncio.sleep(0)
        second = await service.send(conversation_id, "two", on_update=updates.append)
        release_first.set()
        old = await first

        assert old.superseded
        assert not second.superseded
        assert updates == ["new reply"]
        assistant = [
            m.content
            for m in conversations.get_messages(conversation_id)
            if m.role == "assistant"
        ]
        assert assistant == ["new reply"]


class TestSynthesis:

    @pytest.mark.asyncio
    async def test_triggered_after_threshold(
        self,
        conversations: ConversationStore,
        memory_store: MemoryStore,
        reminder_store: ReminderStore,
        event_log: JSONLLogger,
        conversation_id: int,
    ):
        provider = FakeProvider(["sure"])
        registry = FakeRegistry(provider)
        extractor_llm = MagicMock()

        async def extract_reply(messages, on_update=None):
            return '{"favorite_sport": "tennis"}'

        extractor_llm.chat_completion = extract_reply
        synthesizer = RollingSynthesizer(
            conversations, memory_store, FactExtractor(extractor_llm), event_log=event_log
        )
        service = ChatService(
            registry,
            conversations,
            MemoryManager(memory_store),
            reminder_store,
            synthesizer=synthesizer,
            event_log=event_log,
        )

        first = await service.send(conversation_id, "a")
        await service.send(conversation_id, "b")
        third = await service.send(conversation_id, "c")

        assert not first.synthesis.triggered
        assert third.synthesis.triggered
        assert memory_store.get("favorite_sport").value == "tennis"
        assert conversations.get_checkpoint(conversation_id) == 6


class TestSummarize:

    @pytest.mark.asyncio
    async def test_summary(self, service: ChatService, provider: FakeProvider, conversation_id: int):
        await service.send(conversation_id, "Hi")
        provider.replies = ["We said hello."]

        assert await service.summarize(conversation_id) == "We said hello."
        assert "user: Hi" in provider.calls[-1][1].content

    @pytest.mark.asyncio
    async def test_fallback_on_error(
        self, service: ChatService, provider: FakeProvider, conversation_id: int
    ):
        provider.error = TransportError("boom")
        assert await service.summarize(conversation_id) == SUMMARY_FALLBACK
