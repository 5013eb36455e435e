"""Shared fixtures."""

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import httpx
import pytest

from kioku.conversation import ConversationStore
from kioku.logging import JSONLLogger
from kioku.memory import MemoryStore
from kioku.providers import Message
from kioku.reminders import ReminderStore


class FakeProvider:
    """Provider that replays canned replies and records requests."""

    name = "Fake"

    def __init__(self, replies: list[str] | None = None, chunks: int = 1) -> None:
        self.replies = list(replies or ["ok"])
        self.chunks = chunks
        self.calls: list[list[Message]] = []
        self.error: Exception | None = None

    async def chat_completion(self, messages, on_update=None) -> str:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

        size = max(1, -(-len(reply) // self.chunks))
        text = ""
        for i in range(0, len(reply), size):
            text += reply[i:i + size]
            if on_update is not None:
                on_update(text)
        return text


def byte_stream(chunks: list[bytes]) -> AsyncIterator[bytes]:
    """Async body that yields the given chunks as separate reads."""

    async def body() -> AsyncIterator[bytes]:
        for chunk in chunks:
            yield chunk

    return body()


def mock_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    """AsyncClient that routes every request to ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "kioku.db"


@pytest.fixture
def memory_store(db_path: Path) -> MemoryStore:
    """Create a MemoryStore with a temporary database."""
    store = MemoryStore(db_path)
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def conversations(db_path: Path) -> ConversationStore:
    """Create a ConversationStore with a temporary database."""
    store = ConversationStore(db_path)
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def reminder_store(db_path: Path) -> ReminderStore:
    """Create a ReminderStore with a temporary database."""
    store = ReminderStore(db_path)
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def event_log(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Keep config, logs and databases out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("KIOKU_HOME", str(home))
    for var in (
        "AI_PROVIDER_TYPE",
        "GROQ_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
        "LOCAL_API_KEY",
        "GROQ_MODEL",
        "OPENAI_MODEL",
        "LOCAL_LLM_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    return home
