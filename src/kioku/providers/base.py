"""Provider interface and shared types.

Every provider exposes the same contract: ``chat_completion(messages,
on_update)`` returns the full reply and calls ``on_update`` with the
*cumulative* text each time it grows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import httpx

from .errors import TransportError
from .stream import accumulate, raise_for_status, read_event_stream

OnUpdate = Callable[[str], None]

DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=120.0)


class Role(str, Enum):
    """Message author."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single chat message sent to a provider."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LLMProvider(Protocol):
    """Anything that can stream a chat completion."""

    name: str

    async def chat_completion(
        self, messages: list[Message], on_update: OnUpdate | None = None
    ) -> str:
        """Return the full reply, reporting cumulative growth via on_update."""
        ...


class StreamingProvider(ABC):
    """HTTP provider built from headers, body and a per-chunk extractor.

    Uniform providers implement only ``headers``, ``body`` and ``extract``;
    the shared normalizer does the rest. Providers whose wire format differs
    override ``_fragments`` and keep the same outward contract.
    """

    name: str = "provider"
    api_url: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Credential for the vendor, if it needs one.
            model: Model identifier; falls back to ``default_model``.
            http_client: Optional shared client (tests inject a mock transport).
            timeout: Timeout used when a client has to be created per call.
        """
        self.api_key = api_key
        self.model = model or self.default_model
        self._http_client = http_client
        self._timeout = timeout

    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Request headers, including authentication."""
        ...

    @abstractmethod
    def body(self, messages: list[Message]) -> dict[str, Any]:
        """JSON request body."""
        ...

    def extract(self, data: Any) -> str:
        """Pick the incremental content out of one parsed event."""
        return ""

    def url(self) -> str:
        return self.api_url

    def params(self) -> dict[str, str]:
        return {}

    async def chat_completion(
        self, messages: list[Message], on_update: OnUpdate | None = None
    ) -> str:
        if self._http_client is not None:
            return await self._stream(self._http_client, messages, on_update)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._stream(client, messages, on_update)

    async def _stream(
        self,
        client: httpx.AsyncClient,
        messages: list[Message],
        on_update: OnUpdate | None,
    ) -> str:
        try:
            async with client.stream(
                "POST",
                self.url(),
                headers=self.headers(),
                params=self.params() or None,
                json=self.body(messages),
            ) as response:
                await raise_for_status(response, self.name)
                return await self._read(response, on_update)
        except httpx.RequestError as e:
            raise TransportError(f"{self.name} network error: {e}", provider=self.name) from e

    async def _read(self, response: httpx.Response, on_update: OnUpdate | None) -> str:
        fragments = self._fragments(response)
        if fragments is None:
            return await read_event_stream(response, self.extract, on_update)

        return await accumulate(fragments, on_update)

    def _fragments(self, response: httpx.Response) -> AsyncIterator[str] | None:
        """Custom read loop hook; None means use the shared event reader."""
        return None
