"""Groq provider backed by the official SDK."""

from collections.abc import AsyncIterator
from typing import Any

import groq
import httpx
from groq import AsyncGroq

from .base import Message, OnUpdate
from .errors import TransportError
from .stream import accumulate, describe_error, error_detail, truncate_error


class GroqProvider:
    """Streams completions through ``AsyncGroq``.

    The SDK owns the HTTP read loop; this adapter only maps its chunks and
    errors onto the common provider contract.

    Example:
        provider = GroqProvider(api_key="gsk_...")
        text = await provider.chat_completion(
            [Message(role="user", content="Hi")],
            on_update=lambda text: print(text),
        )
    """

    name = "Groq"
    default_model = "llama-3.3-70b-versatile"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        client: AsyncGroq | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Groq provider.

        Args:
            api_key: Groq API key.
            model: Model to use; defaults to ``default_model``.
            client: Optional preconfigured AsyncGroq client.
            http_client: Shared HTTP client handed to the SDK; the caller
                owns it and closes it.
        """
        self.api_key = api_key
        self.model = model or self.default_model
        self._client = client or AsyncGroq(api_key=api_key, http_client=http_client)

    async def chat_completion(
        self, messages: list[Message], on_update: OnUpdate | None = None
    ) -> str:
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=[m.to_dict() for m in messages],
                stream=True,
            )
            return await accumulate(self._deltas(stream), on_update)
        except groq.APIStatusError as e:
            raise TransportError(
                f"{self.name} error: {self._status_message(e)}",
                status_code=e.status_code,
                provider=self.name,
            ) from e
        except groq.APIConnectionError as e:
            raise TransportError(
                f"{self.name} network error: {e}", provider=self.name
            ) from e
        except groq.APIError as e:
            # Error events inside an already open stream
            raise TransportError(
                f"{self.name} error: {truncate_error(e.message)}", provider=self.name
            ) from e

    async def _deltas(self, stream: Any) -> AsyncIterator[str]:
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if isinstance(content, str):
                yield content

    def _status_message(self, error: groq.APIStatusError) -> str:
        detail = error_detail(error.body)
        if detail:
            return truncate_error(f"HTTP {error.status_code}: {detail}")
        response = error.response
        return describe_error(error.status_code, response.reason_phrase, b"")
