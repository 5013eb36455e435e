"""HTTP-based providers: OpenAI, Anthropic, Gemini and local servers."""

import json
import re
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .base import Message, StreamingProvider
from .stream import iter_data_events, openai_delta


class OpenAIProvider(StreamingProvider):
    """OpenAI chat completions (uniform event stream)."""

    name = "OpenAI"
    api_url = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o-mini"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def body(self, messages: list[Message]) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": True,
        }

    def extract(self, data: Any) -> str:
        return openai_delta(data)


class LocalProvider(OpenAIProvider):
    """Any OpenAI-compatible server on the local machine (Ollama, LM Studio).

    No credential is required; one is sent only if configured.
    """

    name = "Local"
    api_url = "http://localhost:11434/v1/chat/completions"
    default_model = "llama3.2"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key=api_key, model=model, **kwargs)
        self.base_url = base_url

    def url(self) -> str:
        if not self.base_url:
            return self.api_url
        return self.base_url.rstrip("/") + "/chat/completions"

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


class AnthropicProvider(StreamingProvider):
    """Anthropic Messages API.

    Text arrives in ``content_block_delta`` events; other event types
    (``message_start``, ``ping``, ...) carry no text. There is no ``[DONE]``
    line, the stream ends with ``message_stop``.
    """

    name = "Anthropic"
    api_url = "https://api.anthropic.com/v1/messages"
    default_model = "claude-3-5-sonnet-20241022"
    api_version = "2023-06-01"
    max_tokens = 1024

    def headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def body(self, messages: list[Message]) -> dict[str, Any]:
        # System prompts go in a top-level field, not in the message list
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
            "max_tokens": self.max_tokens,
            "stream": True,
        }
        if system:
            body["system"] = system
        return body

    async def _delta_texts(self, response: httpx.Response) -> AsyncIterator[str]:
        async for event in iter_data_events(response):
            event_type = event.get("type")
            if event_type == "message_stop":
                return
            if event_type != "content_block_delta":
                continue
            delta = event.get("delta")
            if isinstance(delta, dict) and isinstance(delta.get("text"), str):
                yield delta["text"]

    def _fragments(self, response: httpx.Response) -> AsyncIterator[str]:
        return self._delta_texts(response)


TEXT_LINE = re.compile(r'^"text":\s*"(.*)"\s*,?$')


class GeminiProvider(StreamingProvider):
    """Google Gemini ``streamGenerateContent``.

    Without ``alt=sse`` the response is one pretty-printed JSON array that
    arrives piecemeal, so text is taken from raw ``"text": "..."`` lines
    rather than from parsed events.
    """

    name = "Gemini"
    api_base = "https://generativelanguage.googleapis.com/v1beta/models"
    default_model = "gemini-2.5-flash"

    def url(self) -> str:
        return f"{self.api_base}/{self.model}:streamGenerateContent"

    def params(self) -> dict[str, str]:
        return {"key": self.api_key or ""}

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def body(self, messages: list[Message]) -> dict[str, Any]:
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        body: dict[str, Any] = {"contents": contents}

        system = "\n\n".join(m.content for m in messages if m.role == "system")
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return body

    async def _text_lines(self, response: httpx.Response) -> AsyncIterator[str]:
        async for line in response.aiter_lines():
            match = TEXT_LINE.match(line.strip())
            if not match:
                continue
            try:
                # The capture is a JSON string body; let json handle escapes
                yield json.loads(f'"{match.group(1)}"')
            except json.JSONDecodeError:
                continue

    def _fragments(self, response: httpx.Response) -> AsyncIterator[str]:
        return self._text_lines(response)
