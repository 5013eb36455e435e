"""Tests for the HTTP providers."""

import json

import httpx
import pytest

from conftest import byte_stream, mock_client
from kioku.providers import (
    AnthropicProvider,
    GeminiProvider,
    LocalProvider,
    Message,
    OpenAIProvider,
    TransportError,
)

MESSAGES = [
    Message(role="system", content="Be brief."),
    Message(role="user", content="Hi"),
]


def openai_stream(chunks: list[str]) -> list[bytes]:
    lines = [b'data: {"choices": [{"delta": {"role": "assistant"}}]}\n\n']
    for chunk in chunks:
        payload = {"choices": [{"delta": {"content": chunk}}]}
        lines.append(f"data: {json.dumps(payload)}\n\n".encode())
    lines.append(b"data: [DONE]\n\n")
    return lines


def anthropic_stream(chunks: list[str]) -> list[bytes]:
    events = [
        ("message_start", {"type": "message_start", "message": {"id": "msg_1"}}),
        ("content_block_start", {"type": "content_block_start", "index": 0}),
        ("ping", {"type": "ping"}),
    ]
    for chunk in chunks:
        events.append((
            "content_block_delta",
            {"type": "content_block_delta", "index": 0,
             "delta": {"type": "text_delta", "text": chunk}},
        ))
    events.append(("content_block_stop", {"type": "content_block_stop", "index": 0}))
    events.append(("message_stop", {"type": "message_stop"}))
    return [
        f"event: {name}\ndata: {json.dumps(data)}\n\n".encode() for name, data in events
    ]


def gemini_stream(chunks: list[str]) -> list[bytes]:
    body = json.dumps(
        [{"candidates": [{"content": {"parts": [{"text": c}], "role": "model"}}]}
         for c in chunks],
        indent=2,
    )
    # Deliver the array in small pieces, as the API does
    data = body.encode()
    return [data[i:i + 40] for i in range(0, len(data), 40)]


class Recorder:
    """Mock transport handler that records the request."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.request: httpx.Request | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.request = request
        return self.response

    @property
    def body(self) -> dict:
        assert self.request is not None
        return json.loads(self.request.content)


async def run(provider, updates: list[str] | None = None) -> str:
    return await provider.chat_completion(
        MESSAGES, updates.append if updates is not None else None
    )


class TestOpenAIProvider:
    """Tests for the uniform OpenAI stream."""

    @pytest.mark.asyncio
    async def test_streams_cumulative_text(self):
        """Final text is the concatenation; callback once per chunk."""
        chunks = ["Hello", ", ", "world", "!"]
        recorder = Recorder(httpx.Response(200, content=byte_stream(openai_stream(chunks))))
        provider = OpenAIProvider(api_key="sk-test", http_client=mock_client(recorder))

        updates: list[str] = []
        result = await run(provider, updates)

        assert result == "Hello, world!"
        assert updates == ["Hello", "Hello, ", "Hello, world", "Hello, world!"]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Bearer auth, model, messages and stream flag are sent."""
        recorder = Recorder(httpx.Response(200, content=byte_stream(openai_stream(["x"]))))
        provider = OpenAIProvider(
            api_key="sk-test", model="gpt-test", http_client=mock_client(recorder)
        )
        await run(provider)

        assert str(recorder.request.url) == "https://api.openai.com/v1/chat/completions"
        assert recorder.request.headers["Authorization"] == "Bearer sk-test"
        assert recorder.body == {
            "model": "gpt-test",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hi"},
            ],
            "stream": True,
        }

    def test_default_model(self):
        assert OpenAIProvider(api_key="k").model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_structured_error(self):
        """Structured error messages are surfaced with the status."""
        recorder = Recorder(
            httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})
        )
        provider = OpenAIProvider(api_key="bad", http_client=mock_client(recorder))

        with pytest.raises(TransportError) as exc_info:
            await run(provider)

        assert exc_info.value.status_code == 401
        assert "Incorrect API key provided" in str(exc_info.value)
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unstructured_error_contains_status(self):
        """Without a structured body the status line is used."""
        recorder = Recorder(httpx.Response(500, content=b"Internal failure"))
        provider = OpenAIProvider(api_key="k", http_client=mock_client(recorder))

        with pytest.raises(TransportError, match="500"):
            await run(provider)

    @pytest.mark.asyncio
    async def test_network_error(self):
        """A connection failure becomes a TransportError without status."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIProvider(api_key="k", http_client=mock_client(handler))

        with pytest.raises(TransportError) as exc_info:
            await run(provider)

        assert exc_info.value.status_code is None
        assert "network error" in str(exc_info.value)


class TestLocalProvider:
    """Tests for OpenAI-compatible local servers."""

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        recorder = Recorder(httpx.Response(200, content=byte_stream(openai_stream(["ok"]))))
        provider = LocalProvider(http_client=mock_client(recorder))

        assert await run(provider) == "ok"
        assert "Authorization" not in recorder.request.headers
        assert recorder.body["model"] == "llama3.2"

    @pytest.mark.asyncio
    async def test_custom_base_url(self):
        recorder = Recorder(httpx.Response(200, content=byte_stream(openai_stream(["ok"]))))
        provider = LocalProvider(
            base_url="http://localhost:1234/v1/", http_client=mock_client(recorder)
        )
        await run(provider)
        assert str(recorder.request.url) == "http://localhost:1234/v1/chat/completions"


class TestAnthropicProvider:
    """Tests for the Anthropic event stream."""

    @pytest.mark.asyncio
    async def test_streams_only_text_deltas(self):
        """Non-delta events are ignored; text deltas accumulate."""
        chunks = ["Sure", ", here", " you go."]
        recorder = Recorder(
            httpx.Response(200, content=byte_stream(anthropic_stream(chunks)))
        )
        provider = AnthropicProvider(api_key="sk-ant", http_client=mock_client(recorder))

        updates: list[str] = []
        result = await run(provider, updates)

        assert result == "Sure, here you go."
        assert updates == ["Sure", "Sure, here", "Sure, here you go."]

    @pytest.mark.asyncio
    async def test_stops_at_message_stop(self):
        lines = anthropic_stream(["a"]) + [
            b'data: {"type": "content_block_delta", "delta": {"text": "late"}}\n\n'
        ]
        recorder = Recorder(httpx.Response(200, content=byte_stream(lines)))
        provider = AnthropicProvider(api_key="sk-ant", http_client=mock_client(recorder))

        assert await run(provider) == "a"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """System prompt moves to the top-level field; API headers are set."""
        recorder = Recorder(httpx.Response(200, content=byte_stream(anthropic_stream(["x"]))))
        provider = AnthropicProvider(api_key="sk-ant", http_client=mock_client(recorder))
        await run(provider)

        headers = recorder.request.headers
        assert headers["x-api-key"] == "sk-ant"
        assert headers["anthropic-version"] == "2023-06-01"
        assert recorder.body["system"] == "Be brief."
        assert recorder.body["messages"] == [{"role": "user", "content": "Hi"}]
        assert recorder.body["max_tokens"] == 1024
        assert recorder.body["stream"] is True

    @pytest.mark.asyncio
    async def test_error_body(self):
        recorder = Recorder(httpx.Response(
            429,
            json={"type": "error", "error": {"type": "rate_limit_error",
                                             "message": "Rate limited"}},
        ))
        provider = AnthropicProvider(api_key="sk-ant", http_client=mock_client(recorder))

        with pytest.raises(TransportError) as exc_info:
            await run(provider)

        assert exc_info.value.status_code == 429
        assert "Rate limited" in str(exc_info.value)


class TestGeminiProvider:
    """Tests for Gemini's raw JSON array stream."""

    @pytest.mark.asyncio
    async def test_streams_text_lines(self):
        """Text is read from raw lines, escapes decoded."""
        chunks = ["Line one\n", 'He said "hi"', " and left."]
        recorder = Recorder(httpx.Response(200, content=byte_stream(gemini_stream(chunks))))
        provider = GeminiProvider(api_key="g-key", http_client=mock_client(recorder))

        updates: list[str] = []
        result = await run(provider, updates)

        assert result == "".join(chunks)
        assert len(updates) == 3

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Key goes in the query; roles mapped; system moved out."""
        recorder = Recorder(httpx.Response(200, content=byte_stream(gemini_stream(["x"]))))
        provider = GeminiProvider(api_key="g-key", http_client=mock_client(recorder))
        await provider.chat_completion(
            MESSAGES + [Message(role="assistant", content="Hello"),
                        Message(role="user", content="Again")]
        )

        url = recorder.request.url
        assert url.path.endswith("/models/gemini-2.5-flash:streamGenerateContent")
        assert url.params["key"] == "g-key"
        assert recorder.body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert [c["role"] for c in recorder.body["contents"]] == ["user", "model", "user"]

    @pytest.mark.asyncio
    async def test_error_uses_message(self):
        recorder = Recorder(httpx.Response(
            400, json={"error": {"code": 400, "message": "API key not valid"}}
        ))
        provider = GeminiProvider(api_key="bad", http_client=mock_client(recorder))

        with pytest.raises(TransportError, match="API key not valid"):
            await run(provider)
