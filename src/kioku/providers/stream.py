"""Stream normalizer: turns streaming HTTP responses into cumulative text."""

import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from .errors import TransportError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
MAX_ERROR_LENGTH = 300


def truncate_error(message: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Bound an error message so it can't flood the UI."""
    message = message.strip()
    if len(message) <= limit:
        return message
    return message[: limit - 3].rstrip() + "..."


def error_detail(body: Any) -> str | None:
    """Pull a human-readable message out of a structured error body.

    Priority: ``error.message``, ``message``, ``error`` when it is a string.
    """
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(body.get("message"), str):
        return body["message"]
    if isinstance(error, str):
        return error
    return None


def describe_error(status_code: int, reason: str, content: bytes) -> str:
    """Build the message for a failed response."""
    detail = None
    try:
        detail = error_detail(json.loads(content))
    except (json.JSONDecodeError, UnicodeDecodeError):
        pass

    if not detail:
        detail = f"HTTP {status_code} {reason}".strip()
    elif str(status_code) not in detail:
        detail = f"HTTP {status_code}: {detail}"
    return truncate_error(detail)


async def raise_for_status(response: httpx.Response, provider: str) -> None:
    """Raise TransportError for a non-2xx streaming response."""
    if response.is_success:
        return

    content = await response.aread()
    message = describe_error(response.status_code, response.reason_phrase, content)
    logger.warning(f"{provider} request failed: {message}")
    raise TransportError(
        f"{provider} error: {message}",
        status_code=response.status_code,
        provider=provider,
    )


async def iter_data_events(response: httpx.Response) -> AsyncIterator[dict[str, Any]]:
    """Yield parsed JSON payloads from ``data:`` lines until ``[DONE]``.

    Lines are reassembled by httpx when split across reads. Anything that
    isn't a JSON object on a data line is skipped.
    """
    async for line in response.aiter_lines():
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            continue

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            continue

        if isinstance(data, dict):
            yield data


async def accumulate(
    fragments: AsyncIterator[str],
    on_update: Callable[[str], None] | None = None,
) -> str:
    """Concatenate fragments in arrival order, reporting the running total."""
    full_text = ""
    async for fragment in fragments:
        if not fragment:
            continue
        full_text += fragment
        if on_update is not None:
            on_update(full_text)
    return full_text


async def read_event_stream(
    response: httpx.Response,
    extract: Callable[[Any], str],
    on_update: Callable[[str], None] | None = None,
) -> str:
    """Read a uniform ``data:`` event stream using a per-event extractor."""

    async def fragments() -> AsyncIterator[str]:
        async for data in iter_data_events(response):
            yield extract(data)

    return await accumulate(fragments(), on_update)


def openai_delta(data: Any) -> str:
    """``choices[0].delta.content``, or empty when missing or malformed."""
    try:
        content = data["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return content if isinstance(content, str) else ""
