"""
Streaming primitives shared by every adapter.

A vendor stream is a sequence of JSON frames. A `StreamDecoder` turns each
frame into zero or more `FrameEvent`s; the adapter loop folds those into
text, thinking, tool calls and usage.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, AsyncIterator, Iterator, Optional, Union

import httpx
from pydantic import BaseModel

from switchyard.errors import AIError, ErrorCode, StreamUnavailable, parse_retry_after

logger = logging.getLogger(__name__)


class TextDelta(BaseModel):
    text: str


class ThinkingDelta(BaseModel):
    text: str


class ToolCallStart(BaseModel):
    call_id: str
    name: str = ""


class ToolCallArgs(BaseModel):
    call_id: str
    fragment: str


class ToolCallEnd(BaseModel):
    call_id: str


class UsageUpdate(BaseModel):
    """Token counts to add to the running total."""
    input_tokens: int = 0
    output_tokens: int = 0


FrameEvent = Union[TextDelta, ThinkingDelta, ToolCallStart, ToolCallArgs, ToolCallEnd, UsageUpdate]


class StreamDecoder(ABC):
    """Stateful per-round frame decoder."""

    @abstractmethod
    def decode(self, frame: dict[str, Any]) -> list[FrameEvent]:
        ...


def as_dict(value: Any) -> dict[str, Any]:
    """SDK event objects and plain JSON frames both end up as dicts."""
    if isinstance(value, dict):
        return value
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return model_dump()
    return {}


async def raise_for_provider_status(response: httpx.Response, vendor: str) -> None:
    if not response.is_error:
        return
    body = (await response.aread()).decode("utf-8", errors="replace")
    raise AIError.from_http_status(
        response.status_code,
        f"{vendor} API error: {response.status_code} - {body}",
        retry_after=parse_retry_after(response.headers.get("retry-after")),
    )


@contextmanager
def translate_http_errors(vendor: str) -> Iterator[None]:
    try:
        yield
    except httpx.TimeoutException as e:
        raise AIError(ErrorCode.TIMEOUT, f"{vendor} request timeout: {e}") from e
    except httpx.TransportError as e:
        raise AIError(ErrorCode.NETWORK_ERROR, f"{vendor} network error: {e}") from e


async def iter_sse_json(response: httpx.Response, vendor: str) -> AsyncIterator[dict[str, Any]]:
    """Yield the JSON payload of every `data:` line; bad frames are logged and skipped."""
    try:
        async for line in response.aiter_lines():
            line = line.strip()
            if not line.startswith("data:"):
                continue
            data = line[5:].strip()
            if not data or data == "[DONE]":
                continue
            try:
                parsed = json.loads(data)
            except json.JSONDecodeError as e:
                logger.warning("Failed to parse %s chunk: %s", vendor, e)
                continue
            if not isinstance(parsed, dict):
                logger.warning("Ignoring non-object %s chunk: %.200s", vendor, data)
                continue
            yield parsed
    except httpx.StreamError as e:
        # body already consumed or closed before we could read it
        raise StreamUnavailable() from e


def int_field(record: Optional[dict[str, Any]], key: str) -> int:
    value = (record or {}).get(key)
    return value if isinstance(value, int) else 0
