"""
Per-round accumulation of streamed tool calls.

Vendors stream a tool call as a start marker followed by raw JSON
fragments. Calls are kept in arrival order, keyed by call id, and only
parsed once closed.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    OPEN = "open"
    APPENDING = "appending"
    CLOSED = "closed"


class ToolCall(BaseModel):
    id: str
    name: str
    input: dict[str, Any]


class PendingToolCall(BaseModel):
    id: str
    name: str = ""
    buffer: str = ""
    state: CallState = CallState.OPEN
    input: Optional[dict[str, Any]] = None


def parse_tool_input(raw: Optional[str]) -> dict[str, Any]:
    """Parse accumulated arguments; anything but a JSON object becomes `{}`."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Discarding unparseable tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


class ToolCallAccumulator:
    def __init__(self) -> None:
        self._calls: dict[str, PendingToolCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def open(self, call_id: str, name: str = "") -> None:
        call = self._calls.get(call_id)
        if call is None:
            self._calls[call_id] = PendingToolCall(id=call_id, name=name)
        elif name and not call.name:
            call.name = name

    def append(self, call_id: str, fragment: str) -> None:
        call = self._calls.get(call_id)
        if call is None:
            self.open(call_id)
            call = self._calls[call_id]
        if call.state is CallState.CLOSED:
            logger.warning("Ignoring arguments for closed tool call %s", call_id)
            return
        call.buffer += fragment
        call.state = CallState.APPENDING

    def close(self, call_id: str) -> None:
        call = self._calls.get(call_id)
        if call is None or call.state is CallState.CLOSED:
            return
        call.input = parse_tool_input(call.buffer)
        call.state = CallState.CLOSED

    def finish(self) -> list[ToolCall]:
        """Close whatever is still open and return the calls in arrival order."""
        result = []
        for call in self._calls.values():
            self.close(call.id)
            if not call.name:
                logger.warning("Dropping tool call %s with no name", call.id)
                continue
            result.append(ToolCall(id=call.id, name=call.name, input=call.input or {}))
        return result
