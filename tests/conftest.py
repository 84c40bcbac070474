"""
Shared fixtures: a scripted adapter, fake tools and HTTP doubles.
"""
from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from switchyard.models.base import BaseProviderAdapter, CompletionConfig, Conversation, RoundResult
from switchyard.models.stream import StreamDecoder
from switchyard.models.strategies import OpenAIChatDecoder, append_openai_tool_turns, openai_messages
from switchyard.tools.base import BaseTool
from switchyard.tools.executor import ToolExecutor


def sse_body(frames: list[Any], done: bool = True) -> bytes:
    """Encode frames as a server-sent-events body. Strings are sent verbatim."""
    lines = []
    for frame in frames:
        data = frame if isinstance(frame, str) else json.dumps(frame)
        lines.append(f"data: {data}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def text_frame(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}, "finish_reason": None}]}


def tool_frame(index: int, call_id: str | None = None, name: str | None = None, arguments: str = "") -> dict:
    call: dict[str, Any] = {"index": index, "function": {"arguments": arguments}}
    if call_id:
        call["id"] = call_id
    if name:
        call["function"]["name"] = name
    return {"choices": [{"delta": {"tool_calls": [call]}, "finish_reason": None}]}


def finish_frame(reason: str = "stop") -> dict:
    return {"choices": [{"delta": {}, "finish_reason": reason}]}


def usage_frame(prompt: int, completion: int) -> dict:
    return {"choices": [], "usage": {"prompt_tokens": prompt, "completion_tokens": completion}}


class ScriptedAdapter(BaseProviderAdapter):
    """Plays back one scripted response per round (chat-completions frames)."""

    name = "scripted"
    display_name = "Scripted"
    supported_models = ("scripted-1",)
    default_model = "scripted-1"

    def __init__(self, stream_rounds=None, buffered_rounds=None, tools=None, max_rounds=50):
        super().__init__(tools, max_rounds)
        self.stream_rounds = list(stream_rounds or [])
        self.buffered_rounds = list(buffered_rounds or [])
        self.requests: list[list[dict]] = []

    def build_conversation(self, messages, config) -> Conversation:
        return Conversation(messages=openai_messages(messages))

    async def open_stream(self, conversation, tools, config):
        self.requests.append([dict(m) for m in conversation.messages])
        frames = self.stream_rounds.pop(0) if self.stream_rounds else [text_frame("done"), finish_frame()]
        for frame in frames:
            yield frame

    def new_decoder(self, config) -> StreamDecoder:
        return OpenAIChatDecoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        self.requests.append([dict(m) for m in conversation.messages])
        if self.buffered_rounds:
            return self.buffered_rounds.pop(0)
        return RoundResult(text="done")

    def append_tool_turns(self, conversation, round_result, results, config) -> None:
        append_openai_tool_turns(conversation, round_result, results)


class EchoTool(BaseTool):
    name = "Echo"
    description = "Echo the input text."
    parameters = {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]}

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def run(self, text: str = "", **_: Any) -> str:
        self.calls.append(text)
        return f"echo: {text}"


class FailingTool(BaseTool):
    name = "Read"
    description = "Always fails."
    parameters = {"type": "object", "properties": {}}

    async def run(self, **_: Any) -> str:
        raise RuntimeError("disk on fire")


class BridgeRecorder:
    """httpx.MockTransport handler that records bridge calls and answers per channel."""

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        channel = request.url.path.split("/ipc/", 1)[1]
        payload = json.loads(request.content or b"{}")
        self.calls.append((channel, payload))
        answer = self.responses.get(channel, {})
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def config() -> CompletionConfig:
    return CompletionConfig(api_key="sk-test", model="scripted-1")


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def echo_executor(echo_tool) -> ToolExecutor:
    return ToolExecutor([echo_tool])
