"""
Tests for the SDK-backed adapters (Claude, OpenAI) with fake clients
injected through the adapter constructors.
"""
from __future__ import annotations

import json
from typing import Any

import anthropic
import httpx
import openai
import pytest

from conftest import finish_frame, text_frame, tool_frame, usage_frame

from switchyard.agent.validator import ProviderValidator, ValidationResult
from switchyard.errors import AIError, ErrorCode
from switchyard.models.anthropic import ClaudeAdapter
from switchyard.models.base import CompletionConfig, ImageContent, Message, RequestOptions, StreamEvent, TextContent
from switchyard.models.openai_compat import OpenAIAdapter, is_reasoning_model
from switchyard.models.registry import ProviderRegistry
from switchyard.permissions.engine import PermissionContext

ALLOW_ALL = RequestOptions(permissions=PermissionContext(allow_all=True))
REQUEST = httpx.Request("POST", "https://api.test/v1")


class FakeStream:
    def __init__(self, events: list[Any]):
        self._events = events

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for event in self._events:
            yield event


class FakeEndpoint:
    """Stands in for `client.messages` / `client.chat.completions`."""

    def __init__(self, responses: list[Any]):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if kwargs.get("stream"):
            return FakeStream(response)
        return response


class FakeAnthropicClient:
    def __init__(self, responses):
        self.messages = FakeEndpoint(responses)


class FakeOpenAIClient:
    def __init__(self, responses):
        self.completions = FakeEndpoint(responses)
        self.chat = self


def claude_text_stream(text: str) -> list[dict]:
    return [
        {"type": "message_start", "message": {"usage": {"input_tokens": 5, "output_tokens": 1}}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}},
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 3}},
        {"type": "message_stop"},
    ]


def claude_config(**overrides) -> CompletionConfig:
    return CompletionConfig(api_key="sk-ant", model="claude-3-5-sonnet-20241022", **overrides)


class TestClaudeAdapter:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        client = FakeAnthropicClient([claude_text_stream("Hi there")])
        adapter = ClaudeAdapter(client_factory=lambda config: client)
        messages = [
            Message(role="system", content="Be brief."),
            Message(role="user", content=[
                TextContent(text="What is this?"),
                ImageContent(mime_type="image/png", data="AAAA"),
                ImageContent(mime_type="image/bmp", data="BBBB"),
            ]),
        ]
        events: list[StreamEvent] = []
        assert await adapter.send_message(messages, claude_config(temperature=0), events.append) == "Hi there"

        call = client.messages.calls[0]
        assert call["system"] == "Be brief."
        assert call["temperature"] == 0
        assert call["max_tokens"] == 8192
        assert call["stream"] is True
        assert call["messages"] == [{"role": "user", "content": [
            {"type": "text", "text": "What is this?"},
            {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "AAAA"}},
        ]}]
        assert events[-1].usage.input_tokens == 5
        assert events[-1].usage.output_tokens == 3

    @pytest.mark.asyncio
    async def test_thinking_forces_temperature(self):
        client = FakeAnthropicClient([claude_text_stream("ok")])
        adapter = ClaudeAdapter(client_factory=lambda config: client)
        await adapter.send_message([Message(role="user", content="Hi")], claude_config(thinking_enabled=True, temperature=0.2), lambda e: None)
        call = client.messages.calls[0]
        assert call["thinking"] == {"type": "enabled", "budget_tokens": 10000}
        assert call["max_tokens"] == 18192
        assert call["temperature"] == 1

    @pytest.mark.asyncio
    async def test_buffered_tool_round(self, echo_executor, echo_tool):
        client = FakeAnthropicClient([
            {"content": [
                {"type": "text", "text": "Checking."},
                {"type": "tool_use", "id": "toolu_1", "name": "Echo", "input": {"text": "hey"}},
            ], "usage": {"input_tokens": 3, "output_tokens": 4}},
            {"content": [{"type": "text", "text": "Done."}]},
        ])
        adapter = ClaudeAdapter(echo_executor, client_factory=lambda config: client)
        result = await adapter.send_message([Message(role="user", content="go")], claude_config(), options=ALLOW_ALL)

        assert result == "Checking.Done."
        assert echo_tool.calls == ["hey"]
        second = client.messages.calls[1]["messages"]
        assert second[1] == {"role": "assistant", "content": [
            {"type": "text", "text": "Checking."},
            {"type": "tool_use", "id": "toolu_1", "name": "Echo", "input": {"text": "hey"}},
        ]}
        assert second[2] == {"role": "user", "content": [
            {"type": "tool_result", "tool_use_id": "toolu_1", "content": "echo: hey"},
        ]}
        assert "tools" in client.messages.calls[0]

    @pytest.mark.asyncio
    async def test_status_error_translated(self):
        response = httpx.Response(429, request=REQUEST, headers={"retry-after": "12"})
        error = anthropic.APIStatusError("rate limited", response=response, body=None)
        adapter = ClaudeAdapter(client_factory=lambda config: FakeAnthropicClient([error]))

        with pytest.raises(AIError) as exc_info:
            await adapter.send_message([Message(role="user", content="Hi")], claude_config())
        assert exc_info.value.code is ErrorCode.RATE_LIMITED
        assert exc_info.value.retry_after == 12
        assert "429" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error_translated(self):
        error = anthropic.APIConnectionError(request=REQUEST)
        adapter = ClaudeAdapter(client_factory=lambda config: FakeAnthropicClient([error]))
        with pytest.raises(AIError) as exc_info:
            await adapter.send_message([Message(role="user", content="Hi")], claude_config(), lambda e: None)
        assert exc_info.value.code is ErrorCode.NETWORK_ERROR

    def test_catalog(self):
        adapter = ClaudeAdapter()
        assert adapter.validate_config(claude_config())
        assert not adapter.validate_config(CompletionConfig(api_key="sk", model="claude-9"))
        assert adapter.default_model == "claude-3-5-sonnet-20241022"


class TestClaudeOverHttp:
    """The real anthropic client, answered by an in-process transport."""

    @staticmethod
    def sdk_factory(requests: list[httpx.Request]):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                "id": "msg_1",
                "type": "message",
                "role": "assistant",
                "model": "claude-3-5-sonnet-20241022",
                "content": [{"type": "text", "text": "Hello!"}],
                "stop_reason": "end_turn",
                "stop_sequence": None,
                "usage": {"input_tokens": 4, "output_tokens": 2},
            })

        def factory(config: CompletionConfig) -> anthropic.AsyncAnthropic:
            return anthropic.AsyncAnthropic(
                api_key=config.api_key,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            )
        return factory

    @pytest.mark.asyncio
    async def test_buffered_default_config(self):
        requests: list[httpx.Request] = []
        adapter = ClaudeAdapter(client_factory=self.sdk_factory(requests))

        assert await adapter.send_message([Message(role="user", content="Hi")], claude_config()) == "Hello!"
        assert len(requests) == 1
        assert requests[0].url.path == "/v1/messages"
        body = json.loads(requests[0].content)
        assert body["max_tokens"] == 8192
        assert not body.get("stream")

    @pytest.mark.asyncio
    async def test_validator_accepts_claude(self):
        requests: list[httpx.Request] = []
        registry = ProviderRegistry()
        registry.register("claude", ClaudeAdapter(client_factory=self.sdk_factory(requests)))

        result = await ProviderValidator(registry).validate_provider("claude", claude_config())
        assert result == ValidationResult(valid=True)
        assert json.loads(requests[0].content)["messages"] == [{"role": "user", "content": "Hi"}]


def openai_config(model: str = "gpt-4o", **overrides) -> CompletionConfig:
    return CompletionConfig(api_key="sk-oa", model=model, **overrides)


class TestOpenAIAdapter:
    def test_reasoning_model_detection(self):
        assert is_reasoning_model("o1-mini")
        assert is_reasoning_model("o3")
        assert not is_reasoning_model("gpt-4o")

    @pytest.mark.asyncio
    async def test_streaming_tool_loop(self, echo_executor, echo_tool):
        client = FakeOpenAIClient([
            [tool_frame(0, "call_a", "Echo", '{"te'), tool_frame(0, arguments='xt": "yo"}'),
             finish_frame("tool_calls"), usage_frame(8, 2)],
            [text_frame("Finished"), finish_frame(), usage_frame(12, 1)],
        ])
        adapter = OpenAIAdapter(echo_executor, client_factory=lambda config: client)
        events: list[StreamEvent] = []

        result = await adapter.send_message([Message(role="user", content="go")], openai_config(), events.append, ALLOW_ALL)

        assert result == "Finished"
        assert echo_tool.calls == ["yo"]
        first = client.completions.calls[0]
        assert first["stream_options"] == {"include_usage": True}
        assert first["temperature"] == 1
        assert first["tools"][0]["function"]["name"] == "Echo"
        second = client.completions.calls[1]["messages"]
        assert second[-1] == {"role": "tool", "tool_call_id": "call_a", "content": "echo: yo"}
        assert events[-1].done is True
        assert events[-1].usage.input_tokens == 20
        assert events[-1].usage.output_tokens == 3

    @pytest.mark.asyncio
    async def test_reasoning_request(self, echo_executor):
        client = FakeOpenAIClient([[text_frame("deep thought"), finish_frame()]])
        adapter = OpenAIAdapter(echo_executor, client_factory=lambda config: client)
        await adapter.send_message([Message(role="user", content="?")], openai_config("o1", thinking_enabled=True), lambda e: None)

        call = client.completions.calls[0]
        assert call["reasoning_effort"] == "medium"
        assert "temperature" not in call
        assert "max_tokens" not in call
        assert "tools" not in call

    @pytest.mark.asyncio
    async def test_image_content(self):
        client = FakeOpenAIClient([{"choices": [{"message": {"content": "a cat"}}]}])
        adapter = OpenAIAdapter(client_factory=lambda config: client)
        message = Message(role="user", content=[TextContent(text="what?"), ImageContent(mime_type="image/jpeg", data="QQ==")])

        assert await adapter.send_message([message], openai_config()) == "a cat"
        content = client.completions.calls[0]["messages"][0]["content"]
        assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,QQ==", "detail": "auto"}}

    @pytest.mark.asyncio
    async def test_auth_error(self):
        response = httpx.Response(401, request=REQUEST)
        error = openai.AuthenticationError("Incorrect API key", response=response, body=None)
        adapter = OpenAIAdapter(client_factory=lambda config: FakeOpenAIClient([error]))
        with pytest.raises(AIError) as exc_info:
            await adapter.send_message([Message(role="user", content="Hi")], openai_config())
        assert exc_info.value.code is ErrorCode.UNAUTHORIZED
