"""
Tests for the shared tool-calling loop in BaseProviderAdapter.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import ScriptedAdapter, finish_frame, text_frame, tool_frame, usage_frame

from switchyard.errors import InvalidConfiguration, ToolLoopLimitExceeded
from switchyard.models.accumulator import ToolCall
from switchyard.models.base import (
    CompletionConfig,
    ImageContent,
    Message,
    RequestOptions,
    RoundResult,
    StreamEvent,
    TextContent,
    Usage,
)
from switchyard.permissions.engine import PermissionContext
from switchyard.tools.executor import TOOL_PERMISSION_PREFIX

ALLOW_ALL = RequestOptions(permissions=PermissionContext(allow_all=True))


def user(text: str) -> Message:
    return Message(role="user", content=text)


class TestStreaming:
    @pytest.mark.asyncio
    async def test_plain_text_stream(self, config):
        adapter = ScriptedAdapter(stream_rounds=[[text_frame("Hel"), text_frame("lo!"), finish_frame()]])
        events: list[StreamEvent] = []

        result = await adapter.send_message([user("Hi")], config, events.append)

        assert result == "Hello!"
        assert [e.content for e in events] == ["Hel", "lo!", ""]
        assert [e.done for e in events] == [False, False, True]
        assert events[-1].usage is None

    @pytest.mark.asyncio
    async def test_terminal_event_carries_cumulative_usage(self, config, echo_executor):
        adapter = ScriptedAdapter(
            stream_rounds=[
                [tool_frame(0, "c1", "Echo", '{"text": "a"}'), finish_frame("tool_calls"), usage_frame(10, 5)],
                [text_frame("ok"), finish_frame(), usage_frame(20, 2)],
            ],
            tools=echo_executor,
        )
        events: list[StreamEvent] = []
        await adapter.send_message([user("go")], config, events.append, ALLOW_ALL)

        done = [e for e in events if e.done]
        assert len(done) == 1
        assert done[0] is events[-1]
        assert done[0].usage == Usage(input_tokens=30, output_tokens=7)

    @pytest.mark.asyncio
    async def test_two_rounds_then_stop(self, config, echo_executor, echo_tool):
        adapter = ScriptedAdapter(
            stream_rounds=[
                [text_frame("Looking. "), tool_frame(0, "c1", "Echo", '{"text": "ping"}'), finish_frame("tool_calls")],
                [text_frame("All done."), finish_frame()],
            ],
            tools=echo_executor,
        )
        events: list[StreamEvent] = []

        result = await adapter.send_message([user("go")], config, events.append, ALLOW_ALL)

        assert result == "Looking. All done."
        assert len(adapter.requests) == 2
        assert echo_tool.calls == ["ping"]

        tool_events = [e for e in events if e.tool_call or e.tool_result]
        assert tool_events[0].tool_call == ToolCall(id="c1", name="Echo", input={"text": "ping"})
        assert tool_events[1].tool_result.tool_call_id == "c1"
        assert tool_events[1].tool_result.output == "echo: ping"
        assert tool_events[1].tool_result.is_error is False

        second_request = adapter.requests[1]
        assert second_request[-2]["role"] == "assistant"
        assert second_request[-2]["tool_calls"][0]["id"] == "c1"
        assert second_request[-1] == {"role": "tool", "tool_call_id": "c1", "content": "echo: ping"}

    @pytest.mark.asyncio
    async def test_async_callback(self, config):
        adapter = ScriptedAdapter(stream_rounds=[[text_frame("x"), finish_frame()]])
        seen = []

        async def on_chunk(event: StreamEvent) -> None:
            seen.append(event)

        await adapter.send_message([user("Hi")], config, on_chunk)
        assert [e.done for e in seen] == [False, True]

    @pytest.mark.asyncio
    async def test_thinking_events(self, config):
        frames = [{"choices": [{"delta": {"reasoning_content": "think"}}]}, text_frame("answer"), finish_frame()]
        adapter = ScriptedAdapter(stream_rounds=[frames])
        events: list[StreamEvent] = []
        assert await adapter.send_message([user("?")], config, events.append) == "answer"
        assert events[0].thinking == "think"
        assert events[0].content == ""

    @pytest.mark.asyncio
    async def test_permission_request_fed_back_to_model(self, config, echo_executor, echo_tool):
        adapter = ScriptedAdapter(
            stream_rounds=[
                [tool_frame(0, "c1", "Echo", '{"text": "x"}'), finish_frame("tool_calls")],
                [text_frame("waiting for approval"), finish_frame()],
            ],
            tools=echo_executor,
        )
        events: list[StreamEvent] = []
        await adapter.send_message([user("go")], config, events.append)

        result_event = next(e for e in events if e.tool_result)
        assert result_event.tool_result.output.startswith(TOOL_PERMISSION_PREFIX)
        assert echo_tool.calls == []

    @pytest.mark.asyncio
    async def test_error_results_flagged(self, config, echo_executor):
        adapter = ScriptedAdapter(
            stream_rounds=[
                [tool_frame(0, "c1", "Missing", "{}"), finish_frame("tool_calls")],
                [text_frame("sorry"), finish_frame()],
            ],
            tools=echo_executor,
        )
        events: list[StreamEvent] = []
        await adapter.send_message([user("go")], config, events.append, ALLOW_ALL)
        result_event = next(e for e in events if e.tool_result)
        assert result_event.tool_result.output == "Error: Unknown tool: Missing"
        assert result_event.tool_result.is_error is True


class TestBuffered:
    @pytest.mark.asyncio
    async def test_two_rounds(self, config, echo_executor, echo_tool):
        adapter = ScriptedAdapter(
            buffered_rounds=[
                RoundResult(tool_calls=[ToolCall(id="c1", name="Echo", input={"text": "a"})]),
                RoundResult(text="final"),
            ],
            tools=echo_executor,
        )
        assert await adapter.send_message([user("go")], config, options=ALLOW_ALL) == "final"
        assert echo_tool.calls == ["a"]
        assert len(adapter.requests) == 2

    @pytest.mark.asyncio
    async def test_round_cap(self, config, echo_executor):
        looping = [RoundResult(tool_calls=[ToolCall(id=f"c{i}", name="Echo", input={})]) for i in range(5)]
        adapter = ScriptedAdapter(buffered_rounds=looping, tools=echo_executor)
        with pytest.raises(ToolLoopLimitExceeded) as exc_info:
            await adapter.send_message([user("go")], config, options=RequestOptions(max_rounds=3))
        assert exc_info.value.max_rounds == 3
        assert len(adapter.requests) == 3

    @pytest.mark.parametrize("max_rounds", [0, -1])
    def test_round_cap_must_be_positive(self, max_rounds):
        with pytest.raises(ValidationError):
            RequestOptions(max_rounds=max_rounds)

    @pytest.mark.asyncio
    async def test_tool_calls_without_executor(self, config):
        adapter = ScriptedAdapter(buffered_rounds=[
            RoundResult(tool_calls=[ToolCall(id="c1", name="Echo", input={})]),
            RoundResult(text="ok"),
        ])
        assert await adapter.send_message([user("go")], config) == "ok"
        assert adapter.requests[1][-1]["content"] == "Error: Unknown tool: Echo"


class TestConfig:
    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self):
        adapter = ScriptedAdapter()
        with pytest.raises(InvalidConfiguration, match="Invalid configuration"):
            await adapter.send_message([user("x")], CompletionConfig(api_key="  ", model="scripted-1"))

    def test_validate_config(self):
        adapter = ScriptedAdapter()
        assert adapter.validate_config(CompletionConfig(api_key="k", model="scripted-1"))
        assert not adapter.validate_config(CompletionConfig(api_key="k", model="other"))
        assert not adapter.validate_config(CompletionConfig(api_key="", model="scripted-1"))

    def test_temperature_zero_honored(self):
        assert CompletionConfig(temperature=0).effective_temperature() == 0
        assert CompletionConfig().effective_temperature() == 1
        assert CompletionConfig().effective_max_tokens() == 10_000_000

    def test_messages_are_frozen(self):
        content = [TextContent(text="look"), ImageContent(mime_type="image/png", data="AAAA")]
        message = Message(role="user", content=content)
        with pytest.raises(Exception):
            message.role = "assistant"
        assert message.text() == "look"
