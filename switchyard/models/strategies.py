"""
Wire formats shared between adapters.

Two request/response dialects cover most vendors: OpenAI chat-completions
(OpenAI, DeepSeek, Moonshot, OpenRouter, most custom gateways) and
Anthropic messages (Claude and Anthropic-compatible gateways). The
helpers below build requests, decode stream frames, parse buffered
responses and append tool turns for each. The generic adapter picks one
of them per request through `get_strategy`.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import urlparse

from switchyard.models.accumulator import ToolCall, parse_tool_input
from switchyard.models.base import (
    DEFAULT_MAX_TOKENS,
    CompletionConfig,
    Conversation,
    ImageContent,
    Message,
    RoundResult,
    TextContent,
    ToolResult,
    Usage,
    system_text,
)
from switchyard.models.stream import (
    FrameEvent,
    StreamDecoder,
    TextDelta,
    ThinkingDelta,
    ToolCallArgs,
    ToolCallEnd,
    ToolCallStart,
    UsageUpdate,
    int_field,
)
from switchyard.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
ANTHROPIC_DEFAULT_MAX_TOKENS = 8192
SYSTEM_FALLBACK_HEADER = "[System Instructions - Compatibility Fallback]"


# ── OpenAI chat-completions ──────────────────────────────────────────────────

def openai_content(message: Message) -> Any:
    if isinstance(message.content, str):
        return message.content
    blocks = []
    for part in message.content:
        if isinstance(part, TextContent):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImageContent):
            blocks.append({
                "type": "image_url",
                "image_url": {"url": f"data:{part.mime_type};base64,{part.data}", "detail": "auto"},
            })
    return blocks


def openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
    return [{"role": m.role, "content": openai_content(m)} for m in messages]


def openai_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [t.to_openai_schema() for t in tools]


class OpenAIChatDecoder(StreamDecoder):
    """
    Chat-completions chunks. Tool calls are addressed by `index`; the id is
    only sent on the first fragment, so indexes are mapped to ids here.
    DeepSeek's `reasoning_content` is surfaced as thinking.
    """

    def __init__(self) -> None:
        self._ids: dict[int, str] = {}
        self._open: list[str] = []

    def decode(self, frame: dict[str, Any]) -> list[FrameEvent]:
        events: list[FrameEvent] = []

        choices = frame.get("choices") or []
        choice = choices[0] if choices and isinstance(choices[0], dict) else {}
        delta = choice.get("delta") or {}

        reasoning = delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            events.append(ThinkingDelta(text=reasoning))

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.append(TextDelta(text=content))

        for call in delta.get("tool_calls") or []:
            if isinstance(call, dict):
                events.extend(self._tool_call(call))

        if choice.get("finish_reason"):
            events.extend(ToolCallEnd(call_id=call_id) for call_id in self._open)
            self._open = []

        usage = frame.get("usage")
        if isinstance(usage, dict):
            events.append(UsageUpdate(
                input_tokens=int_field(usage, "prompt_tokens"),
                output_tokens=int_field(usage, "completion_tokens"),
            ))
        return events

    def _tool_call(self, call: dict[str, Any]) -> list[FrameEvent]:
        index = call.get("index")
        index = index if isinstance(index, int) else len(self._ids)
        function = call.get("function") or {}
        name = function.get("name") if isinstance(function.get("name"), str) else ""
        call_id = call.get("id") if isinstance(call.get("id"), str) and call.get("id") else None

        events: list[FrameEvent] = []
        known = self._ids.get(index)
        if known is None or (call_id and call_id != known):
            known = call_id or f"call_{index}"
            self._ids[index] = known
            self._open.append(known)
            events.append(ToolCallStart(call_id=known, name=name))
        elif name:
            events.append(ToolCallStart(call_id=known, name=name))

        arguments = function.get("arguments")
        if isinstance(arguments, str) and arguments:
            events.append(ToolCallArgs(call_id=known, fragment=arguments))
        return events


def parse_openai_response(data: dict[str, Any]) -> RoundResult:
    choices = data.get("choices") or []
    message = (choices[0].get("message") if choices and isinstance(choices[0], dict) else None) or {}

    result = RoundResult(text=message.get("content") if isinstance(message.get("content"), str) else "")
    reasoning = message.get("reasoning_content")
    if isinstance(reasoning, str):
        result.thinking = reasoning

    for i, call in enumerate(message.get("tool_calls") or []):
        function = call.get("function") or {}
        name = function.get("name")
        if not name:
            continue
        result.tool_calls.append(ToolCall(
            id=call.get("id") or f"call_{i}",
            name=name,
            input=parse_tool_input(function.get("arguments")),
        ))

    usage = data.get("usage")
    result.usage = Usage(
        input_tokens=int_field(usage, "prompt_tokens"),
        output_tokens=int_field(usage, "completion_tokens"),
    )
    return result


def append_openai_tool_turns(conversation: Conversation, round_result: RoundResult, results: list[ToolResult]) -> None:
    conversation.messages.append({
        "role": "assistant",
        "content": round_result.text or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.input)},
            }
            for call in round_result.tool_calls
        ],
    })
    for result in results:
        conversation.messages.append({
            "role": "tool",
            "tool_call_id": result.tool_call_id,
            "content": result.output,
        })


# ── Anthropic messages ───────────────────────────────────────────────────────

def anthropic_content(message: Message) -> Any:
    if isinstance(message.content, str):
        return message.content
    blocks = []
    for part in message.content:
        if isinstance(part, TextContent):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImageContent):
            if part.mime_type not in ANTHROPIC_IMAGE_TYPES:
                logger.warning("Dropping image with unsupported type %s", part.mime_type)
                continue
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": part.mime_type, "data": part.data},
            })
    return blocks


def anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
    return [{"role": m.role, "content": anthropic_content(m)} for m in messages if m.role != "system"]


def anthropic_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [t.to_anthropic_schema() for t in tools]


def anthropic_max_tokens(config: CompletionConfig) -> int:
    """Vendor cap when unset; with thinking on, max_tokens covers thinking plus the reply."""
    response_tokens = config.effective_max_tokens(ANTHROPIC_DEFAULT_MAX_TOKENS)
    if config.thinking_enabled:
        return config.effective_thinking_budget() + response_tokens
    return response_tokens


def needs_system_fallback(base_url: Optional[str]) -> bool:
    """Gateways that are not anthropic.com may ignore `system`; unparseable URLs count as such."""
    if not base_url:
        return False
    try:
        host = (urlparse(base_url).hostname or "").lower()
    except ValueError:
        return True
    if not host:
        return True
    return not host.endswith("anthropic.com")


def with_system_fallback(messages: list[dict[str, Any]], system: str) -> list[dict[str, Any]]:
    if not system:
        return messages
    fallback = f"{SYSTEM_FALLBACK_HEADER}\n{system}"

    for i, message in enumerate(messages):
        if message["role"] != "user":
            continue
        content = message["content"]
        if isinstance(content, str):
            folded = {**message, "content": f"{fallback}\n\n{content}"}
        else:
            folded = {**message, "content": [{"type": "text", "text": fallback}, *content]}
        return messages[:i] + [folded] + messages[i + 1:]

    return [{"role": "user", "content": fallback}, *messages]


class AnthropicMessagesDecoder(StreamDecoder):
    """
    Anthropic SSE events. Content blocks are addressed by `index`. Usage
    counters are cumulative within a message, so only the growth is emitted.
    """

    def __init__(self) -> None:
        self._ids: dict[int, str] = {}
        self._input_tokens = 0
        self._output_tokens = 0

    def decode(self, frame: dict[str, Any]) -> list[FrameEvent]:
        kind = frame.get("type")
        index = frame.get("index")

        if kind == "content_block_start":
            block = frame.get("content_block") or {}
            if block.get("type") == "tool_use" and isinstance(index, int):
                call_id = block.get("id") or f"toolu_{index}"
                self._ids[index] = call_id
                return [ToolCallStart(call_id=call_id, name=block.get("name") or "")]
            return []

        if kind == "content_block_delta":
            delta = frame.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta" and isinstance(delta.get("text"), str):
                return [TextDelta(text=delta["text"])]
            if delta_type == "thinking_delta" and isinstance(delta.get("thinking"), str):
                return [ThinkingDelta(text=delta["thinking"])]
            if delta_type == "input_json_delta" and index in self._ids:
                fragment = delta.get("partial_json")
                if isinstance(fragment, str) and fragment:
                    return [ToolCallArgs(call_id=self._ids[index], fragment=fragment)]
            return []

        if kind == "content_block_stop":
            if index in self._ids:
                return [ToolCallEnd(call_id=self._ids[index])]
            return []

        if kind == "message_start":
            return self._usage((frame.get("message") or {}).get("usage"))

        if kind == "message_delta":
            return self._usage(frame.get("usage"))

        return []

    def _usage(self, usage: Optional[dict[str, Any]]) -> list[FrameEvent]:
        if not isinstance(usage, dict):
            return []
        input_tokens = max(int_field(usage, "input_tokens"), self._input_tokens)
        output_tokens = max(int_field(usage, "output_tokens"), self._output_tokens)
        update = UsageUpdate(
            input_tokens=input_tokens - self._input_tokens,
            output_tokens=output_tokens - self._output_tokens,
        )
        self._input_tokens, self._output_tokens = input_tokens, output_tokens
        if update.input_tokens == 0 and update.output_tokens == 0:
            return []
        return [update]


def parse_anthropic_response(data: dict[str, Any]) -> RoundResult:
    result = RoundResult()
    texts = []
    for block in data.get("content") or []:
        kind = block.get("type")
        if kind == "text" and isinstance(block.get("text"), str):
            texts.append(block["text"])
        elif kind == "thinking" and isinstance(block.get("thinking"), str):
            result.thinking += block["thinking"]
        elif kind == "tool_use" and block.get("name"):
            raw_input = block.get("input")
            result.tool_calls.append(ToolCall(
                id=block.get("id") or f"toolu_{len(result.tool_calls)}",
                name=block["name"],
                input=raw_input if isinstance(raw_input, dict) else {},
            ))
    result.text = "".join(texts)

    usage = data.get("usage")
    result.usage = Usage(
        input_tokens=int_field(usage, "input_tokens"),
        output_tokens=int_field(usage, "output_tokens"),
    )
    return result


def append_anthropic_tool_turns(conversation: Conversation, round_result: RoundResult, results: list[ToolResult]) -> None:
    content: list[dict[str, Any]] = []
    if round_result.text:
        content.append({"type": "text", "text": round_result.text})
    for call in round_result.tool_calls:
        content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.input})
    conversation.messages.append({"role": "assistant", "content": content})

    tool_results = []
    for result in results:
        block: dict[str, Any] = {"type": "tool_result", "tool_use_id": result.tool_call_id, "content": result.output}
        if result.is_error:
            block["is_error"] = True
        tool_results.append(block)
    conversation.messages.append({"role": "user", "content": tool_results})


# ── Strategies for the generic adapter ───────────────────────────────────────

class WireStrategy(ABC):
    """How to talk to one dialect over plain HTTP."""

    api_format: str

    @abstractmethod
    def endpoint(self, config: CompletionConfig) -> str:
        ...

    @abstractmethod
    def headers(self, config: CompletionConfig) -> dict[str, str]:
        ...

    @abstractmethod
    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        ...

    @abstractmethod
    def body(
        self,
        conversation: Conversation,
        tools: list[ToolDefinition],
        config: CompletionConfig,
        stream: bool,
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    def new_decoder(self) -> StreamDecoder:
        ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> RoundResult:
        ...

    @abstractmethod
    def append_tool_turns(self, conversation: Conversation, round_result: RoundResult, results: list[ToolResult]) -> None:
        ...


class ChatCompletionsStrategy(WireStrategy):
    api_format = "chat-completions"

    def endpoint(self, config: CompletionConfig) -> str:
        if config.api_format == "responses":
            return "/responses"
        return "/chat/completions"

    def headers(self, config: CompletionConfig) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {config.api_key}"}

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        return Conversation(messages=openai_messages(messages))

    def body(self, conversation, tools, config, stream):
        body: dict[str, Any] = {
            "model": config.model,
            "messages": conversation.messages,
            "temperature": config.effective_temperature(),
            "max_tokens": config.effective_max_tokens(DEFAULT_MAX_TOKENS),
            "stream": stream,
        }
        if tools:
            body["tools"] = openai_tools(tools)
        return body

    def new_decoder(self) -> StreamDecoder:
        return OpenAIChatDecoder()

    def parse_response(self, data: dict[str, Any]) -> RoundResult:
        return parse_openai_response(data)

    def append_tool_turns(self, conversation, round_result, results) -> None:
        append_openai_tool_turns(conversation, round_result, results)


class AnthropicMessagesStrategy(WireStrategy):
    api_format = "anthropic-messages"

    def endpoint(self, config: CompletionConfig) -> str:
        return "/v1/messages"

    def headers(self, config: CompletionConfig) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        system = system_text(messages)
        turns = anthropic_messages(messages)
        if system and needs_system_fallback(config.base_url):
            turns = with_system_fallback(turns, system)
        return Conversation(system=system, messages=turns)

    def body(self, conversation, tools, config, stream):
        body: dict[str, Any] = {
            "model": config.model,
            "messages": conversation.messages,
            "max_tokens": anthropic_max_tokens(config),
            "stream": stream,
        }
        if tools:
            body["tools"] = anthropic_tools(tools)
        if conversation.system:
            body["system"] = conversation.system
        if config.thinking_enabled:
            body["thinking"] = {"type": "enabled", "budget_tokens": config.effective_thinking_budget()}
            body["temperature"] = 1
        elif config.temperature is not None:
            body["temperature"] = config.temperature
        return body

    def new_decoder(self) -> StreamDecoder:
        return AnthropicMessagesDecoder()

    def parse_response(self, data: dict[str, Any]) -> RoundResult:
        return parse_anthropic_response(data)

    def append_tool_turns(self, conversation, round_result, results) -> None:
        append_anthropic_tool_turns(conversation, round_result, results)


_CHAT_COMPLETIONS = ChatCompletionsStrategy()
_ANTHROPIC_MESSAGES = AnthropicMessagesStrategy()


def get_strategy(api_format: Optional[str]) -> WireStrategy:
    if api_format == "anthropic-messages":
        return _ANTHROPIC_MESSAGES
    return _CHAT_COMPLETIONS
