"""
Gemini adapter (Generative Language REST API over httpx).

Gemini has no system role (system text goes to `systemInstruction`),
calls the assistant `model`, delivers each function call whole in a single
part and reports usage as running totals.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

from switchyard.models.accumulator import ToolCall
from switchyard.models.base import (
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
from switchyard.models.http_adapter import HTTPProviderAdapter
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

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
SYNTHETIC_ID_PREFIX = "gemini_call_"


def gemini_parts(message: Message) -> list[dict[str, Any]]:
    parts = []
    for part in message.parts():
        if isinstance(part, TextContent):
            parts.append({"text": part.text})
        elif isinstance(part, ImageContent):
            parts.append({"inline_data": {"mime_type": part.mime_type, "data": part.data}})
    return parts


def _candidate_parts(frame: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = frame.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content") or {}
    return [p for p in content.get("parts") or [] if isinstance(p, dict)]


def _thought_text(part: dict[str, Any]) -> Optional[str]:
    thought = part.get("thought")
    if thought is True:
        return part.get("text") if isinstance(part.get("text"), str) else None
    if isinstance(thought, str) and thought:
        return thought
    return None


class GeminiDecoder(StreamDecoder):
    def __init__(self) -> None:
        self._calls = 0
        self._prompt_tokens = 0
        self._output_tokens = 0

    def next_call_id(self, function_call: dict[str, Any]) -> str:
        call_id = function_call.get("id")
        self._calls += 1
        if isinstance(call_id, str) and call_id:
            return call_id
        return f"{SYNTHETIC_ID_PREFIX}{self._calls}"

    def decode(self, frame: dict[str, Any]) -> list[FrameEvent]:
        events: list[FrameEvent] = []
        for part in _candidate_parts(frame):
            thought = _thought_text(part)
            if thought is not None:
                events.append(ThinkingDelta(text=thought))
                continue

            text = part.get("text")
            if isinstance(text, str) and text:
                events.append(TextDelta(text=text))

            function_call = part.get("functionCall")
            if isinstance(function_call, dict) and function_call.get("name"):
                call_id = self.next_call_id(function_call)
                args = function_call.get("args")
                events.append(ToolCallStart(call_id=call_id, name=function_call["name"]))
                events.append(ToolCallArgs(call_id=call_id, fragment=json.dumps(args if isinstance(args, dict) else {})))
                events.append(ToolCallEnd(call_id=call_id))

        usage = frame.get("usageMetadata")
        if isinstance(usage, dict):
            prompt = max(int_field(usage, "promptTokenCount"), self._prompt_tokens)
            output = max(int_field(usage, "candidatesTokenCount"), self._output_tokens)
            if prompt != self._prompt_tokens or output != self._output_tokens:
                events.append(UsageUpdate(
                    input_tokens=prompt - self._prompt_tokens,
                    output_tokens=output - self._output_tokens,
                ))
            self._prompt_tokens, self._output_tokens = prompt, output
        return events


def parse_gemini_response(data: dict[str, Any]) -> RoundResult:
    decoder = GeminiDecoder()
    result = RoundResult()
    for part in _candidate_parts(data):
        thought = _thought_text(part)
        if thought is not None:
            result.thinking += thought
            continue
        if isinstance(part.get("text"), str):
            result.text += part["text"]
        function_call = part.get("functionCall")
        if isinstance(function_call, dict) and function_call.get("name"):
            args = function_call.get("args")
            result.tool_calls.append(ToolCall(
                id=decoder.next_call_id(function_call),
                name=function_call["name"],
                input=args if isinstance(args, dict) else {},
            ))

    usage = data.get("usageMetadata")
    result.usage = Usage(
        input_tokens=int_field(usage, "promptTokenCount"),
        output_tokens=int_field(usage, "candidatesTokenCount"),
    )
    return result


class GeminiAdapter(HTTPProviderAdapter):
    name = "gemini"
    display_name = "Gemini"
    vendor = "Gemini"
    supported_models = (
        "gemini-pro",
        "gemini-pro-vision",
        "gemini-ultra",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-2.0-flash-thinking-exp",
    )
    default_model = "gemini-pro"

    def validate_config(self, config: CompletionConfig) -> bool:
        # model names change too often to pin
        return bool(config.api_key and config.api_key.strip())

    def _url(self, config: CompletionConfig, method: str) -> str:
        base = (config.base_url or GEMINI_BASE_URL).rstrip("/")
        return f"{base}/models/{config.model or self.default_model}:{method}"

    def _body(self, conversation: Conversation, tools: list[ToolDefinition], config: CompletionConfig) -> dict[str, Any]:
        body: dict[str, Any] = {
            "contents": conversation.messages,
            "generationConfig": {
                "temperature": config.effective_temperature(),
                "maxOutputTokens": config.effective_max_tokens(),
            },
        }
        if conversation.system:
            body["systemInstruction"] = {"parts": [{"text": conversation.system}]}
        if tools:
            body["tools"] = [{"functionDeclarations": [t.to_gemini_schema() for t in tools]}]
        return body

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        contents = [
            {"role": "user" if m.role == "user" else "model", "parts": gemini_parts(m)}
            for m in messages
            if m.role != "system"
        ]
        return Conversation(system=system_text(messages), messages=contents)

    async def open_stream(self, conversation, tools, config) -> AsyncIterator[dict[str, Any]]:
        url = self._url(config, "streamGenerateContent")
        body = self._body(conversation, tools, config)
        async for frame in self.stream_frames(url, body, params={"key": config.api_key, "alt": "sse"}):
            yield frame

    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        return GeminiDecoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        url = self._url(config, "generateContent")
        data = await self.post_json(url, self._body(conversation, tools, config), params={"key": config.api_key})
        return parse_gemini_response(data)

    def append_tool_turns(self, conversation: Conversation, round_result: RoundResult, results: list[ToolResult], config) -> None:
        parts: list[dict[str, Any]] = []
        if round_result.text:
            parts.append({"text": round_result.text})
        names = {}
        for call in round_result.tool_calls:
            names[call.id] = call.name
            function_call: dict[str, Any] = {"name": call.name, "args": call.input}
            if not call.id.startswith(SYNTHETIC_ID_PREFIX):
                function_call["id"] = call.id
            parts.append({"functionCall": function_call})
        conversation.messages.append({"role": "model", "parts": parts})

        responses = []
        for result in results:
            function_response: dict[str, Any] = {
                "name": names.get(result.tool_call_id, ""),
                "response": {"content": result.output},
            }
            if not result.tool_call_id.startswith(SYNTHETIC_ID_PREFIX):
                function_response["id"] = result.tool_call_id
            responses.append({"functionResponse": function_response})
        conversation.messages.append({"role": "user", "parts": responses})
