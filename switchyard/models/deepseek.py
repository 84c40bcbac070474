"""
DeepSeek adapter (OpenAI-compatible chat completions over httpx).
`deepseek-reasoner` streams its chain of thought as `reasoning_content`
and does not take tools.
"""
from __future__ import annotations

from typing import Any, AsyncIterator

from switchyard.models.base import CompletionConfig, Conversation, Message, RoundResult
from switchyard.models.http_adapter import HTTPProviderAdapter
from switchyard.models.stream import StreamDecoder
from switchyard.models.strategies import (
    OpenAIChatDecoder,
    append_openai_tool_turns,
    openai_messages,
    openai_tools,
    parse_openai_response,
)
from switchyard.tools.base import ToolDefinition

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"
REASONER_MODEL = "deepseek-reasoner"


class DeepSeekAdapter(HTTPProviderAdapter):
    name = "deepseek"
    display_name = "DeepSeek"
    vendor = "DeepSeek"
    supported_models = ("deepseek-chat", "deepseek-coder", REASONER_MODEL)
    default_model = "deepseek-chat"

    def tool_definitions(self, config: CompletionConfig) -> list[ToolDefinition]:
        if config.model == REASONER_MODEL:
            return []
        return super().tool_definitions(config)

    def _url(self, config: CompletionConfig) -> str:
        return f"{(config.base_url or DEEPSEEK_BASE_URL).rstrip('/')}/chat/completions"

    @staticmethod
    def _headers(config: CompletionConfig) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {config.api_key}"}

    def _body(self, conversation: Conversation, tools: list[ToolDefinition], config: CompletionConfig, stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": config.model or self.default_model,
            "messages": conversation.messages,
            "temperature": config.effective_temperature(),
            "max_tokens": config.effective_max_tokens(),
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}
        if tools:
            body["tools"] = openai_tools(tools)
        return body

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        return Conversation(messages=openai_messages(messages))

    async def open_stream(self, conversation, tools, config) -> AsyncIterator[dict[str, Any]]:
        body = self._body(conversation, tools, config, stream=True)
        async for frame in self.stream_frames(self._url(config), body, headers=self._headers(config)):
            yield frame

    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        return OpenAIChatDecoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        body = self._body(conversation, tools, config, stream=False)
        return parse_openai_response(await self.post_json(self._url(config), body, headers=self._headers(config)))

    def append_tool_turns(self, conversation, round_result, results, config) -> None:
        append_openai_tool_turns(conversation, round_result, results)
