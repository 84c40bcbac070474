"""
OpenAI adapter.
Uses the official openai SDK (chat completions). Reasoning models (o1/o3)
with thinking enabled are sent `reasoning_effort` instead of sampling
parameters and tools.
"""
from __future__ import annotations

import logging
import re
from typing import Any, AsyncIterator, Callable, Optional

import openai

from switchyard.errors import AIError, ErrorCode, parse_retry_after
from switchyard.models.base import (
    BaseProviderAdapter,
    CompletionConfig,
    Conversation,
    Message,
    RoundResult,
    ToolResult,
)
from switchyard.models.stream import StreamDecoder, as_dict
from switchyard.models.strategies import (
    OpenAIChatDecoder,
    append_openai_tool_turns,
    openai_messages,
    openai_tools,
    parse_openai_response,
)
from switchyard.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CompletionConfig], Any]

_REASONING_MODEL = re.compile(r"^o[13]")


def _default_client(config: CompletionConfig) -> openai.AsyncOpenAI:
    return openai.AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)


def is_reasoning_model(model: str) -> bool:
    return bool(_REASONING_MODEL.match(model))


def translate_openai_error(e: Exception) -> AIError:
    if isinstance(e, openai.APIStatusError):
        return AIError.from_http_status(
            e.status_code,
            f"OpenAI API error: {e.status_code} - {e.message}",
            retry_after=parse_retry_after(e.response.headers.get("retry-after")),
        )
    if isinstance(e, openai.APITimeoutError):
        return AIError(ErrorCode.TIMEOUT, f"OpenAI request timeout: {e}")
    if isinstance(e, openai.APIConnectionError):
        return AIError(ErrorCode.NETWORK_ERROR, f"OpenAI network error: {e}")
    return AIError.from_unknown(e)


class OpenAIAdapter(BaseProviderAdapter):
    name = "openai"
    display_name = "OpenAI"
    supported_models = (
        "gpt-4-turbo-preview",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-4-32k",
        "gpt-3.5-turbo",
        "gpt-3.5-turbo-16k",
        "gpt-4o",
        "gpt-4o-mini",
        "o1",
        "o1-mini",
        "o1-preview",
        "o3",
        "o3-mini",
    )
    default_model = "gpt-4-turbo-preview"

    def __init__(self, tools=None, max_rounds: int = 50, client_factory: Optional[ClientFactory] = None):
        super().__init__(tools, max_rounds)
        self._client_factory = client_factory or _default_client

    @staticmethod
    def _reasoning(config: CompletionConfig) -> bool:
        return config.thinking_enabled and is_reasoning_model(config.model)

    def tool_definitions(self, config: CompletionConfig) -> list[ToolDefinition]:
        if self._reasoning(config):
            return []
        return super().tool_definitions(config)

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        return Conversation(messages=openai_messages(messages))

    def _params(self, conversation: Conversation, tools: list[ToolDefinition], config: CompletionConfig) -> dict[str, Any]:
        params: dict[str, Any] = {"model": config.model, "messages": conversation.messages}
        if self._reasoning(config):
            params["reasoning_effort"] = "medium"
            return params
        params["max_tokens"] = config.effective_max_tokens()
        params["temperature"] = config.effective_temperature()
        if tools:
            params["tools"] = openai_tools(tools)
        return params

    async def open_stream(self, conversation, tools, config) -> AsyncIterator[dict[str, Any]]:
        client = self._client_factory(config)
        params = self._params(conversation, tools, config)
        try:
            stream = await client.chat.completions.create(
                **params, stream=True, stream_options={"include_usage": True}
            )
            async for chunk in stream:
                yield as_dict(chunk)
        except AIError:
            raise
        except Exception as e:
            logger.error("OpenAI stream failed: %s", e)
            raise translate_openai_error(e) from e

    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        return OpenAIChatDecoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        client = self._client_factory(config)
        try:
            response = await client.chat.completions.create(**self._params(conversation, tools, config))
        except Exception as e:
            logger.error("OpenAI request failed: %s", e)
            raise translate_openai_error(e) from e
        return parse_openai_response(as_dict(response))

    def append_tool_turns(self, conversation: Conversation, round_result: RoundResult, results: list[ToolResult], config) -> None:
        append_openai_tool_turns(conversation, round_result, results)
