"""
Anthropic (Claude) adapter.
Uses the official anthropic SDK; raw stream events are decoded with the
shared Anthropic-messages decoder.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, Optional

import anthropic

from switchyard.errors import AIError, ErrorCode, parse_retry_after
from switchyard.models.base import (
    BaseProviderAdapter,
    CompletionConfig,
    Conversation,
    Message,
    RoundResult,
    ToolResult,
    system_text,
)
from switchyard.models.stream import StreamDecoder, as_dict
from switchyard.models.strategies import (
    AnthropicMessagesDecoder,
    anthropic_max_tokens,
    anthropic_messages,
    anthropic_tools,
    append_anthropic_tool_turns,
    parse_anthropic_response,
)
from switchyard.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CompletionConfig], Any]


def _default_client(config: CompletionConfig) -> anthropic.AsyncAnthropic:
    return anthropic.AsyncAnthropic(api_key=config.api_key, base_url=config.base_url)


def translate_anthropic_error(e: Exception) -> AIError:
    if isinstance(e, anthropic.APIStatusError):
        return AIError.from_http_status(
            e.status_code,
            f"Claude API error: {e.status_code} - {e.message}",
            retry_after=parse_retry_after(e.response.headers.get("retry-after")),
        )
    if isinstance(e, anthropic.APITimeoutError):
        return AIError(ErrorCode.TIMEOUT, f"Claude request timeout: {e}")
    if isinstance(e, anthropic.APIConnectionError):
        return AIError(ErrorCode.NETWORK_ERROR, f"Claude network error: {e}")
    return AIError.from_unknown(e)


class ClaudeAdapter(BaseProviderAdapter):
    name = "claude"
    display_name = "Claude"
    supported_models = (
        "claude-sonnet-4-20250514",
        "claude-opus-4-5-20251101",
        "claude-3-7-sonnet-20250219",
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    )
    default_model = "claude-3-5-sonnet-20241022"

    def __init__(self, tools=None, max_rounds: int = 50, client_factory: Optional[ClientFactory] = None):
        super().__init__(tools, max_rounds)
        self._client_factory = client_factory or _default_client

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        return Conversation(system=system_text(messages), messages=anthropic_messages(messages))

    def _params(self, conversation: Conversation, tools: list[ToolDefinition], config: CompletionConfig) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": config.model,
            "messages": conversation.messages,
            "max_tokens": anthropic_max_tokens(config),
        }
        if tools:
            params["tools"] = anthropic_tools(tools)
        if conversation.system:
            params["system"] = conversation.system
        if config.thinking_enabled:
            params["thinking"] = {"type": "enabled", "budget_tokens": config.effective_thinking_budget()}
            # the API rejects any other temperature while thinking
            params["temperature"] = 1
        else:
            params["temperature"] = config.effective_temperature()
        return params

    async def open_stream(self, conversation, tools, config) -> AsyncIterator[dict[str, Any]]:
        client = self._client_factory(config)
        try:
            stream = await client.messages.create(**self._params(conversation, tools, config), stream=True)
            async for event in stream:
                yield as_dict(event)
        except AIError:
            raise
        except Exception as e:
            logger.error("Claude stream failed: %s", e)
            raise translate_anthropic_error(e) from e

    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        return AnthropicMessagesDecoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        client = self._client_factory(config)
        try:
            response = await client.messages.create(**self._params(conversation, tools, config))
        except Exception as e:
            logger.error("Claude request failed: %s", e)
            raise translate_anthropic_error(e) from e
        return parse_anthropic_response(as_dict(response))

    def append_tool_turns(self, conversation: Conversation, round_result: RoundResult, results: list[ToolResult], config) -> None:
        append_anthropic_tool_turns(conversation, round_result, results)
