"""
Generic adapter for OpenAI- or Anthropic-compatible endpoints
(Moonshot, OpenRouter, self-hosted gateways). The dialect is chosen per
request from `api_format`; there is no model catalog.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from switchyard.models.base import DEFAULT_MAX_ROUNDS, CompletionConfig, Conversation, Message, RoundResult
from switchyard.models.http_adapter import HTTPProviderAdapter
from switchyard.models.stream import StreamDecoder
from switchyard.models.strategies import WireStrategy, get_strategy
from switchyard.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


class GenericAdapter(HTTPProviderAdapter):
    vendor = "API"

    def __init__(
        self,
        name: str = "generic",
        display_name: Optional[str] = None,
        base_url: Optional[str] = None,
        api_format: Optional[str] = None,
        tools: Optional[ToolExecutor] = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        **kwargs: Any,
    ):
        super().__init__(tools, max_rounds, **kwargs)
        self.name = name
        self.display_name = display_name or name.capitalize()
        self.base_url = base_url
        self.api_format = api_format
        self.vendor = self.display_name

    def _resolved(self, config: CompletionConfig) -> CompletionConfig:
        """Fill base URL and wire format from the provider's own defaults."""
        updates = {}
        if not config.base_url and self.base_url:
            updates["base_url"] = self.base_url
        if not config.api_format and self.api_format:
            updates["api_format"] = self.api_format
        return config.model_copy(update=updates) if updates else config

    def _strategy(self, config: CompletionConfig) -> WireStrategy:
        return get_strategy(self._resolved(config).api_format)

    def validate_config(self, config: CompletionConfig) -> bool:
        config = self._resolved(config)
        return bool(config.api_key and config.api_key.strip() and config.model and config.base_url)

    def _url(self, config: CompletionConfig) -> str:
        config = self._resolved(config)
        return f"{config.base_url.rstrip('/')}{self._strategy(config).endpoint(config)}"

    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        config = self._resolved(config)
        if config.thinking_enabled and config.api_format != "anthropic-messages":
            logger.warning(
                "Thinking is only supported with the anthropic-messages format (provider %s uses %s)",
                self.name, config.api_format or "chat-completions",
            )
        return self._strategy(config).build_conversation(messages, config)

    async def open_stream(self, conversation, tools, config) -> AsyncIterator[dict[str, Any]]:
        config = self._resolved(config)
        strategy = self._strategy(config)
        body = strategy.body(conversation, tools, config, stream=True)
        async for frame in self.stream_frames(self._url(config), body, headers=strategy.headers(config)):
            yield frame

    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        return self._strategy(config).new_decoder()

    async def complete_round(self, conversation, tools, config) -> RoundResult:
        config = self._resolved(config)
        strategy = self._strategy(config)
        body = strategy.body(conversation, tools, config, stream=False)
        return strategy.parse_response(await self.post_json(self._url(config), body, headers=strategy.headers(config)))

    def append_tool_turns(self, conversation, round_result, results, config) -> None:
        self._strategy(config).append_tool_turns(conversation, round_result, results)
