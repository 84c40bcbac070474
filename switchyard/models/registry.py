"""
Provider registry: name → adapter.

Built-in families:
  claude      → ClaudeAdapter (anthropic SDK)
  openai      → OpenAIAdapter (openai SDK)
  gemini      → GeminiAdapter
  deepseek    → DeepSeekAdapter
  moonshot    → GenericAdapter
  openrouter  → GenericAdapter
  custom      → GenericAdapter
  <any>       → GenericAdapter for every provider declared in switchyard.json
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from switchyard.config import SwitchyardConfig
from switchyard.errors import UnknownProvider
from switchyard.models.anthropic import ClaudeAdapter
from switchyard.models.base import BaseProviderAdapter, ProviderInfo
from switchyard.models.deepseek import DeepSeekAdapter
from switchyard.models.gemini import GeminiAdapter
from switchyard.models.generic import GenericAdapter
from switchyard.models.openai_compat import OpenAIAdapter
from switchyard.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

_GENERIC_PROVIDERS: dict[str, str] = {
    "moonshot": "Moonshot",
    "openrouter": "OpenRouter",
    "custom": "Custom",
}


class ProviderRegistry:
    def __init__(self) -> None:
        self._adapters: dict[str, BaseProviderAdapter] = {}
        self._lock = threading.Lock()

    def register(self, name: str, adapter: BaseProviderAdapter) -> None:
        with self._lock:
            if name in self._adapters:
                logger.info("Overriding provider %s", name)
            self._adapters[name] = adapter

    def resolve(self, name: str) -> BaseProviderAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            raise UnknownProvider(name)
        return adapter

    def list(self) -> list[str]:
        return list(self._adapters)

    def describe(self, name: str) -> Optional[ProviderInfo]:
        adapter = self._adapters.get(name)
        return adapter.describe() if adapter is not None else None

    def __contains__(self, name: object) -> bool:
        return name in self._adapters


def build_default_registry(
    tool_executor: Optional[ToolExecutor] = None,
    config: Optional[SwitchyardConfig] = None,
) -> ProviderRegistry:
    config = config or SwitchyardConfig()
    max_rounds = config.agent.max_rounds

    registry = ProviderRegistry()
    registry.register("claude", ClaudeAdapter(tool_executor, max_rounds))
    registry.register("openai", OpenAIAdapter(tool_executor, max_rounds))
    registry.register("gemini", GeminiAdapter(tool_executor, max_rounds))
    registry.register("deepseek", DeepSeekAdapter(tool_executor, max_rounds))
    for name, display_name in _GENERIC_PROVIDERS.items():
        registry.register(name, GenericAdapter(name, display_name, tools=tool_executor, max_rounds=max_rounds))

    for provider in config.providers:
        registry.register(provider.name, GenericAdapter(
            provider.name,
            provider.display_name,
            base_url=provider.base_url,
            api_format=provider.api_format,
            tools=tool_executor,
            max_rounds=max_rounds,
        ))
    return registry
