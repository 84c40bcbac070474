"""
Completion orchestrator.
Resolves the provider, checks the configuration and hands the request to
the adapter, which runs the tool loop.
"""
from __future__ import annotations

import logging
from typing import Optional

from switchyard.errors import InvalidConfiguration
from switchyard.models.base import CompletionConfig, Message, OnChunk, ProviderInfo, RequestOptions
from switchyard.models.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class CompletionManager:
    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def send_message(
        self,
        provider_id: str,
        messages: list[Message],
        config: CompletionConfig,
        on_chunk: Optional[OnChunk] = None,
        options: Optional[RequestOptions] = None,
    ) -> str:
        adapter = self.registry.resolve(provider_id)
        if not adapter.validate_config(config):
            raise InvalidConfiguration()

        logger.info(
            "Sending %d message(s) to %s (model=%s, stream=%s)",
            len(messages), provider_id, config.model, on_chunk is not None,
        )
        try:
            return await adapter.send_message(messages, config, on_chunk, options)
        except Exception as e:
            logger.error("Provider %s failed: %s", provider_id, e)
            raise

    def get_default_model(self, provider_id: str) -> str:
        return self.registry.resolve(provider_id).default_model

    def get_supported_models(self, provider_id: str) -> list[str]:
        return list(self.registry.resolve(provider_id).supported_models)

    def get_available_providers(self) -> list[str]:
        return self.registry.list()

    def describe_provider(self, provider_id: str) -> Optional[ProviderInfo]:
        return self.registry.describe(provider_id)
