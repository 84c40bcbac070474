"""
Provider validator: checks credentials with one tiny live request.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel

from switchyard.errors import AIError, ErrorCode
from switchyard.models.base import CompletionConfig, Message
from switchyard.models.registry import ProviderRegistry

logger = logging.getLogger(__name__)

PROBE_MESSAGE = "Hi"
INVALID_CONFIG_MESSAGE = "Invalid configuration. Please check API key and other settings."
EMPTY_RESPONSE_MESSAGE = "Received empty response from provider"


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None


def describe_failure(error: BaseException) -> str:
    """Turn a probe failure into a message a user can act on."""
    code = error.code if isinstance(error, AIError) else None
    message = str(error) or type(error).__name__

    if code is ErrorCode.UNAUTHORIZED or "401" in message or "Unauthorized" in message:
        return "Invalid API key"
    if code is ErrorCode.FORBIDDEN or "403" in message or "Forbidden" in message:
        return "API key does not have required permissions"
    if code is ErrorCode.RATE_LIMITED or "429" in message:
        return "Rate limit exceeded. Please try again later."
    if code is ErrorCode.TIMEOUT or isinstance(error, asyncio.TimeoutError) or "timeout" in message:
        return "Request timeout. Please check your network connection."
    if code is ErrorCode.NETWORK_ERROR or "fetch failed" in message or "ENOTFOUND" in message:
        return "Network error. Please check your internet connection."
    return message


class ProviderValidator:
    def __init__(self, registry: ProviderRegistry, timeout: float = 10.0):
        self.registry = registry
        self.timeout = timeout

    async def validate_provider(self, provider_id: str, config: CompletionConfig) -> ValidationResult:
        try:
            adapter = self.registry.resolve(provider_id)
            if not adapter.validate_config(config):
                return ValidationResult(valid=False, error=INVALID_CONFIG_MESSAGE)

            response = await asyncio.wait_for(
                adapter.send_message([Message(role="user", content=PROBE_MESSAGE)], config),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.info("Validation of %s failed: %s", provider_id, e)
            return ValidationResult(valid=False, error=describe_failure(e))

        if not response:
            return ValidationResult(valid=False, error=EMPTY_RESPONSE_MESSAGE)
        return ValidationResult(valid=True)

    def get_available_models(self, provider_id: str) -> list[str]:
        if provider_id not in self.registry:
            logger.warning("Models requested for unknown provider %s", provider_id)
            return []
        return list(self.registry.resolve(provider_id).supported_models)
