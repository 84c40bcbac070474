"""
Base for adapters that speak to their vendor over plain HTTP (httpx)
rather than through an SDK.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from switchyard.errors import AIError, ErrorCode
from switchyard.models.base import DEFAULT_MAX_ROUNDS, BaseProviderAdapter
from switchyard.models.stream import iter_sse_json, raise_for_provider_status, translate_http_errors
from switchyard.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class HTTPProviderAdapter(BaseProviderAdapter):
    vendor: str = ""  # used in error messages, e.g. "DeepSeek API error: 401 - ..."

    def __init__(
        self,
        tools: Optional[ToolExecutor] = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        super().__init__(tools, max_rounds)
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def stream_frames(
        self,
        url: str,
        body: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[dict[str, Any]]:
        with translate_http_errors(self.vendor):
            async with self._client() as client:
                async with client.stream("POST", url, json=body, headers=headers, params=params) as response:
                    await raise_for_provider_status(response, self.vendor)
                    async for frame in iter_sse_json(response, self.vendor):
                        yield frame

    async def post_json(
        self,
        url: str,
        body: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        with translate_http_errors(self.vendor):
            async with self._client() as client:
                response = await client.post(url, json=body, headers=headers, params=params)
        await raise_for_provider_status(response, self.vendor)
        try:
            data = response.json()
        except ValueError as e:
            raise AIError(ErrorCode.PROVIDER_ERROR, f"{self.vendor} returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise AIError(ErrorCode.PROVIDER_ERROR, f"{self.vendor} returned an unexpected response")
        return data
