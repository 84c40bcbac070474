"""
Client for the local tool-execution bridge.

The bridge is a privileged local service that performs file and process
I/O on the gateway's behalf:

  POST {base_url}/ipc/<channel>   body: JSON payload
  2xx → JSON result      4xx/5xx → {"error": "..."}
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    pass


class BridgeClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def call(self, channel: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/ipc/{channel}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Bridge call %s failed: %s", channel, e)
            raise BridgeError(str(e) or type(e).__name__) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.is_error:
            detail = data.get("error") if isinstance(data, dict) else None
            raise BridgeError(detail or f"Bridge returned HTTP {resp.status_code}")

        if not isinstance(data, dict):
            raise BridgeError(f"Unexpected bridge response for {channel}")
        return data
