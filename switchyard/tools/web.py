"""
Web tools: DuckDuckGo search (no API key required) and HTTPS page fetch.
"""
from __future__ import annotations

import asyncio
import html
import json
import re
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import httpx
from duckduckgo_search import DDGS

from switchyard.config import WebToolConfig
from switchyard.tools.base import BaseTool, ToolError

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def html_to_text(markup: str) -> str:
    text = _SCRIPT_RE.sub("", markup)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", html.unescape(text)).strip()


def _timelimit(recency_days: Optional[float]) -> Optional[str]:
    if recency_days is None:
        return None
    if recency_days <= 1:
        return "d"
    if recency_days <= 7:
        return "w"
    if recency_days <= 30:
        return "m"
    return "y"


def _host_allowed(url: str, allowlist: list[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == d or host.endswith(f".{d}") for d in allowlist)


class WebFetchTool(BaseTool):
    name = "WebFetch"
    description = "Fetch content from a URL."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL to fetch (HTTPS only)"},
            "maxLength": {"type": "number", "description": "Max content length"},
        },
        "required": ["url"],
    }

    def __init__(self, config: Optional[WebToolConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config or WebToolConfig()
        self._transport = transport

    async def run(self, url: str, maxLength: Optional[int] = None, **_: Any) -> str:
        if urlparse(url).scheme != "https":
            raise ToolError("HTTPS only")

        limit = int(maxLength or self._config.max_fetch_length)
        async with httpx.AsyncClient(
            timeout=self._config.fetch_timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()

        content_type = resp.headers.get("content-type", "")
        if "json" in content_type:
            content = json.dumps(resp.json())
        else:
            content = html_to_text(resp.text)
        return content[:limit]


class WebSearchTool(BaseTool):
    name = "WebSearch"
    description = "Search the web and return relevant results with titles, URLs and snippets."
    parameters = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "limit": {"type": "number", "description": "Max number of results"},
            "recencyDays": {"type": "number", "description": "Filter by recency (days)"},
            "domains": {"type": "array", "items": {"type": "string"}, "description": "Domain allowlist"},
        },
        "required": ["query"],
    }

    def __init__(self, config: Optional[WebToolConfig] = None, client_factory: Callable[[], Any] = DDGS):
        self._config = config or WebToolConfig()
        self._client_factory = client_factory

    def _search(self, query: str, limit: int, timelimit: Optional[str]) -> list[dict]:
        with self._client_factory() as ddgs:
            return list(ddgs.text(query, max_results=limit, timelimit=timelimit))

    async def run(
        self,
        query: str,
        limit: Optional[int] = None,
        recencyDays: Optional[float] = None,
        domains: Optional[list[str]] = None,
        **_: Any,
    ) -> str:
        max_results = min(int(limit or 5), self._config.max_search_results)
        results = await asyncio.to_thread(self._search, query, max_results, _timelimit(recencyDays))

        if domains:
            allowlist = [d.lower() for d in domains]
            results = [r for r in results if _host_allowed(r.get("href", ""), allowlist)]

        if not results:
            return "No matches found."

        lines = []
        for i, r in enumerate(results, 1):
            title = r.get("title", "No title")
            href = r.get("href", "")
            body = r.get("body", "")[:200].replace("\n", " ")
            lines.append(f"{i}. {title}\n   URL: {href}\n   {body}")
        return "\n\n".join(lines)
