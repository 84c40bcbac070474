"""
Plugin-server (MCP) tools.

The protocol client itself lives outside this package; anything that
satisfies `PluginServerClient` can be connected. Tools are exposed to the
model as `mcp__<server>__<tool>` and routed back here by that prefix.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from switchyard.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

MCP_TOOL_PREFIX = "mcp__"


def create_plugin_tool_name(server_name: str, tool_name: str) -> str:
    return f"{MCP_TOOL_PREFIX}{server_name}__{tool_name}"


def parse_plugin_tool_name(full_name: str) -> Optional[tuple[str, str]]:
    if not full_name.startswith(MCP_TOOL_PREFIX):
        return None
    parts = full_name[len(MCP_TOOL_PREFIX):].split("__")
    if len(parts) < 2:
        return None
    return parts[0], "__".join(parts[1:])


class PluginServerError(Exception):
    pass


class PluginContent(BaseModel):
    type: str = "text"
    text: str = ""


class PluginToolResult(BaseModel):
    content: list[PluginContent] = Field(default_factory=list)
    is_error: bool = False


@runtime_checkable
class PluginServerClient(Protocol):
    name: str

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def list_tools(self) -> list[ToolDefinition]: ...

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> PluginToolResult: ...


class ServerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    FAILED = "failed"


class PluginServerRegistry:
    """Connected plugin servers and the tools they advertise."""

    def __init__(self) -> None:
        self._clients: dict[str, PluginServerClient] = {}
        self._tools: dict[str, list[ToolDefinition]] = {}
        self._states: dict[str, ServerState] = {}

    def state(self, server_name: str) -> ServerState:
        return self._states.get(server_name, ServerState.DISCONNECTED)

    async def connect(self, client: PluginServerClient) -> None:
        try:
            await client.connect()
            tools = await client.list_tools()
        except Exception:
            self._states[client.name] = ServerState.FAILED
            logger.exception("Failed to connect plugin server %s", client.name)
            raise
        self._clients[client.name] = client
        self._tools[client.name] = list(tools)
        self._states[client.name] = ServerState.CONNECTED
        logger.info("Plugin server %s connected with %d tool(s)", client.name, len(tools))

    async def disconnect(self, server_name: str) -> None:
        client = self._clients.pop(server_name, None)
        self._tools.pop(server_name, None)
        self._states[server_name] = ServerState.DISCONNECTED
        if client is not None:
            await client.close()

    async def close_all(self) -> None:
        for name in list(self._clients):
            await self.disconnect(name)

    def is_plugin_tool(self, tool_name: str) -> bool:
        return parse_plugin_tool_name(tool_name) is not None

    def tool_definitions(self) -> list[ToolDefinition]:
        definitions = []
        for server_name, tools in self._tools.items():
            for tool in tools:
                definitions.append(ToolDefinition(
                    name=create_plugin_tool_name(server_name, tool.name),
                    description=f"[MCP:{server_name}] {tool.description or tool.name}",
                    input_schema=tool.input_schema,
                ))
        return definitions

    async def call_tool(self, full_name: str, arguments: dict[str, Any]) -> str:
        parsed = parse_plugin_tool_name(full_name)
        if parsed is None:
            raise PluginServerError(f"Invalid MCP tool name: {full_name}")
        server_name, tool_name = parsed

        client = self._clients.get(server_name)
        if client is None or self.state(server_name) is not ServerState.CONNECTED:
            raise PluginServerError(f"MCP server {server_name} not found")

        result = await client.call_tool(tool_name, arguments)
        text = "\n".join(c.text for c in result.content if c.type == "text")
        if result.is_error:
            raise PluginServerError(text or "MCP tool execution failed")
        return text
