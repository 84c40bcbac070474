"""
Tool execution gateway.

Every tool call the model makes lands here. The permission engine is
consulted first; allowed calls are routed to a plugin server (by the
`mcp__` naming convention) or to the built-in handler table. The result
is always text: failures are returned as `Error: ...` so the model can
react to them.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from switchyard.config import ToolsConfig
from switchyard.permissions.engine import PermissionContext, PermissionEngine
from switchyard.tools.base import BaseTool, ToolDefinition
from switchyard.tools.bridge import BridgeClient
from switchyard.tools.filesystem import filesystem_tools
from switchyard.tools.git import git_tools
from switchyard.tools.mcp import PluginServerRegistry
from switchyard.tools.terminal import BashTool
from switchyard.tools.todo import TodoWriteTool
from switchyard.tools.web import WebFetchTool, WebSearchTool

logger = logging.getLogger(__name__)

TOOL_PERMISSION_PREFIX = "__tool_permission__:"


class ExecutionOptions(BaseModel):
    tool_call_id: Optional[str] = None
    permissions: PermissionContext = Field(default_factory=PermissionContext)


def permission_request(tool_name: str, tool_call_id: Optional[str]) -> str:
    payload = {"kind": "permission_request", "toolName": tool_name, "toolCallId": tool_call_id}
    return TOOL_PERMISSION_PREFIX + json.dumps(payload)


def parse_permission_request(result: str) -> Optional[dict[str, Any]]:
    """Inverse of `permission_request`; None when `result` is an ordinary tool output."""
    if not result.startswith(TOOL_PERMISSION_PREFIX):
        return None
    try:
        payload = json.loads(result[len(TOOL_PERMISSION_PREFIX):])
    except json.JSONDecodeError:
        return None
    if isinstance(payload, dict) and payload.get("kind") == "permission_request":
        return payload
    return None


class ToolExecutor:
    def __init__(
        self,
        tools: list[BaseTool],
        plugin_servers: Optional[PluginServerRegistry] = None,
        permission_engine: Optional[PermissionEngine] = None,
    ):
        self._tools = {t.name: t for t in tools}
        self._plugin_servers = plugin_servers
        self._permissions = permission_engine or PermissionEngine()

    def definitions(self) -> list[ToolDefinition]:
        builtin = [t.definition() for t in self._tools.values()]
        plugin = self._plugin_servers.tool_definitions() if self._plugin_servers else []
        return builtin + plugin

    async def execute(
        self,
        tool_name: str,
        tool_input: Optional[dict[str, Any]],
        options: Optional[ExecutionOptions] = None,
    ) -> str:
        options = options or ExecutionOptions()
        tool_input = tool_input if isinstance(tool_input, dict) else {}

        decision = self._permissions.evaluate(tool_name, tool_input, options.permissions)
        if decision.action == "deny":
            logger.info("Tool %s denied: %s", tool_name, decision.reason)
            return f'Error: Tool "{tool_name}" was denied. {decision.reason or ""}'.rstrip()
        if decision.action == "ask":
            logger.info("Tool %s needs approval: %s", tool_name, decision.reason)
            return permission_request(tool_name, options.tool_call_id)

        if self._plugin_servers is not None and self._plugin_servers.is_plugin_tool(tool_name):
            try:
                return await self._plugin_servers.call_tool(tool_name, tool_input)
            except Exception as e:
                logger.warning("Plugin tool %s failed: %s", tool_name, e)
                return f"Error: {str(e) or 'MCP tool execution failed'}"

        tool = self._tools.get(tool_name)
        if tool is None:
            return f"Error: Unknown tool: {tool_name}"

        try:
            return await tool.run(**tool_input)
        except Exception as e:
            logger.warning("Tool %s failed: %s", tool_name, e)
            return f"Error: {str(e) or 'Tool execution failed'}"


def builtin_tools(config: Optional[ToolsConfig] = None, bridge: Optional[BridgeClient] = None) -> list[BaseTool]:
    config = config or ToolsConfig()
    bridge = bridge or BridgeClient(config.bridge.base_url, timeout=config.bridge.timeout_seconds)
    return [
        BashTool(bridge),
        *filesystem_tools(bridge),
        TodoWriteTool(),
        *git_tools(bridge),
        WebFetchTool(config.web),
        WebSearchTool(config.web),
    ]


def build_tool_executor(
    config: Optional[ToolsConfig] = None,
    plugin_servers: Optional[PluginServerRegistry] = None,
    bridge: Optional[BridgeClient] = None,
) -> ToolExecutor:
    return ToolExecutor(builtin_tools(config, bridge), plugin_servers=plugin_servers)
