"""
Terminal tool: run a shell command through the tool-execution bridge.
"""
from __future__ import annotations

from typing import Any, Optional

from switchyard.tools.base import BaseTool, ToolError
from switchyard.tools.bridge import BridgeClient, BridgeError


class BashTool(BaseTool):
    name = "Bash"
    description = (
        "Execute a shell command in the system. Use this to run build scripts, package managers, "
        "git commands, or other CLI tools. Commands run with a 30-second timeout."
    )
    parameters = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The shell command to execute"},
            "cwd": {
                "type": "string",
                "description": "Optional working directory for the command (defaults to workspace root)",
            },
        },
        "required": ["command"],
    }

    def __init__(self, bridge: BridgeClient):
        self._bridge = bridge

    async def run(self, command: str, cwd: Optional[str] = None, **_: Any) -> str:
        # cwd is forwarded as given; the bridge owns the default.
        try:
            result = await self._bridge.call("exec:command", {"command": command, "cwd": cwd})
        except BridgeError as e:
            raise ToolError(f"Failed to execute command: {e}") from e

        output = f"Command: {command}\n"
        if result.get("output"):
            output += f"\nOutput:\n{result['output']}"
        if result.get("error"):
            output += f"\nError/Warning:\n{result['error']}"
        return output
