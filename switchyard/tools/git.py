"""
Git tools. Each subcommand is one bridge channel returning {output, error}.
"""
from __future__ import annotations

from typing import Any, Optional

from switchyard.tools.base import BaseTool, ToolError
from switchyard.tools.bridge import BridgeClient, BridgeError

_REPO_PATH = {"type": "string", "description": "Repository path"}


def format_command_result(result: dict[str, Any]) -> str:
    """stdout first, then stderr."""
    parts = [str(result[key]).rstrip() for key in ("output", "error") if result.get(key)]
    return "\n".join(parts) if parts else "(no output)"


class _GitTool(BaseTool):
    channel: str

    def __init__(self, bridge: BridgeClient):
        self._bridge = bridge

    async def _git(self, payload: dict[str, Any]) -> str:
        try:
            result = await self._bridge.call(self.channel, payload)
        except BridgeError as e:
            raise ToolError(f"Git command failed: {e}") from e
        return format_command_result(result)


class GitStatusTool(_GitTool):
    name = "GitStatus"
    channel = "git:status"
    description = "Get git repository status."
    parameters = {"type": "object", "properties": {"path": _REPO_PATH}, "required": []}

    async def run(self, path: Optional[str] = None, **_: Any) -> str:
        return await self._git({"path": path})


class GitDiffTool(_GitTool):
    name = "GitDiff"
    channel = "git:diff"
    description = "Show git diff."
    parameters = {
        "type": "object",
        "properties": {
            "path": _REPO_PATH,
            "staged": {"type": "boolean", "description": "Show staged diff only"},
            "file": {"type": "string", "description": "File path filter"},
        },
        "required": [],
    }

    async def run(
        self,
        path: Optional[str] = None,
        staged: Optional[bool] = None,
        file: Optional[str] = None,
        **_: Any,
    ) -> str:
        return await self._git({"path": path, "staged": staged, "file": file})


class GitLogTool(_GitTool):
    name = "GitLog"
    channel = "git:log"
    description = "Show git commit history."
    parameters = {
        "type": "object",
        "properties": {
            "path": _REPO_PATH,
            "maxCount": {"type": "number", "description": "Max commits to return"},
        },
        "required": [],
    }

    async def run(self, path: Optional[str] = None, maxCount: Optional[int] = None, **_: Any) -> str:
        return await self._git({"path": path, "maxCount": maxCount})


class GitCommitTool(_GitTool):
    name = "GitCommit"
    channel = "git:commit"
    description = "Create a git commit."
    parameters = {
        "type": "object",
        "properties": {
            "path": _REPO_PATH,
            "message": {"type": "string", "description": "Commit message"},
            "files": {"type": "array", "items": {"type": "string"}, "description": "Files to stage"},
        },
        "required": ["message"],
    }

    async def run(
        self,
        message: str,
        path: Optional[str] = None,
        files: Optional[list[str]] = None,
        **_: Any,
    ) -> str:
        return await self._git({"path": path, "message": message, "files": files})


class GitPushTool(_GitTool):
    name = "GitPush"
    channel = "git:push"
    description = "Push commits to remote."
    parameters = {
        "type": "object",
        "properties": {
            "path": _REPO_PATH,
            "remote": {"type": "string", "description": "Remote name (default: origin)"},
            "branch": {"type": "string", "description": "Branch name"},
        },
        "required": [],
    }

    async def run(
        self,
        path: Optional[str] = None,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        **_: Any,
    ) -> str:
        return await self._git({"path": path, "remote": remote or "origin", "branch": branch})


class GitCheckoutTool(_GitTool):
    name = "GitCheckout"
    channel = "git:checkout"
    description = "Switch branches."
    parameters = {
        "type": "object",
        "properties": {
            "path": _REPO_PATH,
            "branch": {"type": "string", "description": "Branch name"},
            "create": {"type": "boolean", "description": "Create the branch if it does not exist"},
        },
        "required": ["branch"],
    }

    async def run(
        self,
        branch: str,
        path: Optional[str] = None,
        create: Optional[bool] = None,
        **_: Any,
    ) -> str:
        return await self._git({"path": path, "branch": branch, "create": bool(create)})


def git_tools(bridge: BridgeClient) -> list[BaseTool]:
    return [
        GitStatusTool(bridge),
        GitDiffTool(bridge),
        GitLogTool(bridge),
        GitCommitTool(bridge),
        GitPushTool(bridge),
        GitCheckoutTool(bridge),
    ]
