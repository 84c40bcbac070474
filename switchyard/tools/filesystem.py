"""
Filesystem tools: read, write, edit, list, glob and grep.
All I/O goes through the local tool-execution bridge.
"""
from __future__ import annotations

from typing import Any, Optional

from switchyard.tools.base import BaseTool, ToolError
from switchyard.tools.bridge import BridgeClient, BridgeError


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


class _BridgeTool(BaseTool):
    def __init__(self, bridge: BridgeClient):
        self._bridge = bridge

    async def _call(self, channel: str, payload: dict[str, Any], failure: str) -> dict[str, Any]:
        try:
            return await self._bridge.call(channel, payload)
        except BridgeError as e:
            raise ToolError(f"{failure}: {e}") from e


class ReadTool(_BridgeTool):
    name = "Read"
    description = (
        "Read the complete contents of a file from the file system. Use this when you need to "
        "examine, analyze, or work with the content of an existing file."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "The absolute file path to read"},
        },
        "required": ["path"],
    }

    async def run(self, path: str, **_: Any) -> str:
        data = await self._call("fs:readFile", {"path": path}, "Failed to read file")
        return str(data.get("content", ""))


class WriteTool(_BridgeTool):
    name = "Write"
    description = (
        "Create a new file or completely overwrite an existing file with new content. "
        "For making small changes to existing files, consider using Edit."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "The absolute file path to write to"},
            "content": {"type": "string", "description": "The complete content to write to the file"},
        },
        "required": ["path", "content"],
    }

    async def run(self, path: str, content: str, **_: Any) -> str:
        data = await self._call("fs:writeFile", {"path": path, "content": content}, "Failed to write file")
        if not data.get("success"):
            raise ToolError("Failed to write file: Write operation returned false")
        return f"Successfully wrote {len(content)} characters to {path}"


class EditTool(_BridgeTool):
    name = "Edit"
    description = "Update specific text in an existing file by replacing a target string with new content."
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "The absolute file path to edit"},
            "old_text": {"type": "string", "description": "The exact text to replace"},
            "new_text": {"type": "string", "description": "The replacement text"},
            "replace_all": {
                "type": "boolean",
                "description": "Replace all occurrences instead of the first match",
            },
        },
        "required": ["path", "old_text", "new_text"],
    }

    async def run(
        self,
        path: str,
        old_text: str,
        new_text: str,
        replace_all: Optional[bool] = None,
        **_: Any,
    ) -> str:
        data = await self._call(
            "fs:editFile",
            {"path": path, "oldText": old_text, "newText": new_text, "replaceAll": replace_all},
            "Failed to edit file",
        )
        replaced = int(data.get("replaced", 0))
        noun = "occurrence" if replaced == 1 else "occurrences"
        return f"Replaced {replaced} {noun} in {path}"


class ListTool(_BridgeTool):
    name = "LS"
    description = (
        "Get a detailed listing of all files and directories in a specified folder, "
        "including names, types and sizes."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "The absolute path of the directory to list"},
            "pattern": {
                "type": "string",
                "description": "Optional filter pattern to match against file names (e.g. \".py\")",
            },
        },
        "required": ["path"],
    }

    async def run(self, path: str, pattern: Optional[str] = None, **_: Any) -> str:
        data = await self._call("fs:listFiles", {"path": path, "pattern": pattern}, "Failed to list files")
        files = data.get("files") or []
        if not files:
            return f"Directory {path} is empty or no files match the pattern"

        lines = []
        for entry in files:
            if entry.get("isDirectory"):
                lines.append(f"[DIR] {entry.get('name', '')} ")
            else:
                lines.append(f"[FILE] {entry.get('name', '')} ({format_size(int(entry.get('size', 0)))})")
        return f"Contents of {path}:\n" + "\n".join(lines)


class GlobTool(_BridgeTool):
    name = "Glob"
    description = "Fast file pattern matching using glob patterns."
    parameters = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Glob pattern (e.g. \"**/*.py\")"},
            "path": {"type": "string", "description": "Base directory. Defaults to workspace root."},
        },
        "required": ["pattern"],
    }

    async def run(self, pattern: str, path: Optional[str] = None, **_: Any) -> str:
        data = await self._call("fs:glob", {"pattern": pattern, "path": path}, "Failed to glob files")
        files = data.get("files") or []
        if not files:
            return "No matches found."
        return "\n".join(str(f) for f in files)


class GrepTool(_BridgeTool):
    name = "Grep"
    description = "Search file contents using a regular expression."
    parameters = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Regex pattern"},
            "path": {"type": "string", "description": "Search directory"},
            "glob": {"type": "string", "description": "File filter (e.g. \"*.py\")"},
            "ignoreCase": {"type": "boolean", "description": "Case insensitive"},
            "maxResults": {"type": "number", "description": "Maximum number of matches"},
        },
        "required": ["pattern"],
    }

    async def run(
        self,
        pattern: str,
        path: Optional[str] = None,
        glob: Optional[str] = None,
        ignoreCase: Optional[bool] = None,
        maxResults: Optional[int] = None,
        **_: Any,
    ) -> str:
        data = await self._call(
            "fs:grep",
            {
                "pattern": pattern,
                "path": path,
                "glob": glob,
                "ignoreCase": ignoreCase,
                "maxResults": maxResults,
            },
            "Failed to grep files",
        )
        results = data.get("results") or []
        if not results:
            return "No matches found."
        return "\n".join(f"{r.get('file', '')}:{r.get('line', '')}: {r.get('text', '')}" for r in results)


def filesystem_tools(bridge: BridgeClient) -> list[BaseTool]:
    return [
        ReadTool(bridge),
        WriteTool(bridge),
        EditTool(bridge),
        ListTool(bridge),
        GlobTool(bridge),
        GrepTool(bridge),
    ]
