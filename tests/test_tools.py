"""
Tests for the built-in tool handlers, with the bridge faked by httpx.MockTransport.
"""
from __future__ import annotations

import httpx
import pytest

from conftest import BridgeRecorder

from switchyard.tools.base import ToolError
from switchyard.tools.bridge import BridgeClient, BridgeError
from switchyard.tools.filesystem import EditTool, GlobTool, GrepTool, ListTool, ReadTool, WriteTool, format_size
from switchyard.tools.git import GitCommitTool, GitPushTool, GitStatusTool, format_command_result
from switchyard.tools.terminal import BashTool
from switchyard.tools.todo import TodoWriteTool, format_todo_list
from switchyard.tools.web import WebFetchTool, WebSearchTool, html_to_text


def bridge_for(recorder: BridgeRecorder) -> BridgeClient:
    return BridgeClient("http://bridge.test", transport=recorder.transport())


class TestFormatSize:
    def test_thresholds(self):
        assert format_size(1023) == "1023B"
        assert format_size(1024) == "1.0KB"
        assert format_size(1536) == "1.5KB"
        assert format_size(1024 * 1024) == "1.0MB"


class TestBridgeClient:
    @pytest.mark.asyncio
    async def test_posts_to_channel(self):
        recorder = BridgeRecorder({"fs:readFile": {"content": "hi"}})
        data = await bridge_for(recorder).call("fs:readFile", {"path": "/a"})
        assert data == {"content": "hi"}
        assert recorder.calls == [("fs:readFile", {"path": "/a"})]

    @pytest.mark.asyncio
    async def test_error_body_surfaces(self):
        recorder = BridgeRecorder({"fs:readFile": httpx.Response(500, json={"error": "ENOENT: no such file"})})
        with pytest.raises(BridgeError, match="ENOENT"):
            await bridge_for(recorder).call("fs:readFile", {"path": "/missing"})

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused")

        client = BridgeClient("http://bridge.test", transport=httpx.MockTransport(refuse))
        with pytest.raises(BridgeError, match="connection refused"):
            await client.call("exec:command", {})


class TestFilesystemTools:
    @pytest.mark.asyncio
    async def test_read(self):
        recorder = BridgeRecorder({"fs:readFile": {"content": "line 1\nline 2"}})
        assert await ReadTool(bridge_for(recorder)).run(path="/a.txt") == "line 1\nline 2"

    @pytest.mark.asyncio
    async def test_read_failure_prefix(self):
        recorder = BridgeRecorder({"fs:readFile": httpx.Response(404, json={"error": "not found"})})
        with pytest.raises(ToolError, match="^Failed to read file: not found$"):
            await ReadTool(bridge_for(recorder)).run(path="/nope")

    @pytest.mark.asyncio
    async def test_write(self):
        recorder = BridgeRecorder({"fs:writeFile": {"success": True}})
        result = await WriteTool(bridge_for(recorder)).run(path="/a.txt", content="hello")
        assert result == "Successfully wrote 5 characters to /a.txt"
        assert recorder.calls[0] == ("fs:writeFile", {"path": "/a.txt", "content": "hello"})

    @pytest.mark.asyncio
    async def test_write_returning_false(self):
        recorder = BridgeRecorder({"fs:writeFile": {"success": False}})
        with pytest.raises(ToolError, match="Write operation returned false"):
            await WriteTool(bridge_for(recorder)).run(path="/a.txt", content="x")

    @pytest.mark.asyncio
    async def test_edit_pluralization(self):
        recorder = BridgeRecorder({"fs:editFile": {"replaced": 1}})
        tool = EditTool(bridge_for(recorder))
        assert await tool.run(path="/f", old_text="a", new_text="b") == "Replaced 1 occurrence in /f"
        recorder.responses["fs:editFile"] = {"replaced": 3}
        assert await tool.run(path="/f", old_text="a", new_text="b", replace_all=True) == "Replaced 3 occurrences in /f"
        assert recorder.calls[1][1] == {"path": "/f", "oldText": "a", "newText": "b", "replaceAll": True}

    @pytest.mark.asyncio
    async def test_list(self):
        recorder = BridgeRecorder({"fs:listFiles": {"files": [
            {"name": "src", "isDirectory": True, "size": 0},
            {"name": "README.md", "isDirectory": False, "size": 2048},
        ]}})
        result = await ListTool(bridge_for(recorder)).run(path="/repo")
        assert result == "Contents of /repo:\n[DIR] src \n[FILE] README.md (2.0KB)"

    @pytest.mark.asyncio
    async def test_list_empty(self):
        recorder = BridgeRecorder({"fs:listFiles": {"files": []}})
        result = await ListTool(bridge_for(recorder)).run(path="/empty", pattern=".py")
        assert result == "Directory /empty is empty or no files match the pattern"

    @pytest.mark.asyncio
    async def test_glob_and_grep_empty(self):
        recorder = BridgeRecorder({"fs:glob": {"files": []}, "fs:grep": {"results": []}})
        bridge = bridge_for(recorder)
        assert await GlobTool(bridge).run(pattern="**/*.rs") == "No matches found."
        assert await GrepTool(bridge).run(pattern="TODO") == "No matches found."

    @pytest.mark.asyncio
    async def test_grep_results(self):
        recorder = BridgeRecorder({"fs:grep": {"results": [{"file": "a.py", "line": 3, "text": "import os"}]}})
        assert await GrepTool(bridge_for(recorder)).run(pattern="import") == "a.py:3: import os"


class TestBashTool:
    @pytest.mark.asyncio
    async def test_output_and_error_sections(self):
        recorder = BridgeRecorder({"exec:command": {"output": "ok\n", "error": "warn"}})
        result = await BashTool(bridge_for(recorder)).run(command="make")
        assert result == "Command: make\n\nOutput:\nok\n\nError/Warning:\nwarn"

    @pytest.mark.asyncio
    async def test_missing_cwd_forwarded_as_null(self):
        recorder = BridgeRecorder({"exec:command": {"output": ""}})
        result = await BashTool(bridge_for(recorder)).run(command="true")
        assert result == "Command: true\n"
        assert recorder.calls == [("exec:command", {"command": "true", "cwd": None})]

    @pytest.mark.asyncio
    async def test_cwd_forwarded_unchanged(self):
        recorder = BridgeRecorder()
        await BashTool(bridge_for(recorder)).run(command="ls", cwd="./sub")
        assert recorder.calls[0][1]["cwd"] == "./sub"


class TestGitTools:
    def test_format_command_result(self):
        assert format_command_result({"output": "M a.py\n", "error": "hint"}) == "M a.py\nhint"
        assert format_command_result({}) == "(no output)"

    @pytest.mark.asyncio
    async def test_channels(self):
        recorder = BridgeRecorder({"git:status": {"output": "clean"}, "git:push": {"error": "up to date"}})
        bridge = bridge_for(recorder)
        assert await GitStatusTool(bridge).run(path="/repo") == "clean"
        assert await GitPushTool(bridge).run() == "up to date"
        assert recorder.calls[1] == ("git:push", {"path": None, "remote": "origin", "branch": None})

    @pytest.mark.asyncio
    async def test_failure_prefix(self):
        recorder = BridgeRecorder({"git:commit": httpx.Response(500, json={"error": "nothing to commit"})})
        with pytest.raises(ToolError, match="^Git command failed: nothing to commit$"):
            await GitCommitTool(bridge_for(recorder)).run(message="wip")


class TestTodo:
    def test_markers_and_notes(self):
        result = format_todo_list([
            {"id": "1", "title": "plan", "status": "done"},
            {"id": "2", "title": "build", "status": "in_progress", "notes": "  halfway "},
            {"id": "3", "title": "ship", "status": "todo"},
        ])
        assert result == "- [x] plan\n- [~] build\n  - halfway\n- [ ] ship"

    def test_invalid_input(self):
        with pytest.raises(ToolError, match="Todos must be provided as an array"):
            format_todo_list("nope")
        with pytest.raises(ToolError, match="Invalid todo status: blocked"):
            format_todo_list([{"id": "1", "title": "x", "status": "blocked"}])

    @pytest.mark.asyncio
    async def test_tool_run(self):
        assert await TodoWriteTool().run(todos=[{"id": "1", "title": "a", "status": "todo"}]) == "- [ ] a"


class TestWebTools:
    def test_html_to_text(self):
        assert html_to_text("<p>Hi <b>there</b></p><script>x()</script>") == "Hi there"

    @pytest.mark.asyncio
    async def test_fetch_rejects_plain_http(self):
        with pytest.raises(ToolError, match="HTTPS only"):
            await WebFetchTool().run(url="http://example.com")

    @pytest.mark.asyncio
    async def test_fetch_truncates(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, html="<html><body>abcdefghij</body></html>")
        )
        result = await WebFetchTool(transport=transport).run(url="https://example.com", maxLength=4)
        assert result == "abcd"

    @pytest.mark.asyncio
    async def test_search_filters_domains(self):
        class FakeDDGS:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def text(self, query, max_results=5, timelimit=None):
                return [
                    {"title": "Docs", "href": "https://docs.python.org/3/", "body": "Python docs"},
                    {"title": "Spam", "href": "https://spam.example/", "body": "buy"},
                ]

        tool = WebSearchTool(client_factory=FakeDDGS)
        result = await tool.run(query="python", domains=["python.org"])
        assert result == "1. Docs\n   URL: https://docs.python.org/3/\n   Python docs"
        assert await tool.run(query="python", domains=["nowhere.test"]) == "No matches found."
