"""
TodoWrite: renders the model's task list as a markdown checklist.
Nothing is stored; the model re-sends the whole list each time.
"""
from __future__ import annotations

from typing import Any

from switchyard.tools.base import BaseTool, ToolError

TODO_STATUS_MARKERS = {
    "todo": " ",
    "in_progress": "~",
    "done": "x",
}


def format_todo_list(todos: Any) -> str:
    if not isinstance(todos, list):
        raise ToolError("Todos must be provided as an array")

    lines = []
    for todo in todos:
        status = todo.get("status") if isinstance(todo, dict) else None
        marker = TODO_STATUS_MARKERS.get(status) if isinstance(status, str) else None
        if marker is None:
            raise ToolError(f"Invalid todo status: {status}")

        line = f"- [{marker}] {todo.get('title') or ''}"
        notes = todo.get("notes")
        if isinstance(notes, str) and notes.strip():
            line += f"\n  - {notes.strip()}"
        lines.append(line)

    return "\n".join(lines)


class TodoWriteTool(BaseTool):
    name = "TodoWrite"
    description = "Write or replace the entire TODO list for the current session."
    parameters = {
        "type": "object",
        "properties": {
            "todos": {
                "type": "array",
                "description": "The full list of TODO items to write",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "Unique identifier for the todo item"},
                        "title": {"type": "string", "description": "Short description of the task"},
                        "status": {
                            "type": "string",
                            "description": "Current status of the task",
                            "enum": ["todo", "in_progress", "done"],
                        },
                        "notes": {"type": "string", "description": "Optional additional details"},
                    },
                    "required": ["id", "title", "status"],
                },
            },
        },
        "required": ["todos"],
    }

    async def run(self, todos: Any = None, **_: Any) -> str:
        return format_todo_list(todos)
