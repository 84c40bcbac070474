"""
Base tool interface. Each tool exposes a JSON schema for the model
and an async `run` method returning human-readable text.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class ToolError(Exception):
    """Raised by a tool handler; the gateway turns it into an `Error: ...` result."""


class ToolDefinition(BaseModel):
    name: str
    description: str
    input_schema: dict  # JSON Schema object

    def to_anthropic_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }

    def to_gemini_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.input_schema,
        }


class BaseTool(ABC):
    name: str
    description: str
    parameters: dict  # JSON Schema object

    @abstractmethod
    async def run(self, **kwargs: Any) -> str:
        """Execute the tool and return a string result."""

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, input_schema=self.parameters)
