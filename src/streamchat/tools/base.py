"""Class-style tool definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from streamchat.types import ToolParameter


class Tool(ABC):
    """A tool declared as a class instead of a bare callback.

    Set ``name``, ``description`` and ``parameters`` on the subclass and
    implement ``execute()``; the decoded JSON arguments arrive as keyword
    arguments.  Register an instance with ``ToolRegistry.register_tool()``.
    """

    name: str
    description: str
    parameters: list[ToolParameter]

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        ...

    def to_json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {p.name: p.to_property() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai_schema(self) -> dict[str, Any]:
        """Definition for the request's ``tools`` array."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.to_json_schema(),
            },
        }
