"""Tool registry: name → callback, parameter schema and description."""

from __future__ import annotations

import copy
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from streamchat.errors import ToolExecutionError, ToolNotFoundError
from streamchat.tools.base import Tool
from streamchat.types import ToolCall

_logger = logging.getLogger(__name__)

# Callbacks receive the decoded arguments object and may be sync or async
ToolCallback = Callable[[Any], Any]

@dataclass(frozen=True)
class ToolRegistration:
    """A registered tool."""

    name: str
    callback: ToolCallback
    parameters: dict[str, Any]
    description: str | None = None

    def to_openai_schema(self) -> dict[str, Any]:
        function: dict[str, Any] = {
            "name": self.name,
            "parameters": self.parameters,
        }
        if self.description is not None:
            function["description"] = self.description
        return {"type": "function", "function": function}


class ToolRegistry:
    """Registry of callable tools.

    Registrations replace the whole name map (copy-on-write), so a turn
    executing tools in one task never sees a half-updated map while another
    task registers.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolRegistration] = {}

    def register(
        self,
        name: str,
        callback: ToolCallback,
        parameters: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> ToolRegistry:
        """Register *callback* under *name*, replacing any earlier entry."""
        if name in self._tools:
            _logger.debug("Replacing tool registration: %s", name)
        tools = dict(self._tools)
        tools[name] = ToolRegistration(
            name=name,
            callback=callback,
            parameters=(
                copy.deepcopy(parameters) if parameters
                else {"type": "object", "properties": {}}
            ),
            description=description,
        )
        self._tools = tools
        return self

    def register_tool(self, tool: Tool) -> ToolRegistry:
        """Register a class-style ``Tool`` instance."""

        async def _callback(arguments: Any) -> Any:
            if not isinstance(arguments, dict):
                raise TypeError(
                    f"Tool '{tool.name}' expects a JSON object, got {type(arguments).__name__}"
                )
            return await tool.execute(**arguments)

        return self.register(
            tool.name, _callback, tool.to_json_schema(), tool.description,
        )

    def unregister(self, name: str) -> None:
        tools = dict(self._tools)
        tools.pop(name, None)
        self._tools = tools

    def get(self, name: str) -> ToolRegistration | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_openai_schemas(self) -> list[dict[str, Any]]:
        """Return the ``tools`` array for a chat completion request."""
        return [t.to_openai_schema() for t in self._tools.values()]

    async def execute(self, tool_call: ToolCall) -> Any:
        """Run the callback registered for *tool_call* and return its result.

        Raises ``ToolNotFoundError`` for unknown names and
        ``ToolExecutionError`` when argument decoding or the callback fails.
        """
        registration = self._tools.get(tool_call.name)
        if registration is None:
            raise ToolNotFoundError(tool_call)

        try:
            arguments = tool_call.function.parsed_arguments()
            result = registration.callback(arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ToolExecutionError(tool_call, e) from e
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def describe_arguments(tool_call: ToolCall) -> Any:
    """Best-effort decoded arguments for logging and events."""
    try:
        return tool_call.function.parsed_arguments()
    except json.JSONDecodeError:
        return tool_call.arguments
