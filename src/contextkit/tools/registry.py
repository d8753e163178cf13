"""Tool registry for agent tools."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from contextkit.llm.base import ToolDefinition

logger = logging.getLogger("contextkit.tools")

ToolHandler = Callable[..., Awaitable[str]]


class ToolRegistry:
    """Registry that manages the tools a model may call during selection."""

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}
        self._definitions: dict[str, ToolDefinition] = {}

    def register(self, handler: ToolHandler | None, definition: ToolDefinition) -> None:
        """Register a tool with its definition.

        `handler` is None for tools the controller handles itself (the terminal
        finish tool); those are advertised but not executable.
        """
        if handler is not None:
            self._handlers[definition.name] = handler
        self._definitions[definition.name] = definition

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions (for passing to LLM)."""
        return list(self._definitions.values())

    async def execute(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool by name; failures come back as ``Error...`` text."""
        handler = self._handlers.get(name)
        if handler is None:
            return f"Error: Unknown tool '{name}'"

        try:
            return await handler(**arguments)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            return f"Error executing tool '{name}': {e}"
