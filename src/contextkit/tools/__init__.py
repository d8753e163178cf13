"""Tools the model may call during agentic file selection."""

from contextkit.tools.definitions import (
    FINISH_TOOL,
    INVESTIGATE_TOOL,
    Finish,
    Investigate,
    get_selection_tools,
    parse_tool_call,
)
from contextkit.tools.registry import ToolRegistry

__all__ = [
    "FINISH_TOOL",
    "INVESTIGATE_TOOL",
    "Finish",
    "Investigate",
    "ToolRegistry",
    "get_selection_tools",
    "parse_tool_call",
]
