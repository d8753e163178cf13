"""Tools offered to the model during agentic file selection.

The model may call exactly two tools. Each raw call is converted right away
into one member of the closed union ``Investigate | Finish``; anything that
does not fit the schema raises ``SelectionArgumentError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from contextkit.cancellation import CancellationToken
from contextkit.exceptions import CommandDenied, SandboxExecutionError, SelectionArgumentError
from contextkit.llm.base import ToolCall, ToolDefinition
from contextkit.sandbox.executor import CommandSandbox
from contextkit.tools.registry import ToolRegistry

INVESTIGATE_TOOL = "run_terminal_command"
FINISH_TOOL = "finish_selection"


@dataclass(frozen=True)
class Investigate:
    command: str


@dataclass(frozen=True)
class Finish:
    selections: tuple[str, ...]


SelectionToolCall = Union[Investigate, Finish]


def investigate_definition(allowed_commands: list[str]) -> ToolDefinition:
    return ToolDefinition(
        name=INVESTIGATE_TOOL,
        description=(
            "Run a read-only shell command in the workspace root to investigate the code "
            "(search for symbols, list files, read parts of files). Pipes are allowed; "
            "redirection, chaining and substitution are not. Permitted commands: "
            + ", ".join(allowed_commands)
            + ". Dependency and build directories are excluded automatically."
        ),
        parameters={
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The single-line command to run"},
            },
            "required": ["command"],
        },
    )


FINISH_DEFINITION = ToolDefinition(
    name=FINISH_TOOL,
    description=(
        "Finish the investigation and return the files needed to answer the request. "
        "Each entry is a workspace-relative path, optionally with a line range "
        "('src/app.py:10-40' or 'src/app.py:12')."
    ),
    parameters={
        "type": "object",
        "properties": {
            "selectedFiles": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Relevant file paths, optionally suffixed with :line or :start-end",
            },
        },
        "required": ["selectedFiles"],
    },
)


def parse_tool_call(call: ToolCall) -> SelectionToolCall:
    """Validate a raw tool call against its schema.

    Raises:
        SelectionArgumentError: Unknown tool or malformed arguments.
    """
    args = call.arguments or {}
    if call.name == INVESTIGATE_TOOL:
        command = args.get("command")
        if not isinstance(command, str) or not command.strip():
            raise SelectionArgumentError(f"{INVESTIGATE_TOOL} requires a non-empty 'command' string")
        return Investigate(command=command.strip())
    if call.name == FINISH_TOOL:
        files = args.get("selectedFiles", args.get("selected_files"))
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise SelectionArgumentError(f"{FINISH_TOOL} requires 'selectedFiles' as a list of strings")
        return Finish(selections=tuple(files))
    raise SelectionArgumentError(f"Unknown tool '{call.name}'")


class SelectionTools:
    """Investigation tool implementation bound to one workspace."""

    def __init__(
        self,
        sandbox: CommandSandbox,
        workspace_root: str,
        token: CancellationToken | None = None,
    ) -> None:
        self.sandbox = sandbox
        self.workspace_root = workspace_root
        self.token = token

    async def run_terminal_command(self, command: str) -> str:
        """Run a sandboxed command; policy and exit failures come back as text."""
        try:
            output = await self.sandbox.execute(command, self.workspace_root, self.token)
        except (CommandDenied, SandboxExecutionError) as e:
            return f"Error: {e}"
        return output if output.strip() else "(no output)"


def get_selection_tools(
    sandbox: CommandSandbox,
    workspace_root: str,
    token: CancellationToken | None = None,
) -> ToolRegistry:
    """Create a ToolRegistry with the investigation and finish tools."""
    tools = SelectionTools(sandbox, workspace_root, token)
    registry = ToolRegistry()
    registry.register(tools.run_terminal_command, investigate_definition(sandbox.allowed_commands()))
    registry.register(None, FINISH_DEFINITION)
    return registry
