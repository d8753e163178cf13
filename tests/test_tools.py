"""Tests for the selection tools and the tool registry."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextkit.exceptions import SelectionArgumentError
from contextkit.llm.base import ToolCall, ToolDefinition
from contextkit.sandbox.executor import CommandSandbox
from contextkit.tools import (
    FINISH_TOOL,
    INVESTIGATE_TOOL,
    Finish,
    Investigate,
    ToolRegistry,
    get_selection_tools,
    parse_tool_call,
)


def _definition(name: str) -> ToolDefinition:
    return ToolDefinition(name=name, description=name, parameters={"type": "object", "properties": {}})


class TestParseToolCall:
    def test_investigate(self):
        call = ToolCall(id="1", name=INVESTIGATE_TOOL, arguments={"command": "  ls src  "})
        assert parse_tool_call(call) == Investigate(command="ls src")

    def test_finish(self):
        call = ToolCall(id="1", name=FINISH_TOOL, arguments={"selectedFiles": ["a.py", "b.py:3-9"]})
        assert parse_tool_call(call) == Finish(selections=("a.py", "b.py:3-9"))

    def test_finish_accepts_empty_list(self):
        call = ToolCall(id="1", name=FINISH_TOOL, arguments={"selectedFiles": []})
        assert parse_tool_call(call) == Finish(selections=())

    @pytest.mark.parametrize(
        "name, arguments",
        [
            (INVESTIGATE_TOOL, {}),
            (INVESTIGATE_TOOL, {"command": "   "}),
            (INVESTIGATE_TOOL, {"command": ["ls"]}),
            (FINISH_TOOL, {}),
            (FINISH_TOOL, {"selectedFiles": "a.py"}),
            (FINISH_TOOL, {"selectedFiles": ["a.py", 3]}),
            ("edit_file", {"path": "a.py"}),
        ],
    )
    def test_rejected(self, name, arguments):
        with pytest.raises(SelectionArgumentError):
            parse_tool_call(ToolCall(id="1", name=name, arguments=arguments))


class TestToolRegistry:
    @pytest.mark.asyncio
    async def test_execute(self):
        registry = ToolRegistry()

        async def shout(text: str) -> str:
            return text.upper()

        registry.register(shout, _definition("shout"))
        assert await registry.execute("shout", {"text": "hi"}) == "HI"

    @pytest.mark.asyncio
    async def test_failures_become_text(self):
        registry = ToolRegistry()

        async def broken() -> str:
            raise RuntimeError("kaput")

        registry.register(broken, _definition("broken"))
        assert await registry.execute("broken", {}) == "Error executing tool 'broken': kaput"
        assert await registry.execute("missing", {}) == "Error: Unknown tool 'missing'"

    @pytest.mark.asyncio
    async def test_advertised_only_tool(self):
        registry = ToolRegistry()
        registry.register(None, _definition("finish"))
        assert [d.name for d in registry.get_definitions()] == ["finish"]
        assert await registry.execute("finish", {}) == "Error: Unknown tool 'finish'"


class TestSelectionTools:
    def test_definitions(self, tmp_project: Path):
        registry = get_selection_tools(CommandSandbox(), str(tmp_project))
        definitions = registry.get_definitions()
        assert [d.name for d in definitions] == [INVESTIGATE_TOOL, FINISH_TOOL]
        assert "grep" in definitions[0].description
        assert definitions[1].parameters["required"] == ["selectedFiles"]

    @pytest.mark.asyncio
    async def test_run_command(self, tmp_project: Path):
        registry = get_selection_tools(CommandSandbox(), str(tmp_project))
        output = await registry.execute(INVESTIGATE_TOOL, {"command": "cat utils.py"})
        assert "def calculate_total" in output

    @pytest.mark.asyncio
    async def test_denied_and_empty_results(self, tmp_project: Path):
        registry = get_selection_tools(CommandSandbox(), str(tmp_project))
        denied = await registry.execute(INVESTIGATE_TOOL, {"command": "rm -rf ."})
        assert denied.startswith("Error: Command denied")
        empty = await registry.execute(INVESTIGATE_TOOL, {"command": "grep -rn zzz_not_there ."})
        assert empty == "(no output)"
