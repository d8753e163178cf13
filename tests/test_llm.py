"""Tests for provider construction and message formatting (no network)."""

from __future__ import annotations

import pytest

from contextkit.config import LLMConfig
from contextkit.exceptions import ConfigError
from contextkit.llm.anthropic_provider import AnthropicProvider
from contextkit.llm.base import Message, ToolCall, ToolDefinition
from contextkit.llm.factory import create_provider
from contextkit.llm.openai_provider import OpenAIProvider


def _exchange() -> list[Message]:
    call = ToolCall(id="call_1", name="run_terminal_command", arguments={"command": "ls"})
    return [
        Message(role="system", content="You pick files."),
        Message(role="user", content="Which files?"),
        Message(role="assistant", content="", tool_calls=[call]),
        Message(role="tool", content="main.py", tool_call_id="call_1"),
    ]


TOOL = ToolDefinition(
    name="run_terminal_command",
    description="Run a command",
    parameters={"type": "object", "properties": {"command": {"type": "string"}}},
)


class TestFactory:
    def test_openai_and_local(self):
        provider = create_provider(LLMConfig(provider="local", model="qwen", base_url="http://localhost:11434/v1"))
        assert isinstance(provider, OpenAIProvider)
        assert provider.base_url == "http://localhost:11434/v1"
        assert isinstance(create_provider(LLMConfig(provider="OpenAI", model="gpt-4o")), OpenAIProvider)

    def test_anthropic_carries_tool_support(self):
        provider = create_provider(LLMConfig(provider="anthropic", supports_tools=False))
        assert isinstance(provider, AnthropicProvider)
        assert provider.supports_tools is False

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown LLM provider"):
            create_provider(LLMConfig(provider="mystery"))


class TestOpenAIFormatting:
    def test_tool_exchange(self):
        formatted = OpenAIProvider()._format_messages(_exchange())
        assert [m["role"] for m in formatted] == ["system", "user", "assistant", "tool"]
        assert formatted[2]["content"] is None
        assert formatted[2]["tool_calls"][0]["function"] == {
            "name": "run_terminal_command",
            "arguments": '{"command": "ls"}',
        }
        assert formatted[3] == {"role": "tool", "content": "main.py", "tool_call_id": "call_1"}

    def test_tools(self):
        (tool,) = OpenAIProvider()._format_tools([TOOL])
        assert tool["type"] == "function"
        assert tool["function"]["parameters"] == TOOL.parameters


class TestAnthropicFormatting:
    def test_tool_exchange(self):
        system, formatted = AnthropicProvider()._format_messages(_exchange())
        assert system == "You pick files."
        assert [m["role"] for m in formatted] == ["user", "assistant", "user"]
        assert formatted[1]["content"] == [
            {"type": "tool_use", "id": "call_1", "name": "run_terminal_command", "input": {"command": "ls"}}
        ]
        assert formatted[2]["content"][0] == {
            "type": "tool_result",
            "tool_use_id": "call_1",
            "content": "main.py",
        }

    def test_tools(self):
        (tool,) = AnthropicProvider()._format_tools([TOOL])
        assert tool == {"name": TOOL.name, "description": TOOL.description, "input_schema": TOOL.parameters}
