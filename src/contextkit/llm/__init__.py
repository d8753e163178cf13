"""LLM provider abstraction layer."""

from contextkit.llm.base import LLMProvider, LLMResponse, Message, ToolCall, ToolDefinition
from contextkit.llm.factory import create_provider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "create_provider",
]
