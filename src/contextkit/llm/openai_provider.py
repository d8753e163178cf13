"""OpenAI LLM provider."""

from __future__ import annotations

import json
from typing import Any

from contextkit.exceptions import ModelInvocationError
from contextkit.llm.base import (
    LLMProvider,
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
)


class OpenAIProvider(LLMProvider):
    """Provider for OpenAI and OpenAI-compatible APIs (Ollama, vLLM, etc.)."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        base_url: str | None = None,
        supports_tools: bool = True,
    ) -> None:
        super().__init__(model, api_key, base_url)
        self.supports_tools = supports_tools
        self._async_client = None
        self._sdk_error: type[Exception] = Exception

    def _get_client(self):
        if self._async_client is None:
            try:
                from openai import AsyncOpenAI, OpenAIError
            except ImportError:
                from contextkit.exceptions import ProviderNotAvailableError
                raise ProviderNotAvailableError("openai", "openai")

            kwargs: dict[str, Any] = {}
            if self.api_key:
                kwargs["api_key"] = self.api_key
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._async_client = AsyncOpenAI(**kwargs)
            self._sdk_error = OpenAIError
        return self._async_client

    def _format_messages(self, messages: list[Message]) -> list[dict]:
        """Convert our Message format to OpenAI's format."""
        result = []
        for msg in messages:
            if msg.role == "tool":
                result.append({
                    "role": "tool",
                    "content": msg.content,
                    "tool_call_id": msg.tool_call_id,
                })
            elif msg.tool_calls:
                tool_calls = []
                for tc in msg.tool_calls:
                    tool_calls.append({
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    })
                result.append({
                    "role": msg.role,
                    "content": msg.content or None,
                    "tool_calls": tool_calls,
                })
            else:
                result.append({
                    "role": msg.role,
                    "content": msg.content,
                })
        return result

    def _format_tools(self, tools: list[ToolDefinition]) -> list[dict]:
        """Convert tool definitions to OpenAI's format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._format_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            kwargs["tools"] = self._format_tools(tools)

        try:
            response = await client.chat.completions.create(**kwargs)
        except self._sdk_error as e:
            raise ModelInvocationError(f"OpenAI request failed: {e}") from e
        if not response.choices:
            raise ModelInvocationError("OpenAI returned no choices")
        choice = response.choices[0]

        tool_calls = []
        if choice.message.tool_calls:
            for tc in choice.message.tool_calls:
                try:
                    args = json.loads(tc.function.arguments)
                except json.JSONDecodeError:
                    args = {}
                tool_calls.append(
                    ToolCall(id=tc.id, name=tc.function.name, arguments=args if isinstance(args, dict) else {})
                )

        return LLMResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            usage={
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            },
        )
