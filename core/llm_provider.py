"""
Multi-LLM Provider abstraction for OpenAI and Claude.

Provides a unified interface for tool calling with both providers.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


ROLES = ("system", "user", "assistant", "tool")


@dataclass
class ToolCall:
    """Represents a tool call from the LLM."""
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class Message:
    """Represents a message in the conversation."""
    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: Optional[List[ToolCall]] = None  # For assistant requests
    tool_call_id: Optional[str] = None  # For tool responses
    name: Optional[str] = None  # Tool name for tool responses

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[List[ToolCall]] = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: Optional[str] = None) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


@dataclass
class LLMResponse:
    """Response from an LLM call."""
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    raw_response: Any = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """
        Send a chat request to the LLM.

        Args:
            messages: List of conversation messages
            tools: Optional list of tool definitions
            timeout: Optional wall-clock limit in seconds for this call

        Returns:
            LLMResponse

        Raises:
            TimeoutError: if the call ran past ``timeout``
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider is properly configured."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider with tool calling support."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-5-nano",
        max_tokens: int = 4096,
        client: Any = None
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.client = client

        if self.client is None and self.api_key:
            from openai import OpenAI
            self.client = OpenAI(api_key=self.api_key)

    def is_configured(self) -> bool:
        return self.client is not None

    def _convert_messages_to_openai(self, messages: List[Message]) -> List[Dict]:
        """Convert generic messages to OpenAI format."""
        openai_messages = []

        for msg in messages:
            if msg.role == "tool":
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content
                })
            elif msg.role == "assistant" and msg.tool_calls:
                openai_messages.append({
                    "role": "assistant",
                    "content": msg.content or "",
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments)
                            }
                        }
                        for tc in msg.tool_calls
                    ]
                })
            else:
                openai_messages.append({
                    "role": msg.role,
                    "content": msg.content
                })

        return openai_messages

    def _convert_tools_to_openai(self, tools: List[Dict]) -> List[Dict]:
        """Convert generic tool definitions to OpenAI format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get("parameters", {})
                }
            }
            for tool in tools
        ]

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        if not self.is_configured():
            raise RuntimeError("OpenAI provider not configured. Set API key.")

        import openai

        request_kwargs = {
            "model": self.model,
            "messages": self._convert_messages_to_openai(messages),
            "max_completion_tokens": self.max_tokens,
        }
        if tools:
            request_kwargs["tools"] = self._convert_tools_to_openai(tools)
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        try:
            response = self.client.chat.completions.create(**request_kwargs)
        except openai.APITimeoutError as e:
            raise TimeoutError(f"OpenAI request timed out after {timeout}s") from e

        message = response.choices[0].message
        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments) if tc.function.arguments else {}
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse tool args for {tc.function.name}: {e}")
                arguments = {}
            if not isinstance(arguments, dict):
                logger.error(f"Tool args for {tc.function.name} are not an object: {arguments!r}")
                arguments = {}
            tool_calls.append(ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=arguments
            ))

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            finish_reason=response.choices[0].finish_reason or "stop",
            raw_response=response
        )


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider with tool calling support."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        client: Any = None
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.client = client

        if self.client is None and self.api_key:
            import anthropic
            self.client = anthropic.Anthropic(api_key=self.api_key)

    def is_configured(self) -> bool:
        return self.client is not None

    def _convert_messages_to_claude(self, messages: List[Message]) -> Tuple[Optional[str], List[Dict]]:
        """Convert generic messages to Claude format."""
        system_prompt = None
        claude_messages = []

        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
            elif msg.role == "user":
                claude_messages.append({
                    "role": "user",
                    "content": msg.content
                })
            elif msg.role == "assistant":
                content = []
                if msg.content:
                    content.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls or []:
                    content.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments
                    })
                if not content:
                    # Empty assistant turns are rejected by the Messages API
                    logger.warning("Skipping empty assistant message for Claude")
                    continue
                claude_messages.append({
                    "role": "assistant",
                    "content": content
                })
            elif msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content
                }
                # Consecutive tool results share one user turn
                previous = claude_messages[-1] if claude_messages else None
                if (
                    previous
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    claude_messages.append({"role": "user", "content": [block]})

        return system_prompt, claude_messages

    def _convert_tools_to_claude(self, tools: List[Dict]) -> List[Dict]:
        """Convert generic tool definitions to Claude format."""
        return [
            {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "input_schema": tool.get("parameters", {})
            }
            for tool in tools
        ]

    def chat(
        self,
        messages: List[Message],
        tools: Optional[List[Dict]] = None,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        if not self.is_configured():
            raise RuntimeError("Claude provider not configured. Set API key.")

        import anthropic

        system_prompt, claude_messages = self._convert_messages_to_claude(messages)

        request_kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": claude_messages,
        }
        if system_prompt:
            request_kwargs["system"] = system_prompt
        if tools:
            request_kwargs["tools"] = self._convert_tools_to_claude(tools)
        if timeout is not None:
            request_kwargs["timeout"] = timeout

        try:
            response = self.client.messages.create(**request_kwargs)
        except anthropic.APITimeoutError as e:
            raise TimeoutError(f"Claude request timed out after {timeout}s") from e

        content = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=block.input if isinstance(block.input, dict) else {}
                ))

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            finish_reason=response.stop_reason or "stop",
            raw_response=response
        )


def get_provider(
    provider: str = "openai",
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: int = 4096
) -> LLMProvider:
    """
    Factory function to get an LLM provider.

    Args:
        provider: "openai" or "claude"
        api_key: API key for the provider
        model: Optional model override

    Returns:
        Configured LLMProvider instance
    """
    if provider == "claude":
        return ClaudeProvider(
            api_key=api_key,
            model=model or "claude-sonnet-4-20250514",
            max_tokens=max_tokens
        )
    if provider == "openai":
        return OpenAIProvider(
            api_key=api_key,
            model=model or "gpt-5-nano",
            max_tokens=max_tokens
        )
    raise ValueError(f"Unknown provider: {provider}")
