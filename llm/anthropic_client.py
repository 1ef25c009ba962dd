"""Anthropic Claude LLM client implementation."""

import logging
from typing import Optional, List, Dict, Any

from anthropic import AsyncAnthropic

from .base_client import (
    BaseLLMClient,
    Message,
    LLMResponse,
    ToolCall,
    ToolDefinition,
    ToolOutput,
    drop_leading_assistant,
    resolve_stop_reason,
)
from .errors import ProviderNotConfiguredError

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client implementation."""

    name = "claude"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-20250514)
            max_tokens: Output token budget per call
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.client: Optional[AsyncAnthropic] = None

        if self.api_key:
            self.client = AsyncAnthropic(api_key=self.api_key, timeout=timeout)
            logger.info(f"Anthropic client initialized with model: {self.model}")
        else:
            logger.warning("Claude provider not configured - missing API key")

    def is_configured(self) -> bool:
        return self.client is not None

    async def chat(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]] = None
    ) -> LLMResponse:
        """Send chat completion request to Anthropic."""
        return await self._create(self._convert_messages(messages), system_prompt, tools)

    async def continue_with_tool_results(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: List[ToolDefinition],
        tool_results: List[ToolOutput],
        previous_response: LLMResponse
    ) -> LLMResponse:
        """Append the tool_use turn and the tool_result blocks, then ask for the next turn."""
        anthropic_messages = self._convert_messages(messages)

        anthropic_messages.append({
            "role": "assistant",
            "content": self._tool_use_blocks(previous_response.content, previous_response.tool_calls or [])
        })
        anthropic_messages.append({
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": result.tool_call_id,
                    "content": result.result
                }
                for result in tool_results
            ]
        })

        return await self._create(anthropic_messages, system_prompt, tools)

    async def _create(
        self,
        anthropic_messages: List[Dict[str, Any]],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]]
    ) -> LLMResponse:
        if not self.client:
            raise ProviderNotConfiguredError(self.name)

        # Build request kwargs
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": anthropic_messages,
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self.client.messages.create(**kwargs)
        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            raise

        return self._parse_response(response)

    def _convert_tools(self, tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters.to_schema()
            }
            for tool in tools
        ]

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert neutral messages to Anthropic content blocks."""
        conversation_messages = []

        for msg in drop_leading_assistant([m for m in messages if m.role != "system"]):
            if msg.role == "tool":
                # Convert tool response to user message with tool_result
                conversation_messages.append({
                    "role": "user",
                    "content": [{
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id,
                        "content": msg.content
                    }]
                })
            elif msg.role == "assistant" and msg.tool_calls:
                conversation_messages.append({
                    "role": "assistant",
                    "content": self._tool_use_blocks(msg.content, msg.tool_calls)
                })
            else:
                conversation_messages.append({
                    "role": msg.role,
                    "content": msg.content
                })

        return conversation_messages

    def _tool_use_blocks(self, content: str, tool_calls: List[ToolCall]) -> List[Dict[str, Any]]:
        blocks = []
        if content:
            blocks.append({"type": "text", "text": content})
        for tc in tool_calls:
            blocks.append({
                "type": "tool_use",
                "id": tc.id,
                "name": tc.name,
                "input": tc.arguments
            })
        return blocks

    def _parse_response(self, response) -> LLMResponse:
        # Extract content and tool calls
        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=dict(block.input or {})
                ))

        # Extract usage
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls or None,
            stop_reason=resolve_stop_reason(tool_calls, response.stop_reason),
            usage=usage
        )

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
