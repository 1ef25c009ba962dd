"""OpenAI LLM client implementation."""

import json
import logging
from typing import Optional, List, Dict, Any

from openai import AsyncOpenAI

from .base_client import (
    BaseLLMClient,
    Message,
    LLMResponse,
    ToolCall,
    ToolDefinition,
    ToolOutput,
    resolve_stop_reason,
)
from .errors import ProviderNotConfiguredError

logger = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT client implementation."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o-mini)
            max_tokens: Completion token budget per call
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.client: Optional[AsyncOpenAI] = None

        if self.api_key:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=timeout)
            logger.info(f"OpenAI client initialized with model: {self.model}")
        else:
            logger.warning("OpenAI provider not configured - missing API key")

    def is_configured(self) -> bool:
        return self.client is not None

    async def chat(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]] = None
    ) -> LLMResponse:
        """Send chat completion request to OpenAI."""
        return await self._create(self._convert_messages(messages, system_prompt), tools)

    async def continue_with_tool_results(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: List[ToolDefinition],
        tool_results: List[ToolOutput],
        previous_response: LLMResponse
    ) -> LLMResponse:
        """Append the tool-call turn and tool outputs, then ask for the next turn."""
        openai_messages = self._convert_messages(messages, system_prompt)

        if previous_response.tool_calls:
            openai_messages.append(self._assistant_tool_message(previous_response.content, previous_response.tool_calls))
            for result in tool_results:
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": result.tool_call_id,
                    "content": result.result
                })

        return await self._create(openai_messages, tools)

    async def _create(
        self,
        openai_messages: List[Dict[str, Any]],
        tools: Optional[List[ToolDefinition]]
    ) -> LLMResponse:
        if not self.client:
            raise ProviderNotConfiguredError(self.name)

        # Build request kwargs
        kwargs = {
            "model": self.model,
            "messages": openai_messages,
            "max_tokens": self.max_tokens,
        }

        # Add tools if provided
        if tools:
            kwargs["tools"] = self._convert_tools(tools)
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise

        return self._parse_response(response)

    def _convert_tools(self, tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters.to_schema()
                }
            }
            for tool in tools
        ]

    def _convert_messages(self, messages: List[Message], system_prompt: str) -> List[Dict[str, Any]]:
        """Convert neutral messages to OpenAI format, system prompt first."""
        openai_messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]

        for msg in messages:
            if msg.role == "system":
                continue
            if msg.role == "tool":
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content
                })
            elif msg.role == "assistant" and msg.tool_calls:
                # Include tool_calls for assistant messages that made tool calls
                openai_messages.append(self._assistant_tool_message(msg.content, msg.tool_calls))
            else:
                openai_messages.append({"role": msg.role, "content": msg.content})

        return openai_messages

    def _assistant_tool_message(self, content: str, tool_calls: List[ToolCall]) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": content or None,
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments, ensure_ascii=False)
                    }
                }
                for tc in tool_calls
            ]
        }

    def _parse_response(self, response) -> LLMResponse:
        choice = response.choices[0]
        content = choice.message.content or ""

        # Extract tool calls if present, function type only
        tool_calls = []
        for tc in choice.message.tool_calls or []:
            if getattr(tc, "type", "function") != "function":
                continue
            tool_calls.append(ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=self._parse_arguments(tc.function.arguments)
            ))

        # Extract usage
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls or None,
            stop_reason=resolve_stop_reason(tool_calls, choice.finish_reason),
            usage=usage
        )

    def _parse_arguments(self, raw: Optional[str]) -> Dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"OpenAI returned malformed tool arguments: {raw[:200]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
