"""Google Gemini LLM client implementation (Generative Language REST API)."""

import logging
import uuid
from typing import Optional, List, Dict, Any

import httpx

from .base_client import (
    BaseLLMClient,
    Message,
    LLMResponse,
    StopReason,
    ToolCall,
    ToolDefinition,
    ToolOutput,
    drop_leading_assistant,
    resolve_stop_reason,
)
from .errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)


class GeminiClient(BaseLLMClient):
    """
    Gemini client over the public REST endpoint.

    Google retires model names regularly, so a call walks an ordered list of
    model variants: the configured model first, then the fallbacks. Only
    "model unavailable" style answers (404, 429, 5xx) move on to the next
    variant; anything else is raised straight away.
    """

    name = "gemini"
    DEFAULT_MODEL = "gemini-1.5-flash"
    DEFAULT_FALLBACK_MODELS = ["gemini-2.0-flash", "gemini-1.5-flash"]
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    RETRYABLE_STATUS = {404, 429, 500, 502, 503, 504}

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        fallback_models: Optional[List[str]] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Preferred model (default: gemini-1.5-flash)
            fallback_models: Model variants tried in order when the preferred one is unavailable
            max_tokens: Output token budget per call
            timeout: Request timeout in seconds
            http_client: Optional shared httpx client (tests inject a mock transport here)
        """
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._http_client = http_client

        variants = [self.model] + list(
            fallback_models if fallback_models is not None else self.DEFAULT_FALLBACK_MODELS
        )
        self.model_variants = list(dict.fromkeys(variants))

        if self.api_key:
            logger.info(f"Gemini client initialized with models: {', '.join(self.model_variants)}")
        else:
            logger.warning("Gemini provider not configured - missing API key")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def chat(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]] = None
    ) -> LLMResponse:
        """Send generateContent request to Gemini."""
        contents = self._convert_messages(messages)
        return await self._generate(contents, system_prompt, tools)

    async def continue_with_tool_results(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: List[ToolDefinition],
        tool_results: List[ToolOutput],
        previous_response: LLMResponse
    ) -> LLMResponse:
        """Append the functionCall turn and the functionResponse parts, then ask for the next turn."""
        contents = self._convert_messages(messages)
        calls = previous_response.tool_calls or []
        names = {tc.id: tc.name for tc in calls}

        if calls:
            contents.append({
                "role": "model",
                "parts": self._function_call_parts(previous_response.content, calls)
            })

        contents.append({
            "role": "user",
            "parts": [
                {
                    "functionResponse": {
                        "name": names.get(result.tool_call_id, "unknown"),
                        "response": {"result": result.result}
                    }
                }
                for result in tool_results
            ]
        })

        return await self._generate(contents, system_prompt, tools)

    async def _generate(
        self,
        contents: List[Dict[str, Any]],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]]
    ) -> LLMResponse:
        if not self.api_key:
            raise ProviderNotConfiguredError(self.name)

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"maxOutputTokens": self.max_tokens},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if tools:
            payload["tools"] = [{"functionDeclarations": self._convert_tools(tools)}]

        last_error = ""
        for model in self.model_variants:
            response = await self._post(model, payload)

            if response.status_code == 200:
                if model != self.model:
                    logger.warning(f"Gemini answered with fallback model {model}")
                return self._parse_response(response.json())

            last_error = f"{model} -> HTTP {response.status_code}: {response.text[:300]}"
            if response.status_code not in self.RETRYABLE_STATUS:
                logger.error(f"Error calling Gemini API: {last_error}")
                raise ProviderError(self.name, last_error)

            logger.warning(f"Gemini model unavailable, trying next variant: {last_error}")

        logger.error(f"All Gemini model variants failed: {last_error}")
        raise ProviderError(self.name, f"all model variants failed; last error: {last_error}")

    async def _post(self, model: str, payload: Dict[str, Any]) -> httpx.Response:
        url = f"{self.BASE_URL}/models/{model}:generateContent"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        try:
            if self._http_client is not None:
                return await self._http_client.post(url, headers=headers, json=payload)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.post(url, headers=headers, json=payload)
        except httpx.RequestError as e:
            logger.error(f"Request error connecting to Gemini API: {e}")
            raise ProviderError(self.name, f"connection error: {e}") from e

    def _convert_tools(self, tools: List[ToolDefinition]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": _upper_types(tool.parameters.to_schema())
            }
            for tool in tools
        ]

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        """Convert neutral messages to Gemini contents; consecutive tool outputs share one turn."""
        contents: List[Dict[str, Any]] = []

        for msg in drop_leading_assistant([m for m in messages if m.role != "system"]):
            if msg.role == "tool":
                part = {
                    "functionResponse": {
                        "name": msg.name or "unknown",
                        "response": {"result": msg.content}
                    }
                }
                if contents and contents[-1].get("_tool_turn"):
                    contents[-1]["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part], "_tool_turn": True})
            elif msg.role == "assistant" and msg.tool_calls:
                contents.append({
                    "role": "model",
                    "parts": self._function_call_parts(msg.content, msg.tool_calls)
                })
            else:
                contents.append({
                    "role": "model" if msg.role == "assistant" else "user",
                    "parts": [{"text": msg.content}]
                })

        for content in contents:
            content.pop("_tool_turn", None)
        return contents

    def _function_call_parts(self, content: str, tool_calls: List[ToolCall]) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []
        if content:
            parts.append({"text": content})
        for tc in tool_calls:
            parts.append({"functionCall": {"name": tc.name, "args": tc.arguments}})
        return parts

    def _parse_response(self, data: Dict[str, Any]) -> LLMResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            logger.warning(f"Gemini returned no candidates: {feedback}")
            return LLMResponse(content="", stop_reason=StopReason.ERROR)

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        content = ""
        tool_calls = []
        for part in parts:
            if "text" in part:
                content += part["text"]
            elif "functionCall" in part:
                call = part["functionCall"]
                # Gemini does not issue call ids; synthesise stable ones for the loop
                tool_calls.append(ToolCall(
                    id=f"gemini-{uuid.uuid4().hex[:12]}-{len(tool_calls)}",
                    name=call.get("name", ""),
                    arguments=call.get("args") or {}
                ))

        usage = None
        metadata = data.get("usageMetadata")
        if metadata:
            usage = {
                "prompt_tokens": metadata.get("promptTokenCount", 0),
                "completion_tokens": metadata.get("candidatesTokenCount", 0),
                "total_tokens": metadata.get("totalTokenCount", 0),
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls or None,
            stop_reason=resolve_stop_reason(tool_calls, candidate.get("finishReason")),
            usage=usage
        )

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model


def _upper_types(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Gemini's schema dialect spells types in upper case (STRING, OBJECT, ...)."""
    converted = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif isinstance(value, dict):
            converted[key] = _upper_types(value)
        else:
            converted[key] = value
    return converted
