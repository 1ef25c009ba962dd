"""Base LLM client interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """Tool call from LLM."""
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolOutput(BaseModel):
    """Result of executing one tool call, keyed by the call id."""
    tool_call_id: str
    result: str


class Message(BaseModel):
    """Chat message in provider-neutral form."""
    role: str  # "system", "user", "assistant", "tool"
    content: str = ""
    tool_call_id: Optional[str] = None  # For tool responses
    tool_calls: Optional[List[ToolCall]] = None  # For assistant messages with tool calls
    name: Optional[str] = None  # Tool name for tool responses


class ToolProperty(BaseModel):
    """One named parameter of a tool."""
    type: str
    description: str
    enum: Optional[List[str]] = None
    items: Optional[Dict[str, Any]] = None

    def to_schema(self) -> Dict[str, Any]:
        """JSON-schema rendering without unset keys."""
        return self.model_dump(exclude_none=True)


class ToolParameters(BaseModel):
    """JSON-schema-like parameter block of a tool."""
    type: str = "object"
    properties: Dict[str, ToolProperty] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "properties": {
                name: prop.to_schema() for name, prop in self.properties.items()
            },
            "required": list(self.required),
        }


class ToolDefinition(BaseModel):
    """Tool declaration exposed to the model."""
    name: str
    description: str
    parameters: ToolParameters = Field(default_factory=ToolParameters)


class StopReason(str, Enum):
    """Why the model stopped generating."""
    END = "end"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    ERROR = "error"


class LLMResponse(BaseModel):
    """Response from LLM."""
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    stop_reason: StopReason = StopReason.END
    usage: Optional[Dict[str, int]] = None

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == StopReason.TOOL_USE and bool(self.tool_calls)


# Vendor finish reasons meaning the output was cut off
_TRUNCATION_REASONS = {"max_tokens", "length", "MAX_TOKENS"}


def resolve_stop_reason(tool_calls: Optional[List[ToolCall]], vendor_reason: Optional[str]) -> StopReason:
    """
    Map a vendor finish reason to a StopReason.

    tool_use is reported iff at least one tool call was parsed, whatever the
    vendor says; vendors disagree on their own finish reasons.
    """
    if tool_calls:
        return StopReason.TOOL_USE
    if vendor_reason in _TRUNCATION_REASONS:
        return StopReason.MAX_TOKENS
    return StopReason.END


def tool_exchange_messages(response: LLMResponse, tool_results: List[ToolOutput]) -> List[Message]:
    """
    Render one tool round (assistant tool calls + their outputs) as messages.

    Used to carry earlier rounds of a tool loop into the next provider call.
    """
    names = {tc.id: tc.name for tc in (response.tool_calls or [])}
    messages = [Message(
        role="assistant",
        content=response.content or "",
        tool_calls=response.tool_calls
    )]
    for output in tool_results:
        messages.append(Message(
            role="tool",
            content=output.result,
            tool_call_id=output.tool_call_id,
            name=names.get(output.tool_call_id)
        ))
    return messages


def drop_leading_assistant(messages: List[Message]) -> List[Message]:
    """Vendors that require the first turn to come from the user need this."""
    index = 0
    while index < len(messages) and messages[index].role != "user":
        index += 1
    return messages[index:] if index < len(messages) else messages


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    name: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        """True iff the credentials needed to call the vendor are present."""
        pass

    @abstractmethod
    async def chat(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: Optional[List[ToolDefinition]] = None
    ) -> LLMResponse:
        """
        Send chat completion request.

        Args:
            messages: Conversation in provider-neutral form
            system_prompt: System instructions
            tools: Optional tool declarations for function calling

        Returns:
            LLMResponse with content and optional tool calls
        """
        pass

    @abstractmethod
    async def continue_with_tool_results(
        self,
        messages: List[Message],
        system_prompt: str,
        tools: List[ToolDefinition],
        tool_results: List[ToolOutput],
        previous_response: LLMResponse
    ) -> LLMResponse:
        """
        Re-submit the conversation with the previous tool-call turn and its outputs.

        Args:
            messages: Conversation so far (may include earlier tool rounds)
            system_prompt: System instructions
            tools: Tool declarations (same as the originating chat call)
            tool_results: Outputs for each call of previous_response
            previous_response: The response that requested the tools

        Returns:
            The model's next turn, which may request more tools
        """
        pass

    def get_provider_name(self) -> str:
        """Get the name of the LLM provider."""
        return self.name

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the model being used."""
        pass
