"""LLM client abstraction layer."""

from .base_client import (
    BaseLLMClient,
    Message,
    LLMResponse,
    StopReason,
    ToolCall,
    ToolDefinition,
    ToolOutput,
)
from .errors import ProviderError, ProviderNotConfiguredError
from .factory import (
    create_llm_client,
    build_registry,
    LLMProvider,
    ProviderRegistry,
    ProviderStatus,
)

__all__ = [
    "BaseLLMClient",
    "Message",
    "LLMResponse",
    "StopReason",
    "ToolCall",
    "ToolDefinition",
    "ToolOutput",
    "ProviderError",
    "ProviderNotConfiguredError",
    "create_llm_client",
    "build_registry",
    "LLMProvider",
    "ProviderRegistry",
    "ProviderStatus",
]
