"""LLM client factory and provider registry."""

import logging
from enum import Enum
from typing import Optional, Dict, List

from pydantic import BaseModel

from config.settings import Settings
from .base_client import BaseLLMClient
from .openai_client import OpenAIClient
from .anthropic_client import AnthropicClient
from .gemini_client import GeminiClient

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENAI = "openai"


DEFAULT_PROVIDER = LLMProvider.GEMINI
DEFAULT_FALLBACK_ORDER = [LLMProvider.GEMINI, LLMProvider.CLAUDE, LLMProvider.OPENAI]


class ProviderStatus(BaseModel):
    """Configuration state of one provider."""
    configured: bool
    is_default: bool


def parse_provider(value: Optional[str]) -> Optional[LLMProvider]:
    """Parse a provider name; unknown or empty values give None."""
    if not value:
        return None
    try:
        return LLMProvider(value.strip().lower())
    except ValueError:
        return None


def parse_fallback_order(value: Optional[str]) -> List[LLMProvider]:
    """Parse a comma separated fallback order, dropping unknown names and duplicates."""
    if not value:
        return list(DEFAULT_FALLBACK_ORDER)

    order: List[LLMProvider] = []
    for item in value.split(","):
        provider = parse_provider(item)
        if provider is not None and provider not in order:
            order.append(provider)
    return order


def create_llm_client(provider: LLMProvider, settings: Settings) -> BaseLLMClient:
    """
    Create an LLM client for the specified provider.

    Args:
        provider: LLM provider (claude, gemini or openai)
        settings: Application settings carrying keys and model overrides

    Returns:
        LLM client; unconfigured when its API key is missing

    Raises:
        ValueError: If provider is not supported
    """
    if provider == LLMProvider.OPENAI:
        return OpenAIClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds
        )
    elif provider == LLMProvider.CLAUDE:
        return AnthropicClient(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds
        )
    elif provider == LLMProvider.GEMINI:
        return GeminiClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            fallback_models=settings.get_gemini_fallback_models() or None,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


class ProviderRegistry:
    """
    Holds every backend and picks the one to use for a turn.

    The default provider wins when configured; otherwise the first configured
    provider in fallback order (the default is skipped there) is used.
    """

    def __init__(
        self,
        providers: Dict[LLMProvider, BaseLLMClient],
        default: Optional[str] = None,
        fallback_order: Optional[str] = None
    ):
        self.providers = dict(providers)
        self.default = parse_provider(default) or DEFAULT_PROVIDER
        self.fallback_order = parse_fallback_order(fallback_order)

        logger.info(
            f"AI providers initialized - default: {self.default.value}, "
            f"fallback: {' -> '.join(p.value for p in self.fallback_order)}"
        )

    def get_default_provider(self) -> BaseLLMClient:
        return self.get_provider(self.default)

    def get_provider(self, name) -> BaseLLMClient:
        """Get a provider by name; raises ValueError for unknown names."""
        provider = self.providers.get(parse_provider(name) if isinstance(name, str) else name)
        if provider is None:
            raise ValueError(f"Provider {name} not found")
        return provider

    def get_available_provider(self) -> Optional[BaseLLMClient]:
        """First configured provider, or None when nothing is configured."""
        default_provider = self.providers.get(self.default)
        if default_provider is not None and default_provider.is_configured():
            return default_provider

        for name in self.fallback_order:
            if name == self.default:
                continue
            provider = self.providers.get(name)
            if provider is not None and provider.is_configured():
                logger.warning(
                    f"Default provider {self.default.value} not configured, falling back to {name.value}"
                )
                return provider

        logger.error("No AI provider is configured")
        return None

    def get_available_providers(self) -> List[BaseLLMClient]:
        return [p for p in self.providers.values() if p.is_configured()]

    def has_any_provider(self) -> bool:
        return len(self.get_available_providers()) > 0

    def get_provider_status(self) -> Dict[str, ProviderStatus]:
        """Configured/default flags per provider, for diagnostics."""
        return {
            name.value: ProviderStatus(
                configured=provider.is_configured(),
                is_default=name == self.default
            )
            for name, provider in self.providers.items()
        }


def build_registry(settings: Settings) -> ProviderRegistry:
    """Build a registry holding all three backends."""
    providers = {provider: create_llm_client(provider, settings) for provider in LLMProvider}
    return ProviderRegistry(
        providers,
        default=settings.ai_provider,
        fallback_order=settings.ai_provider_fallback
    )
