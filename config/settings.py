"""Application settings."""

import os
from typing import Optional, List
from pydantic import BaseModel


# Settings fields that may be supplied through the environment
_ENV_VARS = {
    "ai_provider": "AI_PROVIDER",
    "ai_provider_fallback": "AI_PROVIDER_FALLBACK",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "anthropic_model": "ANTHROPIC_MODEL",
    "openai_api_key": "OPENAI_API_KEY",
    "openai_model": "OPENAI_MODEL",
    "gemini_api_key": "GEMINI_API_KEY",
    "gemini_model": "GEMINI_MODEL",
    "gemini_fallback_models": "GEMINI_FALLBACK_MODELS",
    "db_path": "NEXORA_DB_PATH",
    "log_level": "LOG_LEVEL",
}


class Settings(BaseModel):
    """Application configuration settings."""

    # LLM provider selection
    ai_provider: Optional[str] = None  # "gemini", "claude" or "openai"
    ai_provider_fallback: Optional[str] = None  # comma separated order

    # API keys
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Model overrides
    anthropic_model: Optional[str] = None
    openai_model: Optional[str] = None
    gemini_model: Optional[str] = None
    gemini_fallback_models: Optional[str] = None

    llm_max_tokens: int = 1024
    llm_timeout_seconds: float = 60.0

    # Storage
    db_path: str = "data/nexora.db"

    # Conversation loop
    max_tool_iterations: int = 5
    history_window: int = 20
    empty_response_retries: int = 2
    empty_response_retry_delay: float = 1.0
    max_memories_in_prompt: int = 10
    turn_timeout_seconds: float = 120.0
    tool_timeout_seconds: float = 30.0

    # Archival
    archive_after_days: int = 30
    min_messages_to_archive: int = 10
    archive_cron_hour: int = 3

    # Logging
    log_level: str = "INFO"

    def __init__(self, **data):
        # Auto-load values from environment if not provided
        for field_name, env_name in _ENV_VARS.items():
            if data.get(field_name) is None and os.environ.get(env_name):
                data[field_name] = os.environ[env_name]

        super().__init__(**data)

    def get_gemini_fallback_models(self) -> List[str]:
        """Get the ordered list of Gemini model variants to fall back to."""
        if not self.gemini_fallback_models:
            return []
        return [m.strip() for m in self.gemini_fallback_models.split(",") if m.strip()]
