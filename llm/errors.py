"""Errors raised by LLM provider backends."""


class ProviderError(Exception):
    """A provider call failed (network, vendor or parsing error)."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ProviderNotConfiguredError(ProviderError):
    """The provider was called without credentials."""

    def __init__(self, provider: str):
        super().__init__(provider, "provider not configured - missing API key")
