"""Prompting, rule-based fallback and follow-up suggestions for the Nexora agent."""

from .fallback import FallbackResponder, greeting_for
from .prompts import build_system_prompt, PERSONA_PROMPT
from .suggestions import generate_suggestions

__all__ = [
    "FallbackResponder",
    "greeting_for",
    "build_system_prompt",
    "PERSONA_PROMPT",
    "generate_suggestions",
]
