"""Pydantic schemas for the Nexora agent API."""

from .chat import ChatRequest, AgentAction, AgentResponse, AgentReply

__all__ = [
    "ChatRequest",
    "AgentAction",
    "AgentResponse",
    "AgentReply",
]
