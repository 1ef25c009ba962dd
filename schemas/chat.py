"""Chat request and response schemas."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


MAX_MESSAGE_LENGTH = 2000


class ChatRequest(BaseModel):
    """Incoming chat message."""
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    conversation_id: Optional[str] = None


class AgentAction(BaseModel):
    """Structured hint for the client UI (e.g. open a task)."""
    type: str
    description: str
    data: Dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    """Reply of the agent to one chat message."""
    message: str
    conversation_id: str
    suggestions: List[str] = Field(default_factory=list)
    actions: Optional[List[AgentAction]] = None


class AgentReply(BaseModel):
    """Reply computed for one turn, before it is persisted."""
    message: str
    suggestions: List[str] = Field(default_factory=list)
    actions: Optional[List[AgentAction]] = None
