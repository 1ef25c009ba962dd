"""Memory data models."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ConversationMessage(BaseModel):
    """A single message in a conversation."""
    id: str
    conversation_id: str
    role: str  # "user" or "assistant"
    content: str
    archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)


class Conversation(BaseModel):
    """A conversation thread of one user."""
    id: str
    user_id: str
    title: Optional[str] = None
    is_primary: bool = False
    last_archived_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    messages: List[ConversationMessage] = Field(default_factory=list)


class ArchivedMessage(BaseModel):
    """Message copy kept inside an archived period."""
    role: str
    content: str
    created_at: datetime


class ExtractedEntities(BaseModel):
    """Entities pulled out of an archived period."""
    contacts: List[str] = Field(default_factory=list)
    projects: List[str] = Field(default_factory=list)
    amounts: List[str] = Field(default_factory=list)
    dates: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)


class ConversationHistory(BaseModel):
    """Compacted record of an archived period of a conversation."""
    id: str
    user_id: str
    period_start: datetime
    period_end: datetime
    messages: List[ArchivedMessage] = Field(default_factory=list)
    message_count: int = 0
    summary: str = ""
    topics: List[str] = Field(default_factory=list)
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    archived_at: datetime = Field(default_factory=datetime.now)


class MemoryType(str, Enum):
    """Kinds of long-term memory."""
    PREFERENCE = "preference"
    CONTACT = "contact"
    PATTERN = "pattern"
    PROJECT = "project"
    PERSONAL = "personal"
    INSTRUCTION = "instruction"
    RELATIONSHIP = "relationship"
    DECISION = "decision"


class UserMemory(BaseModel):
    """A durable fact about a user."""
    id: str
    user_id: str
    type: MemoryType
    content: str
    # contact: email/company/role/phone, project: project_name/deadline/status/team,
    # preference: category, relationship: person1/person2/relationship_type,
    # any: source/confidence/tags
    metadata: Dict[str, Any] = Field(default_factory=dict)
    importance: int = 5
    is_active: bool = True
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class MemoryCreate(BaseModel):
    """Input for creating a memory."""
    type: MemoryType
    content: str = Field(min_length=1)
    importance: Optional[int] = Field(default=None, ge=1, le=10)
    metadata: Optional[Dict[str, Any]] = None
    expires_at: Optional[datetime] = None


class MemoryUpdate(BaseModel):
    """Partial update of a memory; metadata is merged."""
    content: Optional[str] = None
    importance: Optional[int] = Field(default=None, ge=1, le=10)
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class MemoryStats(BaseModel):
    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    avg_importance: float = 0.0


class ArchiveResult(BaseModel):
    """Outcome of archiving one user's old messages."""
    archived: bool
    message_count: Optional[int] = None
    period_id: Optional[str] = None


class ArchiveStats(BaseModel):
    total_periods: int = 0
    total_archived_messages: int = 0
    oldest_period: Optional[datetime] = None
    newest_period: Optional[datetime] = None


class HistorySearchResult(BaseModel):
    """One archived period matching a history search."""
    period_id: str
    period_start: datetime
    period_end: datetime
    summary: str
    topics: List[str] = Field(default_factory=list)
    relevant_messages: List[str] = Field(default_factory=list)
    message_count: int = 0
