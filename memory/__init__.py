"""Persistence for conversations, archived history and long-term user memory."""

from .database import Database
from .models import (
    Conversation,
    ConversationMessage,
    ConversationHistory,
    ArchivedMessage,
    ExtractedEntities,
    MemoryType,
    UserMemory,
    MemoryCreate,
    MemoryUpdate,
    MemoryStats,
    ArchiveResult,
    ArchiveStats,
    HistorySearchResult,
)
from .conversation_store import ConversationStore
from .memory_store import MemoryStore
from .context_manager import ConversationContextManager

__all__ = [
    "Database",
    "Conversation",
    "ConversationMessage",
    "ConversationHistory",
    "ArchivedMessage",
    "ExtractedEntities",
    "MemoryType",
    "UserMemory",
    "MemoryCreate",
    "MemoryUpdate",
    "MemoryStats",
    "ArchiveResult",
    "ArchiveStats",
    "HistorySearchResult",
    "ConversationStore",
    "MemoryStore",
    "ConversationContextManager",
]
