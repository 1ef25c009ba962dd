"""Conversation context manager for LLM context window management."""

import logging
from typing import List, Dict

from .conversation_store import ConversationStore
from .models import UserMemory, MemoryType
from llm.base_client import Message

logger = logging.getLogger(__name__)


# Section headings used when rendering memories into the system prompt
MEMORY_SECTION_TITLES = {
    MemoryType.PREFERENCE: "Preferencias",
    MemoryType.CONTACT: "Contactos",
    MemoryType.PROJECT: "Proyectos",
    MemoryType.PERSONAL: "Datos personales",
    MemoryType.INSTRUCTION: "Instrucciones del usuario",
    MemoryType.RELATIONSHIP: "Relaciones",
    MemoryType.PATTERN: "Hábitos",
    MemoryType.DECISION: "Decisiones",
}


class ConversationContextManager:
    """Builds the bounded message history and memory prompt section for LLM calls."""

    # Configuration
    MAX_CONTEXT_MESSAGES = 20  # Maximum messages to include in context

    def __init__(self, store: ConversationStore, max_messages: int = MAX_CONTEXT_MESSAGES):
        """
        Initialize context manager.

        Args:
            store: Conversation store
            max_messages: Size of the history window sent to the model
        """
        self.store = store
        self.max_messages = max_messages

    async def get_context_messages(self, conversation_id: str) -> List[Message]:
        """
        Get messages for LLM context window.

        Only the most recent non-archived messages are included, oldest first.

        Args:
            conversation_id: Conversation ID

        Returns:
            List of Message objects for LLM context
        """
        recent = await self.store.get_recent_messages(conversation_id, limit=self.max_messages)
        return [Message(role=m.role, content=m.content) for m in recent]

    def format_memories(self, memories: List[UserMemory]) -> str:
        """
        Render memories grouped by type for the system prompt.

        The wording presents them as known facts about the user, so the model
        uses them naturally instead of announcing that it remembers them.
        """
        if not memories:
            return ""

        grouped: Dict[MemoryType, List[UserMemory]] = {}
        for memory in memories:
            grouped.setdefault(memory.type, []).append(memory)

        parts = ["## Contexto del usuario"]
        for memory_type in MemoryType:
            items = grouped.get(memory_type)
            if not items:
                continue
            parts.append(f"\n### {MEMORY_SECTION_TITLES[memory_type]}")
            for memory in items:
                parts.append(f"- {self._describe(memory)}")

        return "\n".join(parts)

    def _describe(self, memory: UserMemory) -> str:
        metadata = memory.metadata or {}
        if memory.type == MemoryType.CONTACT:
            details = [metadata[key] for key in ("email", "company", "role") if metadata.get(key)]
            if details:
                return f"{memory.content} ({', '.join(str(d) for d in details)})"
        elif memory.type == MemoryType.PROJECT:
            details = [f"{key}: {metadata[key]}" for key in ("status", "deadline") if metadata.get(key)]
            if details:
                return f"{memory.content} ({', '.join(details)})"
        return memory.content
