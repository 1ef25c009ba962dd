"""Long-term memory and archived history tools."""

from datetime import timedelta
from typing import Optional, Any

from memory.memory_store import MemoryStore
from memory.models import MemoryCreate, MemoryType
from .base import Tool, ToolResult, params, string, integer, string_list, parse_datetime, as_list, clamp

MEMORY_TYPES = [t.value for t in MemoryType]


class _MemoryTool(Tool):
    def __init__(self, memory_store: MemoryStore):
        self.memory_store = memory_store


def _summarize(memory) -> dict:
    return {
        "id": memory.id,
        "type": memory.type.value,
        "content": memory.content,
        "importance": memory.importance,
    }


class RememberTool(_MemoryTool):
    name = "remember"
    description = """Store a durable fact about the user (a preference, a contact, a project, an instruction...).
Use it when the user asks you to remember something or shares information worth keeping."""

    parameters = params(
        required=["content", "type"],
        content=string("The fact, written as a short self-contained sentence"),
        type=string("Kind of fact", enum=MEMORY_TYPES),
        importance=integer("1-10, how important the fact is (default 5)"),
        email=string("Contact email, for contacts"),
        company=string("Company, for contacts"),
        category=string("Category, for preferences (meetings, communication, schedule, work_style)"),
        tags=string_list("Optional tags"),
    )

    async def execute(
        self,
        user_id: str,
        content: str,
        type: str,
        importance: Any = None,
        email: Optional[str] = None,
        company: Optional[str] = None,
        category: Optional[str] = None,
        tags: Any = None
    ) -> ToolResult:
        metadata = {
            key: value
            for key, value in (("email", email), ("company", company), ("category", category))
            if value
        }
        if tags:
            metadata["tags"] = as_list(tags)

        memory = await self.memory_store.create_memory(user_id, MemoryCreate(
            type=MemoryType(type),
            content=content,
            importance=clamp(importance, 5, 10) if importance is not None else None,
            metadata=metadata
        ))
        return self.ok({"stored": True, "memory": _summarize(memory)})


class RecallMemoriesTool(_MemoryTool):
    name = "recall_memories"
    description = "Look up stored facts about the user, by text and/or type."

    parameters = params(
        query=string("Text to look for; omit to list by type"),
        type=string("Kind of fact", enum=MEMORY_TYPES),
        limit=integer("Maximum results (default 10)"),
    )

    async def execute(
        self,
        user_id: str,
        query: Optional[str] = None,
        type: Optional[str] = None,
        limit: Any = 10
    ) -> ToolResult:
        memory_type = MemoryType(type) if type else None
        limit = clamp(limit, 10, 50)
        if query:
            memories = await self.memory_store.search_memories(user_id, query, memory_type, limit)
        else:
            memories = await self.memory_store.get_memories(user_id, memory_type, limit)
        return self.ok({"count": len(memories), "memories": [_summarize(m) for m in memories]})


class ForgetTool(_MemoryTool):
    name = "forget"
    description = """Forget stored facts about the user: by id, or the few facts that match a text.
Use it when the user asks you to forget something."""

    parameters = params(
        memory_id=string("Exact id of the memory"),
        query=string("Text of the facts to forget"),
    )

    async def execute(self, user_id: str, memory_id: Optional[str] = None, query: Optional[str] = None) -> ToolResult:
        if memory_id:
            deleted = 1 if await self.memory_store.delete_memory(user_id, memory_id) else 0
        elif query:
            deleted = await self.memory_store.delete_memory_by_content(user_id, query)
        else:
            return self.fail("give memory_id or query")
        return self.ok({"forgotten": deleted})


class SearchConversationHistoryTool(Tool):
    name = "search_conversation_history"
    description = """Search older, archived conversations with the user (summaries, topics and messages).
Use it when the user refers to something discussed a long time ago."""

    parameters = params(
        required=["query"],
        query=string("Text to look for"),
        date_from=string("Optional lower bound, YYYY-MM-DD"),
        date_to=string("Optional upper bound, YYYY-MM-DD"),
        limit=integer("Maximum periods (default 5)"),
    )

    def __init__(self, archive_service):
        self.archive_service = archive_service

    async def execute(
        self,
        user_id: str,
        query: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Any = 5
    ) -> ToolResult:
        results = await self.archive_service.search_history(
            user_id,
            query,
            date_from=parse_datetime(date_from, "date_from") if date_from else None,
            date_to=self._end_of(date_to) if date_to else None,
            limit=clamp(limit, 5, 20)
        )
        return self.ok({"count": len(results), "periods": results})

    def _end_of(self, value: str):
        bound = parse_datetime(value, "date_to")
        # A bare date includes the whole day
        if len(value.strip()) <= 10:
            bound = bound + timedelta(days=1) - timedelta(microseconds=1)
        return bound
