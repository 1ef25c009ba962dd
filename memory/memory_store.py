"""Long-term user memory persisted in SQLite."""

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any

from .database import Database, to_db_time, from_db_time
from .models import (
    UserMemory,
    MemoryType,
    MemoryCreate,
    MemoryUpdate,
    MemoryStats,
)

logger = logging.getLogger(__name__)

DEFAULT_IMPORTANCE = 5
DEFAULT_SOURCE = "explicit"

# Active and not expired
_VISIBLE = "user_id = ? AND is_active = 1 AND (expires_at IS NULL OR expires_at > ?)"
_ORDER = "ORDER BY importance DESC, last_accessed DESC, created_at DESC"


def _matches(text: Optional[str], query: str) -> bool:
    return bool(text) and query.casefold() in text.casefold()


class MemoryStore:
    """
    Durable facts about users (contacts, projects, preferences, ...).

    Search is a plain case-insensitive substring match on the content.
    """

    def __init__(self, db: Database):
        self.db = db

    # -- create ----------------------------------------------------------

    async def create_memory(self, user_id: str, data: MemoryCreate) -> UserMemory:
        return await asyncio.to_thread(self._create_memory_sync, user_id, data)

    def _create_memory_sync(self, user_id: str, data: MemoryCreate) -> UserMemory:
        with self.db.transaction() as conn:
            return self.create_memory_in(conn, user_id, data)

    def create_memory_in(self, conn: sqlite3.Connection, user_id: str, data: MemoryCreate) -> UserMemory:
        """
        Create a memory inside the caller's open transaction.

        Idempotent per active (user, type, content): an existing row only gets
        its access stats bumped.
        """
        now = datetime.now()
        existing = conn.execute(
            """
            SELECT * FROM user_memories
            WHERE user_id = ? AND type = ? AND content = ? AND is_active = 1
            """,
            (user_id, data.type.value, data.content)
        ).fetchone()

        if existing:
            logger.debug(f"Memory already exists: {existing['id']}")
            conn.execute(
                "UPDATE user_memories SET access_count = access_count + 1, last_accessed = ? WHERE id = ?",
                (to_db_time(now), existing["id"])
            )
            memory = self._row_to_memory(existing)
            memory.access_count += 1
            memory.last_accessed = now
            return memory

        metadata: Dict[str, Any] = dict(data.metadata or {})
        metadata["source"] = metadata.get("source") or DEFAULT_SOURCE

        memory = UserMemory(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=data.type,
            content=data.content,
            metadata=metadata,
            importance=data.importance or DEFAULT_IMPORTANCE,
            expires_at=data.expires_at,
            created_at=now,
            updated_at=now
        )
        conn.execute(
            """
            INSERT INTO user_memories
            (id, user_id, type, content, metadata, importance, is_active, access_count,
             last_accessed, expires_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 1, 0, NULL, ?, ?, ?)
            """,
            (
                memory.id,
                user_id,
                memory.type.value,
                memory.content,
                json.dumps(memory.metadata, ensure_ascii=False, default=str),
                memory.importance,
                to_db_time(memory.expires_at),
                to_db_time(now),
                to_db_time(now),
            )
        )
        logger.info(f"Memory created: {memory.id} ({memory.type.value})")
        return memory

    # -- read ------------------------------------------------------------

    async def get_memories(
        self,
        user_id: str,
        memory_type: Optional[MemoryType] = None,
        limit: int = 50
    ) -> List[UserMemory]:
        return await asyncio.to_thread(self._get_memories_sync, user_id, memory_type, limit)

    def _get_memories_sync(
        self,
        user_id: str,
        memory_type: Optional[MemoryType] = None,
        limit: int = 50
    ) -> List[UserMemory]:
        sql = f"SELECT * FROM user_memories WHERE {_VISIBLE}"
        params: list = [user_id, to_db_time(datetime.now())]
        if memory_type is not None:
            sql += " AND type = ?"
            params.append(MemoryType(memory_type).value)
        sql += f" {_ORDER} LIMIT ?"
        params.append(limit)
        return [self._row_to_memory(r) for r in self.db.fetch_all(sql, params)]

    async def get_memory(self, user_id: str, memory_id: str) -> Optional[UserMemory]:
        return await asyncio.to_thread(self._get_memory_sync, user_id, memory_id)

    def _get_memory_sync(self, user_id: str, memory_id: str) -> Optional[UserMemory]:
        row = self.db.fetch_one(
            f"SELECT * FROM user_memories WHERE id = ? AND {_VISIBLE}",
            (memory_id, user_id, to_db_time(datetime.now()))
        )
        if not row:
            return None
        return self._touch([self._row_to_memory(row)])[0]

    async def search_memories(
        self,
        user_id: str,
        query: str,
        memory_type: Optional[MemoryType] = None,
        limit: int = 20
    ) -> List[UserMemory]:
        return await asyncio.to_thread(self._search_memories_sync, user_id, query, memory_type, limit)

    def _search_memories_sync(
        self,
        user_id: str,
        query: str,
        memory_type: Optional[MemoryType] = None,
        limit: int = 20
    ) -> List[UserMemory]:
        """
        Case-insensitive substring search over memory content.

        Args:
            user_id: Owner of the memories
            query: Text to look for
            memory_type: Optional type filter
            limit: Maximum number of hits

        Returns:
            Hits ordered by importance then recency; their access stats are bumped
        """
        if not query or not query.strip():
            return []

        candidates = self._get_memories_sync(user_id, memory_type, limit=-1)
        hits = [m for m in candidates if _matches(m.content, query.strip())][:limit]
        return self._touch(hits)

    async def get_relevant_memories(
        self,
        user_id: str,
        context: Optional[str] = None,
        max_memories: int = 10
    ) -> List[UserMemory]:
        return await asyncio.to_thread(self._get_relevant_memories_sync, user_id, context, max_memories)

    def _get_relevant_memories_sync(
        self,
        user_id: str,
        context: Optional[str] = None,
        max_memories: int = 10
    ) -> List[UserMemory]:
        """Union of important, recently used and context-matching memories."""
        now = to_db_time(datetime.now())

        high_importance = self.db.fetch_all(
            f"""
            SELECT * FROM user_memories WHERE {_VISIBLE} AND importance >= 8
            ORDER BY importance DESC, last_accessed DESC LIMIT 5
            """,
            (user_id, now)
        )
        recently_accessed = self.db.fetch_all(
            f"SELECT * FROM user_memories WHERE {_VISIBLE} ORDER BY last_accessed DESC LIMIT 5",
            (user_id, now)
        )

        memories = [self._row_to_memory(r) for r in list(high_importance) + list(recently_accessed)]
        if context:
            memories.extend(self._search_memories_sync(user_id, context, limit=5))

        unique: Dict[str, UserMemory] = {}
        for memory in memories:
            unique.setdefault(memory.id, memory)

        ranked = sorted(unique.values(), key=lambda m: m.importance, reverse=True)
        return ranked[:max_memories]

    async def find_contact(self, user_id: str, term: str) -> Optional[UserMemory]:
        return await asyncio.to_thread(self._find_contact_sync, user_id, term)

    def _find_contact_sync(self, user_id: str, term: str) -> Optional[UserMemory]:
        """Best contact memory whose content, email or company contains term."""
        for memory in self._get_memories_sync(user_id, MemoryType.CONTACT, limit=-1):
            metadata = memory.metadata or {}
            if (
                _matches(memory.content, term)
                or _matches(metadata.get("email"), term)
                or _matches(metadata.get("company"), term)
            ):
                return self._touch([memory])[0]
        return None

    async def get_preferences(self, user_id: str, category: Optional[str] = None) -> List[UserMemory]:
        return await asyncio.to_thread(self._get_preferences_sync, user_id, category)

    def _get_preferences_sync(self, user_id: str, category: Optional[str] = None) -> List[UserMemory]:
        preferences = self._get_memories_sync(user_id, MemoryType.PREFERENCE, limit=-1)
        if category:
            preferences = [p for p in preferences if p.metadata.get("category") == category]
        return preferences

    async def get_memory_stats(self, user_id: str) -> MemoryStats:
        return await asyncio.to_thread(self._get_memory_stats_sync, user_id)

    def _get_memory_stats_sync(self, user_id: str) -> MemoryStats:
        memories = self._get_memories_sync(user_id, limit=-1)
        by_type: Dict[str, int] = {}
        for memory in memories:
            by_type[memory.type.value] = by_type.get(memory.type.value, 0) + 1

        total_importance = sum(m.importance for m in memories)
        return MemoryStats(
            total=len(memories),
            by_type=by_type,
            avg_importance=total_importance / len(memories) if memories else 0.0
        )

    async def export_memories(self, user_id: str) -> List[UserMemory]:
        return await asyncio.to_thread(self._export_memories_sync, user_id)

    def _export_memories_sync(self, user_id: str) -> List[UserMemory]:
        """Every memory of the user, inactive ones included, newest first."""
        rows = self.db.fetch_all(
            "SELECT * FROM user_memories WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,)
        )
        return [self._row_to_memory(r) for r in rows]

    # -- update / delete -------------------------------------------------

    async def update_memory(self, user_id: str, memory_id: str, data: MemoryUpdate) -> Optional[UserMemory]:
        return await asyncio.to_thread(self._update_memory_sync, user_id, memory_id, data)

    def _update_memory_sync(self, user_id: str, memory_id: str, data: MemoryUpdate) -> Optional[UserMemory]:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM user_memories WHERE id = ? AND user_id = ?",
                (memory_id, user_id)
            ).fetchone()
            if not row:
                return None

            memory = self._row_to_memory(row)
            if data.content is not None:
                memory.content = data.content
            if data.importance is not None:
                memory.importance = data.importance
            if data.is_active is not None:
                memory.is_active = data.is_active
            if data.metadata:
                memory.metadata = {**memory.metadata, **data.metadata}
            memory.updated_at = datetime.now()

            conn.execute(
                """
                UPDATE user_memories
                SET content = ?, importance = ?, is_active = ?, metadata = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    memory.content,
                    memory.importance,
                    int(memory.is_active),
                    json.dumps(memory.metadata, ensure_ascii=False, default=str),
                    to_db_time(memory.updated_at),
                    memory_id,
                )
            )
        return memory

    async def delete_memory(self, user_id: str, memory_id: str) -> bool:
        return await asyncio.to_thread(self._delete_memory_sync, user_id, memory_id)

    def _delete_memory_sync(self, user_id: str, memory_id: str) -> bool:
        """Soft delete."""
        return self.db.execute(
            "UPDATE user_memories SET is_active = 0, updated_at = ? WHERE id = ? AND user_id = ? AND is_active = 1",
            (to_db_time(datetime.now()), memory_id, user_id)
        ) > 0

    async def delete_memory_by_content(self, user_id: str, query: str) -> int:
        return await asyncio.to_thread(self._delete_memory_by_content_sync, user_id, query)

    def _delete_memory_by_content_sync(self, user_id: str, query: str) -> int:
        """Soft delete the (at most 5) memories a search for query finds."""
        hits = self._search_memories_sync(user_id, query, limit=5)
        if not hits:
            return 0

        now = to_db_time(datetime.now())
        deleted = 0
        with self.db.transaction() as conn:
            for memory in hits:
                deleted += conn.execute(
                    "UPDATE user_memories SET is_active = 0, updated_at = ? WHERE id = ?",
                    (now, memory.id)
                ).rowcount
        return deleted

    async def delete_all_memories(self, user_id: str) -> int:
        return await asyncio.to_thread(self._delete_all_memories_sync, user_id)

    def _delete_all_memories_sync(self, user_id: str) -> int:
        """Hard delete of every memory of the user."""
        deleted = self.db.execute("DELETE FROM user_memories WHERE user_id = ?", (user_id,))
        logger.info(f"Deleted all memories for user {user_id}")
        return deleted

    # -- helpers ---------------------------------------------------------

    def _touch(self, memories: List[UserMemory]) -> List[UserMemory]:
        """Bump access stats of memories that were read."""
        if not memories:
            return memories

        now = datetime.now()
        with self.db.transaction() as conn:
            for memory in memories:
                conn.execute(
                    "UPDATE user_memories SET access_count = access_count + 1, last_accessed = ? WHERE id = ?",
                    (to_db_time(now), memory.id)
                )
                memory.access_count += 1
                memory.last_accessed = now
        return memories

    def _row_to_memory(self, row: sqlite3.Row) -> UserMemory:
        return UserMemory(
            id=row["id"],
            user_id=row["user_id"],
            type=MemoryType(row["type"]),
            content=row["content"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            importance=row["importance"],
            is_active=bool(row["is_active"]),
            access_count=row["access_count"],
            last_accessed=from_db_time(row["last_accessed"]),
            expires_at=from_db_time(row["expires_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"])
        )
