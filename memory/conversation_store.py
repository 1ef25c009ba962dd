"""SQLite-backed persistence for conversations, messages and archived history."""

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Optional, List

from .database import Database, to_db_time, from_db_time
from .models import (
    Conversation,
    ConversationMessage,
    ConversationHistory,
    ArchivedMessage,
    ExtractedEntities,
    ArchiveStats,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """Conversations, their messages and the archived periods of each user."""

    def __init__(self, db: Database):
        self.db = db

    # -- conversations ---------------------------------------------------

    async def create_conversation(self, user_id: str, title: Optional[str] = None) -> Conversation:
        return await asyncio.to_thread(self._create_conversation_sync, user_id, title)

    def _create_conversation_sync(self, user_id: str, title: Optional[str] = None) -> Conversation:
        """
        Create a conversation; it becomes the user's primary one if they have none.

        The partial unique index decides races: a second concurrent creator
        hits IntegrityError and gets a plain conversation instead.
        """
        now = datetime.now()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            is_primary=True,
            created_at=now,
            updated_at=now
        )

        has_primary = self.db.fetch_one(
            "SELECT 1 FROM conversations WHERE user_id = ? AND is_primary = 1",
            (user_id,)
        )
        if has_primary:
            conversation.is_primary = False

        try:
            self._insert_conversation(conversation)
        except sqlite3.IntegrityError:
            logger.info(f"Primary conversation for user {user_id} created concurrently")
            conversation.is_primary = False
            self._insert_conversation(conversation)

        logger.info(f"Created conversation {conversation.id} for user {user_id} (primary={conversation.is_primary})")
        return conversation

    def _insert_conversation(self, conversation: Conversation):
        self.db.execute(
            """
            INSERT INTO conversations (id, user_id, title, is_primary, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                conversation.id,
                conversation.user_id,
                conversation.title,
                int(conversation.is_primary),
                to_db_time(conversation.created_at),
                to_db_time(conversation.updated_at),
            )
        )

    async def get_conversation(
        self,
        user_id: str,
        conversation_id: str,
        with_messages: bool = False
    ) -> Optional[Conversation]:
        return await asyncio.to_thread(self._get_conversation_sync, user_id, conversation_id, with_messages)

    def _get_conversation_sync(
        self,
        user_id: str,
        conversation_id: str,
        with_messages: bool = False
    ) -> Optional[Conversation]:
        """Get a conversation owned by user_id, or None."""
        row = self.db.fetch_one(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, user_id)
        )
        if not row:
            return None

        conversation = self._row_to_conversation(row)
        if with_messages:
            rows = self.db.fetch_all(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, seq",
                (conversation_id,)
            )
            conversation.messages = [self._row_to_message(r) for r in rows]
        return conversation

    async def get_primary_conversation(self, user_id: str) -> Optional[Conversation]:
        return await asyncio.to_thread(self._get_primary_conversation_sync, user_id)

    def _get_primary_conversation_sync(self, user_id: str) -> Optional[Conversation]:
        row = self.db.fetch_one(
            "SELECT * FROM conversations WHERE user_id = ? AND is_primary = 1",
            (user_id,)
        )
        return self._row_to_conversation(row) if row else None

    async def list_conversations(self, user_id: str, limit: int = 20) -> List[Conversation]:
        return await asyncio.to_thread(self._list_conversations_sync, user_id, limit)

    def _list_conversations_sync(self, user_id: str, limit: int = 20) -> List[Conversation]:
        """Newest conversations first, without messages."""
        rows = self.db.fetch_all(
            "SELECT * FROM conversations WHERE user_id = ? ORDER BY updated_at DESC LIMIT ?",
            (user_id, limit)
        )
        return [self._row_to_conversation(r) for r in rows]

    async def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        return await asyncio.to_thread(self._delete_conversation_sync, user_id, conversation_id)

    def _delete_conversation_sync(self, user_id: str, conversation_id: str) -> bool:
        with self.db.transaction() as conn:
            conn.execute(
                """
                DELETE FROM messages WHERE conversation_id IN
                (SELECT id FROM conversations WHERE id = ? AND user_id = ?)
                """,
                (conversation_id, user_id)
            )
            deleted = conn.execute(
                "DELETE FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id)
            ).rowcount
        if deleted:
            logger.info(f"Deleted conversation {conversation_id}")
        return deleted > 0

    async def set_title_if_missing(self, conversation_id: str, title: str) -> bool:
        return await asyncio.to_thread(self._set_title_if_missing_sync, conversation_id, title)

    def _set_title_if_missing_sync(self, conversation_id: str, title: str) -> bool:
        return self.db.execute(
            "UPDATE conversations SET title = ? WHERE id = ? AND (title IS NULL OR title = '')",
            (title, conversation_id)
        ) > 0

    async def list_users_with_primary_conversation(self) -> List[str]:
        return await asyncio.to_thread(self._list_users_with_primary_conversation_sync)

    def _list_users_with_primary_conversation_sync(self) -> List[str]:
        rows = self.db.fetch_all(
            "SELECT DISTINCT user_id FROM conversations WHERE is_primary = 1 ORDER BY user_id"
        )
        return [r["user_id"] for r in rows]

    # -- messages --------------------------------------------------------

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        created_at: Optional[datetime] = None
    ) -> ConversationMessage:
        return await asyncio.to_thread(self._add_message_sync, conversation_id, role, content, created_at)

    def _add_message_sync(
        self,
        conversation_id: str,
        role: str,
        content: str,
        created_at: Optional[datetime] = None
    ) -> ConversationMessage:
        """
        Append a message to a conversation.

        Args:
            conversation_id: Conversation ID
            role: "user" or "assistant"
            content: Message text
            created_at: Optional timestamp (defaults to now)

        Returns:
            Created ConversationMessage
        """
        now = datetime.now()
        message = ConversationMessage(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=created_at or now
        )

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (message.id, conversation_id, role, content, to_db_time(message.created_at))
            )
            # Update conversation timestamp
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (to_db_time(now), conversation_id)
            )

        return message

    async def get_recent_messages(self, conversation_id: str, limit: int = 20) -> List[ConversationMessage]:
        return await asyncio.to_thread(self._get_recent_messages_sync, conversation_id, limit)

    def _get_recent_messages_sync(self, conversation_id: str, limit: int = 20) -> List[ConversationMessage]:
        """Last `limit` non-archived messages, in chronological order."""
        rows = self.db.fetch_all(
            """
            SELECT * FROM messages
            WHERE conversation_id = ? AND archived = 0
            ORDER BY created_at DESC, seq DESC
            LIMIT ?
            """,
            (conversation_id, limit)
        )
        # Reverse to get chronological order
        return [self._row_to_message(r) for r in reversed(rows)]

    async def get_messages_before(self, conversation_id: str, cutoff: datetime) -> List[ConversationMessage]:
        return await asyncio.to_thread(self._get_messages_before_sync, conversation_id, cutoff)

    def _get_messages_before_sync(self, conversation_id: str, cutoff: datetime) -> List[ConversationMessage]:
        """Non-archived messages strictly older than cutoff, oldest first."""
        rows = self.db.fetch_all(
            """
            SELECT * FROM messages
            WHERE conversation_id = ? AND archived = 0 AND created_at < ?
            ORDER BY created_at, seq
            """,
            (conversation_id, to_db_time(cutoff))
        )
        return [self._row_to_message(r) for r in rows]

    # -- archived history ------------------------------------------------
    # The write helpers take the connection of an open transaction so the
    # archival pipeline can combine them into one atomic unit.

    def insert_history(self, conn: sqlite3.Connection, history: ConversationHistory):
        conn.execute(
            """
            INSERT INTO conversation_history
            (id, user_id, period_start, period_end, messages, message_count, summary, topics, entities, archived_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                history.id,
                history.user_id,
                to_db_time(history.period_start),
                to_db_time(history.period_end),
                json.dumps([m.model_dump(mode="json") for m in history.messages], ensure_ascii=False),
                history.message_count,
                history.summary,
                json.dumps(history.topics, ensure_ascii=False),
                history.entities.model_dump_json(),
                to_db_time(history.archived_at),
            )
        )

    def mark_archived(self, conn: sqlite3.Connection, message_ids: List[str], archived_at: datetime) -> int:
        if not message_ids:
            return 0
        placeholders = ",".join("?" for _ in message_ids)
        return conn.execute(
            f"UPDATE messages SET archived = 1, archived_at = ? WHERE id IN ({placeholders})",
            (to_db_time(archived_at), *message_ids)
        ).rowcount

    def set_last_archived(self, conn: sqlite3.Connection, conversation_id: str, when: datetime):
        conn.execute(
            "UPDATE conversations SET last_archived_at = ? WHERE id = ?",
            (to_db_time(when), conversation_id)
        )

    async def list_history(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> List[ConversationHistory]:
        return await asyncio.to_thread(self._list_history_sync, user_id, date_from, date_to)

    def _list_history_sync(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> List[ConversationHistory]:
        """Archived periods overlapping [date_from, date_to], latest period_end first."""
        sql = "SELECT * FROM conversation_history WHERE user_id = ?"
        params: list = [user_id]
        if date_from is not None:
            sql += " AND period_end >= ?"
            params.append(to_db_time(date_from))
        if date_to is not None:
            sql += " AND period_start <= ?"
            params.append(to_db_time(date_to))
        sql += " ORDER BY period_end DESC"

        return [self._row_to_history(r) for r in self.db.fetch_all(sql, params)]

    async def get_history_stats(self, user_id: str) -> ArchiveStats:
        return await asyncio.to_thread(self._get_history_stats_sync, user_id)

    def _get_history_stats_sync(self, user_id: str) -> ArchiveStats:
        row = self.db.fetch_one(
            """
            SELECT COUNT(*) AS periods,
                   COALESCE(SUM(message_count), 0) AS messages,
                   MIN(period_start) AS oldest,
                   MAX(period_start) AS newest
            FROM conversation_history WHERE user_id = ?
            """,
            (user_id,)
        )
        return ArchiveStats(
            total_periods=row["periods"],
            total_archived_messages=row["messages"],
            oldest_period=from_db_time(row["oldest"]),
            newest_period=from_db_time(row["newest"])
        )

    # -- row mapping -----------------------------------------------------

    def _row_to_conversation(self, row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            is_primary=bool(row["is_primary"]),
            last_archived_at=from_db_time(row["last_archived_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"])
        )

    def _row_to_message(self, row: sqlite3.Row) -> ConversationMessage:
        return ConversationMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            archived=bool(row["archived"]),
            archived_at=from_db_time(row["archived_at"]),
            created_at=from_db_time(row["created_at"])
        )

    def _row_to_history(self, row: sqlite3.Row) -> ConversationHistory:
        return ConversationHistory(
            id=row["id"],
            user_id=row["user_id"],
            period_start=from_db_time(row["period_start"]),
            period_end=from_db_time(row["period_end"]),
            messages=[ArchivedMessage(**m) for m in json.loads(row["messages"])],
            message_count=row["message_count"],
            summary=row["summary"] or "",
            topics=json.loads(row["topics"]) if row["topics"] else [],
            entities=ExtractedEntities.model_validate_json(row["entities"]) if row["entities"] else ExtractedEntities(),
            archived_at=from_db_time(row["archived_at"])
        )
