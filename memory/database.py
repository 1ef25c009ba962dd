"""Shared SQLite connection, schema and transaction handling."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, Iterator, List, Any, Sequence

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Timestamps are stored as fixed-width ISO strings so they sort lexically."""
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Database:
    """
    One SQLite connection shared by every store.

    Statements run under a re-entrant lock, so the connection can be used from
    the worker threads of asyncio.to_thread. The connection is in autocommit
    mode; multi-statement writes go through transaction().
    """

    def __init__(self, db_path: str = MEMORY_DB):
        """
        Open (and create if needed) the database.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        if db_path != MEMORY_DB:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        if db_path != MEMORY_DB:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")

        self._create_schema()
        logger.info(f"Database initialized at {db_path}")

    def _create_schema(self):
        """Initialize database schema."""
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT,
                    is_primary INTEGER NOT NULL DEFAULT 0,
                    last_archived_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # At most one primary conversation per user
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_primary
                ON conversations(user_id) WHERE is_primary = 1
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id, updated_at)"
            )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
                    content TEXT NOT NULL,
                    archived INTEGER NOT NULL DEFAULT 0,
                    archived_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at)"
            )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_history (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    period_start TEXT NOT NULL,
                    period_end TEXT NOT NULL,
                    messages TEXT NOT NULL,
                    message_count INTEGER NOT NULL,
                    summary TEXT,
                    topics TEXT,
                    entities TEXT,
                    archived_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_user ON conversation_history(user_id, period_start)"
            )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_memories (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    metadata TEXT,
                    importance INTEGER NOT NULL DEFAULT 5,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    access_count INTEGER NOT NULL DEFAULT 0,
                    last_accessed TEXT,
                    expires_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_user_type ON user_memories(user_id, type)"
            )

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically.

        The outermost call opens a transaction; nested calls open savepoints,
        so an inner failure rolls back only the inner block when the caller
        catches it.
        """
        with self._lock:
            depth = self._depth
            savepoint = f"sp_{depth}"
            if depth == 0:
                self._conn.execute("BEGIN IMMEDIATE")
            else:
                self._conn.execute(f"SAVEPOINT {savepoint}")
            self._depth += 1

            try:
                yield self._conn
            except BaseException:
                self._depth -= 1
                if depth == 0:
                    self._conn.execute("ROLLBACK")
                else:
                    self._conn.execute(f"ROLLBACK TO {savepoint}")
                    self._conn.execute(f"RELEASE {savepoint}")
                raise
            else:
                self._depth -= 1
                if depth == 0:
                    self._conn.execute("COMMIT")
                else:
                    self._conn.execute(f"RELEASE {savepoint}")

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write statement; returns the number of affected rows."""
        with self._lock:
            return self._conn.execute(sql, params).rowcount

    def close(self):
        with self._lock:
            self._conn.close()
