"""Compaction of old conversation messages into searchable history."""

import asyncio
import json
import logging
import re
import sqlite3
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional, List, Tuple, Any

from config.settings import Settings
from llm.base_client import Message
from llm.factory import ProviderRegistry
from memory.conversation_store import ConversationStore
from memory.database import Database
from memory.memory_store import MemoryStore
from memory.models import (
    ArchiveResult,
    ArchiveStats,
    ArchivedMessage,
    ConversationHistory,
    ConversationMessage,
    ExtractedEntities,
    HistorySearchResult,
    MemoryCreate,
    MemoryType,
)

logger = logging.getLogger(__name__)

SUMMARY_NO_PROVIDER = "Resumen no disponible (sin proveedor de IA)"
SUMMARY_FAILED = "Resumen no disponible (error de generación)"
SUMMARY_EMPTY = "Resumen no disponible"

MAX_SNIPPETS = 3
SNIPPET_CHARS = 200

# (entity field, memory type, importance, content prefix)
PROMOTIONS = [
    ("contacts", MemoryType.CONTACT, 7, ""),
    ("projects", MemoryType.PROJECT, 8, ""),
    ("decisions", MemoryType.DECISION, 6, "Decisión: "),
]

SUMMARY_PROMPT = """Eres un asistente que genera resúmenes concisos de conversaciones.
Genera un resumen en español de 2-3 párrafos que incluya:
- Temas principales discutidos
- Decisiones importantes tomadas
- Tareas o pendientes mencionados
- Personas o empresas relevantes mencionadas

Sé conciso pero informativo. El resumen debe permitir entender el contexto general sin leer toda la conversación."""

EXTRACTION_PROMPT = """Eres un asistente que extrae información estructurada de conversaciones.
Analiza la conversación y extrae la información en formato JSON exacto.
Responde SOLO con el JSON, sin explicaciones adicionales."""

EXTRACTION_REQUEST = """Extrae información de esta conversación en el siguiente formato JSON:
{{
  "topics": ["tema1", "tema2"],
  "entities": {{
    "contacts": ["Nombre - empresa/rol si se menciona"],
    "projects": ["nombre del proyecto"],
    "amounts": ["$1,000 - contexto"],
    "dates": ["fecha - evento relacionado"],
    "decisions": ["decisión tomada"]
  }}
}}

Conversación:
{transcript}"""


def _transcript(messages: List[ConversationMessage]) -> str:
    return "\n\n".join(
        f"{'Usuario' if m.role == 'user' else 'Nexora'}: {m.content}" for m in messages
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def parse_extraction(content: str) -> Tuple[List[str], ExtractedEntities]:
    """
    Read topics and entities from a model reply.

    Only the first {...} block is considered; anything unreadable yields
    empty lists.
    """
    match = re.search(r"\{.*\}", content or "", re.DOTALL)
    if not match:
        return [], ExtractedEntities()

    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        logger.warning("Entity extraction returned malformed JSON")
        return [], ExtractedEntities()

    if not isinstance(parsed, dict):
        return [], ExtractedEntities()

    entities = parsed.get("entities")
    if not isinstance(entities, dict):
        entities = {}

    return _string_list(parsed.get("topics")), ExtractedEntities(
        contacts=_string_list(entities.get("contacts")),
        projects=_string_list(entities.get("projects")),
        amounts=_string_list(entities.get("amounts")),
        dates=_string_list(entities.get("dates")),
        decisions=_string_list(entities.get("decisions")),
    )


class ArchiveService:
    """
    Moves a user's old messages into a summarized history period.

    Messages older than archive_after_days are archived once at least
    min_messages_to_archive of them have piled up. Contacts, projects and
    decisions found in them are promoted to long-term memory.
    """

    def __init__(
        self,
        db: Database,
        conversation_store: ConversationStore,
        memory_store: MemoryStore,
        registry: ProviderRegistry,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db = db
        self.conversation_store = conversation_store
        self.memory_store = memory_store
        self.registry = registry
        self.settings = settings or Settings()
        self.clock = clock

    async def archive_old_messages(self, user_id: str) -> ArchiveResult:
        """
        Archive the old messages of a user's primary conversation.

        Args:
            user_id: User whose conversation is compacted

        Returns:
            ArchiveResult; archived is False when nothing qualified
        """
        logger.info(f"Starting archive process for user {user_id}")

        conversation = await self.conversation_store.get_primary_conversation(user_id)
        if conversation is None:
            logger.info(f"No primary conversation found for user {user_id}")
            return ArchiveResult(archived=False)

        cutoff = self.clock() - timedelta(days=self.settings.archive_after_days)
        messages = await self.conversation_store.get_messages_before(conversation.id, cutoff)

        if len(messages) < self.settings.min_messages_to_archive:
            logger.info(
                f"Not enough messages to archive for user {user_id} "
                f"({len(messages)} < {self.settings.min_messages_to_archive})"
            )
            return ArchiveResult(archived=False)

        logger.info(f"Found {len(messages)} messages to archive for user {user_id}")

        summary = await self._generate_summary(messages)
        topics, entities = await self._extract_metadata(messages)

        history = ConversationHistory(
            id=str(uuid.uuid4()),
            user_id=user_id,
            period_start=messages[0].created_at,
            period_end=messages[-1].created_at,
            messages=[
                ArchivedMessage(role=m.role, content=m.content, created_at=m.created_at)
                for m in messages
            ],
            message_count=len(messages),
            summary=summary,
            topics=topics,
            entities=entities,
            archived_at=self.clock()
        )

        await asyncio.to_thread(self._commit_archive, user_id, conversation.id, history, messages)

        logger.info(
            f"Archived {len(messages)} messages for user {user_id}, period: "
            f"{history.period_start.isoformat()} - {history.period_end.isoformat()}"
        )
        return ArchiveResult(archived=True, message_count=len(messages), period_id=history.id)

    def _commit_archive(
        self,
        user_id: str,
        conversation_id: str,
        history: ConversationHistory,
        messages: List[ConversationMessage]
    ):
        """Promote memories, store the period and flag the messages in one transaction."""
        with self.db.transaction() as conn:
            promoted = self._promote_entities(user_id, history.entities)
            self.conversation_store.insert_history(conn, history)
            self.conversation_store.mark_archived(conn, [m.id for m in messages], history.archived_at)
            self.conversation_store.set_last_archived(conn, conversation_id, history.archived_at)

        logger.info(f"Promoted {promoted} extracted entities to memory for user {user_id}")

    def _promote_entities(self, user_id: str, entities: ExtractedEntities) -> int:
        promoted = 0
        for field, memory_type, importance, prefix in PROMOTIONS:
            for item in getattr(entities, field):
                data = MemoryCreate(
                    type=memory_type,
                    content=f"{prefix}{item}",
                    importance=importance,
                    metadata={"source": "conversation"}
                )
                try:
                    # Savepoint: a failing item leaves the rest of the archive intact
                    with self.db.transaction() as savepoint:
                        self.memory_store.create_memory_in(savepoint, user_id, data)
                    promoted += 1
                except sqlite3.Error as e:
                    logger.warning(f"Failed to save {memory_type.value} to memory: {item} ({e})")
        return promoted

    async def _generate_summary(self, messages: List[ConversationMessage]) -> str:
        provider = self.registry.get_available_provider()
        if provider is None:
            logger.warning("No AI provider available for summary generation")
            return SUMMARY_NO_PROVIDER

        request = Message(
            role="user",
            content=f"Resume la siguiente conversación:\n\n{_transcript(messages)}"
        )
        try:
            response = await provider.chat([request], SUMMARY_PROMPT, [])
        except Exception as e:
            logger.error(f"Error generating summary: {e}")
            return SUMMARY_FAILED

        return response.content.strip() or SUMMARY_EMPTY

    async def _extract_metadata(self, messages: List[ConversationMessage]) -> Tuple[List[str], ExtractedEntities]:
        provider = self.registry.get_available_provider()
        if provider is None:
            return [], ExtractedEntities()

        request = Message(role="user", content=EXTRACTION_REQUEST.format(transcript=_transcript(messages)))
        try:
            response = await provider.chat([request], EXTRACTION_PROMPT, [])
        except Exception as e:
            logger.error(f"Error extracting metadata: {e}")
            return [], ExtractedEntities()

        return parse_extraction(response.content)

    async def search_history(
        self,
        user_id: str,
        query: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 5
    ) -> List[HistorySearchResult]:
        """
        Find archived periods mentioning query.

        Args:
            user_id: Owner of the history
            query: Case-insensitive text looked up in summary, topics and messages
            date_from: Only periods ending at or after this instant
            date_to: Only periods starting at or before this instant
            limit: Maximum number of periods

        Returns:
            Matching periods, newest first, each with up to 3 snippets
        """
        needle = query.casefold()
        periods = await self.conversation_store.list_history(user_id, date_from, date_to)

        results = []
        for period in periods:
            if not self._period_matches(period, needle):
                continue
            results.append(HistorySearchResult(
                period_id=period.id,
                period_start=period.period_start,
                period_end=period.period_end,
                summary=period.summary,
                topics=period.topics,
                relevant_messages=self._snippets(period, needle),
                message_count=period.message_count
            ))
            if len(results) >= limit:
                break

        return results

    def _period_matches(self, period: ConversationHistory, needle: str) -> bool:
        if needle in period.summary.casefold():
            return True
        if any(needle in topic.casefold() for topic in period.topics):
            return True
        return any(needle in m.content.casefold() for m in period.messages)

    def _snippets(self, period: ConversationHistory, needle: str) -> List[str]:
        snippets = []
        for message in period.messages:
            if needle not in message.content.casefold():
                continue
            text = message.content
            if len(text) > SNIPPET_CHARS:
                text = text[:SNIPPET_CHARS] + "..."
            snippets.append(f"[{message.role}] {text}")
            if len(snippets) >= MAX_SNIPPETS:
                break
        return snippets

    async def get_archive_stats(self, user_id: str) -> ArchiveStats:
        return await self.conversation_store.get_history_stats(user_id)
