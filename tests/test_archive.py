"""Tests for the archival pipeline and its daily job."""

import asyncio
import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from archive.job import ArchiveJob, JOB_ID
from archive.service import ArchiveService, SUMMARY_NO_PROVIDER, SUMMARY_FAILED, parse_extraction
from config.settings import Settings
from llm.errors import ProviderError
from memory.conversation_store import ConversationStore
from memory.database import Database
from memory.memory_store import MemoryStore
from memory.models import ArchiveResult, MemoryType
from tests.fakes import FixedClock, ScriptedLLMClient, registry_with, text_response

EXTRACTION = json.dumps({
    "topics": ["presupuesto", "Proyecto Atlas"],
    "entities": {
        "contacts": ["Ana García - CFO de Acme"],
        "projects": ["Atlas"],
        "amounts": ["$10,000 - licencia anual"],
        "dates": [],
        "decisions": ["contratar el plan anual"],
    },
})


class SlowSummaryClient(ScriptedLLMClient):
    """Yields to the event loop before every answer."""

    async def chat(self, messages, system_prompt, tools=None):
        await asyncio.sleep(0.05)
        return await super().chat(messages, system_prompt, tools)


class TestParseExtraction:
    """Test defensive parsing of the extraction reply."""

    def test_json_inside_prose(self):
        topics, entities = parse_extraction(f"Claro, aquí tienes:\n{EXTRACTION}\nEspero que sirva.")

        assert topics == ["presupuesto", "Proyecto Atlas"]
        assert entities.contacts == ["Ana García - CFO de Acme"]
        assert entities.dates == []

    def test_malformed_json(self):
        topics, entities = parse_extraction('{"topics": ["a", }')

        assert topics == []
        assert entities.projects == []

    def test_no_json(self):
        assert parse_extraction("no sé")[0] == []

    def test_wrong_shapes_are_ignored(self):
        topics, entities = parse_extraction('{"topics": "uno", "entities": {"contacts": "Ana", "projects": ["X", ""]}}')

        assert topics == []
        assert entities.contacts == []
        assert entities.projects == ["X"]


class TestArchiveService:
    """Test archiving of old messages."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db = Database(":memory:")
        self.conversations = ConversationStore(self.db)
        self.memories = MemoryStore(self.db)
        self.clock = FixedClock(datetime(2025, 6, 1, 3, 0))
        self.settings = Settings()

    def teardown_method(self):
        self.db.close()

    def _service(self, client=None) -> ArchiveService:
        return ArchiveService(
            db=self.db,
            conversation_store=self.conversations,
            memory_store=self.memories,
            registry=registry_with(client),
            settings=self.settings,
            clock=self.clock
        )

    def _seed(self, user_id: str, old: int, recent: int = 0):
        conversation = self.conversations._create_conversation_sync(user_id)
        first_old = self.clock() - timedelta(days=45)
        for i in range(old):
            role = "user" if i % 2 == 0 else "assistant"
            self.conversations._add_message_sync(
                conversation.id, role, f"mensaje antiguo {i}", created_at=first_old + timedelta(hours=i)
            )
        for i in range(recent):
            self.conversations._add_message_sync(
                conversation.id, "user", f"mensaje reciente {i}", created_at=self.clock() - timedelta(days=1)
            )
        return conversation, first_old

    @pytest.mark.asyncio
    async def test_nine_old_messages_are_not_enough(self):
        self._seed("u1", old=9)

        result = await self._service().archive_old_messages("u1")

        assert result == ArchiveResult(archived=False)
        assert (await self.conversations.get_history_stats("u1")).total_periods == 0

    @pytest.mark.asyncio
    async def test_ten_old_messages_are_archived(self):
        conversation, first_old = self._seed("u1", old=10, recent=3)

        result = await self._service().archive_old_messages("u1")

        assert result.archived is True
        assert result.message_count == 10

        history = self.conversations._list_history_sync("u1")
        assert len(history) == 1
        period = history[0]
        assert period.id == result.period_id
        assert period.period_start == first_old
        assert period.period_end == first_old + timedelta(hours=9)
        assert period.message_count == len(period.messages) == 10
        assert all(period.period_start <= m.created_at <= period.period_end for m in period.messages)
        assert period.summary == SUMMARY_NO_PROVIDER

        remaining = self.conversations._get_recent_messages_sync(conversation.id)
        assert [m.content for m in remaining] == [f"mensaje reciente {i}" for i in range(3)]

        refreshed = self.conversations._get_conversation_sync("u1", conversation.id)
        assert refreshed.last_archived_at == self.clock()

    @pytest.mark.asyncio
    async def test_archiving_twice_finds_nothing_new(self):
        self._seed("u1", old=12)
        service = self._service()

        assert (await service.archive_old_messages("u1")).archived is True
        assert (await service.archive_old_messages("u1")).archived is False

    @pytest.mark.asyncio
    async def test_no_primary_conversation(self):
        assert (await self._service().archive_old_messages("nobody")).archived is False

    @pytest.mark.asyncio
    async def test_entities_are_promoted_to_memory(self):
        self._seed("u1", old=10)
        client = ScriptedLLMClient([text_response("Resumen de marzo."), text_response(EXTRACTION)])

        result = await self._service(client).archive_old_messages("u1")

        assert result.archived is True
        period = self.conversations._list_history_sync("u1")[0]
        assert period.summary == "Resumen de marzo."
        assert period.topics == ["presupuesto", "Proyecto Atlas"]
        assert period.entities.amounts == ["$10,000 - licencia anual"]

        memories = {m.type: m for m in self.memories._get_memories_sync("u1")}
        assert memories[MemoryType.CONTACT].importance == 7
        assert memories[MemoryType.PROJECT].importance == 8
        assert memories[MemoryType.DECISION].content == "Decisión: contratar el plan anual"
        assert memories[MemoryType.DECISION].importance == 6
        assert all(m.metadata["source"] == "conversation" for m in memories.values())

        transcript = client.chat_calls[0]["messages"][0].content
        assert "Usuario: mensaje antiguo 0" in transcript
        assert "Nexora: mensaje antiguo 1" in transcript

    @pytest.mark.asyncio
    async def test_failing_promotion_is_skipped(self):
        """One memory that cannot be stored does not stop the archive."""
        self._seed("u1", old=10)
        client = ScriptedLLMClient([text_response("Resumen."), text_response(EXTRACTION)])
        original = self.memories.create_memory_in

        def flaky(conn, user_id, data):
            if data.type == MemoryType.PROJECT:
                conn.execute("INSERT INTO no_such_table VALUES (1)")
            return original(conn, user_id, data)

        self.memories.create_memory_in = flaky

        result = await self._service(client).archive_old_messages("u1")

        assert result.archived is True
        types = {m.type for m in self.memories._get_memories_sync("u1")}
        assert types == {MemoryType.CONTACT, MemoryType.DECISION}

    @pytest.mark.asyncio
    async def test_summary_error_uses_placeholder(self):
        self._seed("u1", old=10)
        client = ScriptedLLMClient()
        client.chat = AsyncMock(side_effect=ProviderError("gemini", "HTTP 503"))

        result = await self._service(client).archive_old_messages("u1")

        assert result.archived is True
        period = self.conversations._list_history_sync("u1")[0]
        assert period.summary == SUMMARY_FAILED
        assert period.topics == []

    @pytest.mark.asyncio
    async def test_failed_write_leaves_messages_untouched(self):
        """History row, archived flags and memories are written atomically."""
        conversation, _ = self._seed("u1", old=10)
        client = ScriptedLLMClient([text_response("Resumen."), text_response(EXTRACTION)])
        self.conversations.set_last_archived = Mock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            await self._service(client).archive_old_messages("u1")

        assert self.conversations._list_history_sync("u1") == []
        assert len(self.conversations._get_recent_messages_sync(conversation.id)) == 10
        assert self.memories._get_memories_sync("u1") == []

    @pytest.mark.asyncio
    async def test_search_history(self):
        self._seed("u1", old=10)
        service = self._service()
        await service.archive_old_messages("u1")

        results = await service.search_history("u1", "ANTIGUO 3")

        assert len(results) == 1
        assert results[0].relevant_messages == ["[assistant] mensaje antiguo 3"]
        assert results[0].message_count == 10

    @pytest.mark.asyncio
    async def test_search_history_snippets_are_capped(self):
        self._seed("u1", old=10)
        service = self._service()
        await service.archive_old_messages("u1")

        results = await service.search_history("u1", "antiguo")

        assert len(results[0].relevant_messages) == 3

    @pytest.mark.asyncio
    async def test_search_history_long_snippet_is_truncated(self):
        conversation = self.conversations._create_conversation_sync("u1")
        when = self.clock() - timedelta(days=40)
        for i in range(10):
            self.conversations._add_message_sync(conversation.id, "user", "x" * 300 + " clave", created_at=when)
        service = self._service()
        await service.archive_old_messages("u1")

        snippet = (await service.search_history("u1", "clave"))[0].relevant_messages[0]

        assert snippet == "[user] " + "x" * 200 + "..."

    @pytest.mark.asyncio
    async def test_search_history_date_bounds(self):
        self._seed("u1", old=10)
        service = self._service()
        await service.archive_old_messages("u1")

        before = await service.search_history("u1", "antiguo", date_to=self.clock() - timedelta(days=60))
        after = await service.search_history("u1", "antiguo", date_from=self.clock() - timedelta(days=50))

        assert before == []
        assert len(after) == 1

    @pytest.mark.asyncio
    async def test_archive_stats(self):
        _, first_old = self._seed("u1", old=10)
        service = self._service()
        await service.archive_old_messages("u1")

        stats = await service.get_archive_stats("u1")

        assert stats.total_periods == 1
        assert stats.total_archived_messages == 10
        assert stats.oldest_period == first_old

    @pytest.mark.asyncio
    async def test_scheduled_and_manual_runs_do_not_overlap(self):
        self._seed("u1", old=10)
        job = ArchiveJob(self._service(SlowSummaryClient([text_response("Resumen")], repeat_last=True)), self.conversations)

        _, manual = await asyncio.gather(job.handle_archive(), job.run_manually())

        assert manual.skipped is True
        assert len(self.conversations._list_history_sync("u1")) == 1
        assert job.is_running is False


class TestArchiveJob:
    """Test the scheduled pass over all users."""

    def setup_method(self):
        """Set up test fixtures."""
        self.service = Mock()
        self.service.archive_old_messages = AsyncMock()
        self.store = Mock()
        self.store.list_users_with_primary_conversation = AsyncMock(return_value=["a", "b", "c"])
        self.job = ArchiveJob(self.service, self.store, cron_hour=3)

    @pytest.mark.asyncio
    async def test_run_manually_counts(self):
        self.service.archive_old_messages.side_effect = [
            ArchiveResult(archived=True, message_count=12, period_id="p1"),
            RuntimeError("boom"),
            ArchiveResult(archived=False),
        ]

        summary = await self.job.run_manually()

        assert summary.processed == 3
        assert summary.archived == 1
        assert summary.errors == 1

    @pytest.mark.asyncio
    async def test_handle_archive_skips_when_running(self):
        self.job.is_running = True

        await self.job.handle_archive()

        self.store.list_users_with_primary_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_handle_archive_resets_flag(self):
        self.store.list_users_with_primary_conversation.side_effect = RuntimeError("db gone")

        await self.job.handle_archive()

        assert self.job.is_running is False

    @pytest.mark.asyncio
    async def test_run_manually_skips_when_running(self):
        self.job.is_running = True

        summary = await self.job.run_manually()

        assert summary.skipped is True
        assert summary.processed == 0
        self.store.list_users_with_primary_conversation.assert_not_called()
        assert self.job.is_running is True

    @pytest.mark.asyncio
    async def test_run_manually_sets_and_resets_flag(self):
        seen = []

        async def archive(user_id):
            seen.append(self.job.is_running)
            return ArchiveResult(archived=False)

        self.service.archive_old_messages.side_effect = archive

        summary = await self.job.run_manually()

        assert seen == [True, True, True]
        assert summary.skipped is False
        assert self.job.is_running is False

    def test_start_registers_daily_cron(self):
        scheduler = Mock()

        self.job.start(scheduler)

        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["trigger"] == "cron"
        assert kwargs["hour"] == 3
        assert kwargs["minute"] == 0
        assert kwargs["id"] == JOB_ID
        assert kwargs["func"] == self.job.handle_archive
