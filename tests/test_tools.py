"""Tests for the tool catalog and the domain tools."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from memory.database import Database
from memory.memory_store import MemoryStore
from services.errors import ItemNotFoundError
from services.interfaces import DomainServices, CalendarService, EmailService, TasksService
from services.models import (
    BriefingSummary,
    EmailDraft,
    EmailMessage,
    Priority,
    Task,
    TaskBriefing,
    TaskCreate,
)
from tools.base import Tool, ToolResult, is_confirmed, params, parse_datetime, string
from tools.catalog import MAX_RESULT_CHARS, TOOL_NOT_RECOGNIZED, ToolCatalog, build_tool_catalog
from tests.fakes import make_event


class SlowTool(Tool):
    name = "slow"
    description = "Never finishes in time."

    async def execute(self, user_id: str) -> ToolResult:
        await asyncio.sleep(5)
        return self.ok({})


class BigTool(Tool):
    name = "big"
    description = "Returns a large payload."
    parameters = params(size=string("How many characters"))

    async def execute(self, user_id: str, size: str = "10") -> ToolResult:
        return self.ok({"data": "x" * int(size)})


class TestToolCatalog:
    """Test dispatch, argument handling and error payloads."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tasks = AsyncMock(spec=TasksService)
        self.calendar = AsyncMock(spec=CalendarService)
        self.email = AsyncMock(spec=EmailService)
        self.services = DomainServices(tasks=self.tasks, calendar=self.calendar, email=self.email)
        self.catalog = build_tool_catalog(self.services)

    def test_definitions_cover_every_domain(self):
        names = self.catalog.names()

        for expected in [
            "get_tasks", "create_task", "get_daily_briefing", "get_today_events",
            "delete_calendar_event", "send_email", "reply_to_email", "search_contacts",
            "search_files", "get_storage_quota",
        ]:
            assert expected in names
        assert "remember" not in names

    def test_memory_and_history_tools_are_optional(self):
        db = Database(":memory:")
        catalog = build_tool_catalog(self.services, memory_store=MemoryStore(db), archive_service=AsyncMock())

        names = catalog.names()
        assert {"remember", "recall_memories", "forget", "search_conversation_history"} <= set(names)
        db.close()

    def test_definition_schema(self):
        definition = next(d for d in self.catalog.definitions() if d.name == "create_task")
        schema = definition.parameters.to_schema()

        assert schema["type"] == "object"
        assert schema["required"] == ["title"]
        assert schema["properties"]["priority"]["enum"] == ["HIGH", "MEDIUM", "LOW", "NOISE"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = json.loads(await self.catalog.execute_tool("u1", "launch_rockets", {}))
        assert result["error"] == TOOL_NOT_RECOGNIZED

    @pytest.mark.asyncio
    async def test_missing_service_asks_to_connect(self):
        catalog = build_tool_catalog(DomainServices())

        result = json.loads(await catalog.execute_tool("u1", "get_inbox", {}))

        assert result["needs_connection"] is True
        assert "connect" in result["instructions"]

    @pytest.mark.asyncio
    async def test_missing_required_argument(self):
        result = json.loads(await self.catalog.execute_tool("u1", "create_task", {"priority": "HIGH"}))

        assert "title" in result["error"]
        self.tasks.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_undeclared_arguments_are_dropped(self):
        self.tasks.create.return_value = Task(id="t1", title="Llamar a Ana", priority=Priority.HIGH)

        result = json.loads(await self.catalog.execute_tool(
            "u1", "create_task", {"title": "Llamar a Ana", "priority": "high", "owner": "x"}
        ))

        assert result["created"] is True
        user_id, data = self.tasks.create.call_args.args
        assert user_id == "u1"
        assert data == TaskCreate(title="Llamar a Ana", priority=Priority.HIGH)

    @pytest.mark.asyncio
    async def test_service_error_becomes_payload(self):
        self.tasks.complete.side_effect = ItemNotFoundError("task t9 not found")

        result = json.loads(await self.catalog.execute_tool("u1", "complete_task", {"task_id": "t9"}))

        assert result["not_found"] is True
        assert "t9" in result["error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_payload(self):
        self.tasks.find_all.side_effect = RuntimeError("backend down")

        result = json.loads(await self.catalog.execute_tool("u1", "get_tasks", None))
        assert result["error"] == "backend down"

    @pytest.mark.asyncio
    async def test_bad_date_argument(self):
        result = json.loads(await self.catalog.execute_tool(
            "u1", "create_task", {"title": "x", "due_date": "next tuesday-ish"}
        ))
        assert "due_date" in result["error"]

    @pytest.mark.asyncio
    async def test_tool_timeout(self):
        catalog = ToolCatalog([SlowTool(self.services)], tool_timeout=0.05)

        result = json.loads(await catalog.execute_tool("u1", "slow", {}))
        assert result["error"] == "tool timed out"

    @pytest.mark.asyncio
    async def test_large_results_are_truncated(self):
        catalog = ToolCatalog([BigTool(self.services)])

        result = await catalog.execute_tool("u1", "big", {"size": str(MAX_RESULT_CHARS * 2)})

        assert result.endswith("(truncated)")
        assert len(result) < MAX_RESULT_CHARS + 50

    @pytest.mark.asyncio
    async def test_daily_briefing(self):
        self.tasks.get_todays_briefing.return_value = TaskBriefing(summary=BriefingSummary(total=2, high=2))

        result = json.loads(await self.catalog.execute_tool("u1", "get_daily_briefing", {}))
        assert result["summary"]["high"] == 2


class TestCalendarTools:
    """Test event lookup and the delete confirmation flow."""

    def setup_method(self):
        """Set up test fixtures."""
        self.calendar = AsyncMock(spec=CalendarService)
        self.calendar.get_today_events.return_value = [
            make_event("e1", "Reunión con Acme", 10),
            make_event("e2", "Cena", 22),
        ]
        self.catalog = build_tool_catalog(DomainServices(calendar=self.calendar))

    @pytest.mark.asyncio
    async def test_delete_needs_confirmation(self):
        """First call only previews; nothing is deleted."""
        result = json.loads(await self.catalog.execute_tool(
            "u1", "delete_calendar_event", {"search_title": "reunion"}
        ))

        assert result["preview"] is True
        assert result["event"]["id"] == "e1"
        self.calendar.delete_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_after_confirmation(self):
        result = json.loads(await self.catalog.execute_tool(
            "u1", "delete_calendar_event", {"search_time": "10pm", "confirmed": "sí"}
        ))

        assert result["deleted"] is True
        self.calendar.delete_event.assert_awaited_once_with("u1", "e2")

    @pytest.mark.asyncio
    async def test_ambiguous_lookup_lists_candidates(self):
        result = json.loads(await self.catalog.execute_tool(
            "u1", "delete_calendar_event", {"confirmed": True}
        ))

        assert result["found"] is False
        assert result["confidence"] == "ambiguous"
        assert len(result["candidates"]) == 2
        self.calendar.delete_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_on_given_date(self):
        self.calendar.get_events.return_value = [make_event("e7", "Dentista", 16)]

        result = json.loads(await self.catalog.execute_tool(
            "u1", "delete_calendar_event", {"date": "2025-03-11", "search_title": "dentista"}
        ))

        assert result["event"]["id"] == "e7"
        _, start, end = self.calendar.get_events.call_args.args
        assert start == datetime(2025, 3, 11)
        assert end.date() == start.date()

    @pytest.mark.asyncio
    async def test_update_keeps_duration(self):
        event = make_event("e1", "Reunión con Acme", 10)
        self.calendar.update_event.return_value = event

        await self.catalog.execute_tool(
            "u1", "update_calendar_event", {"event_id": "e1", "new_start": "2025-03-10T15:00"}
        )

        _, event_id, changes = self.calendar.update_event.call_args.args
        assert event_id == "e1"
        assert changes.start == datetime(2025, 3, 10, 15, 0)
        assert changes.end == datetime(2025, 3, 10, 16, 0)

    @pytest.mark.asyncio
    async def test_create_event_defaults_to_one_hour(self):
        self.calendar.create_event.side_effect = lambda user_id, data: make_event("new", data.title, data.start.hour)

        result = json.loads(await self.catalog.execute_tool(
            "u1", "create_calendar_event", {"title": "Demo", "start": "2025-03-10T11:00"}
        ))

        assert result["created"] is True
        data = self.calendar.create_event.call_args.args[1]
        assert (data.end - data.start).total_seconds() == 3600

    @pytest.mark.asyncio
    async def test_create_event_rejects_inverted_range(self):
        result = json.loads(await self.catalog.execute_tool(
            "u1", "create_calendar_event",
            {"title": "Demo", "start": "2025-03-10T11:00", "end": "2025-03-10T10:00"}
        ))

        assert "end" in result["error"]
        self.calendar.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_preview_then_confirm(self):
        arguments = {"search_title": "cena"}

        preview = json.loads(await self.catalog.execute_tool("u1", "delete_calendar_event", dict(arguments)))
        assert preview["preview"] is True
        assert preview["event"]["id"] == "e2"
        self.calendar.delete_event.assert_not_called()

        done = json.loads(await self.catalog.execute_tool(
            "u1", "delete_calendar_event", {**arguments, "confirmed": "true"}
        ))
        assert done == {"deleted": True, "event_id": "e2", "title": "Cena"}
        self.calendar.delete_event.assert_awaited_once_with("u1", "e2")


class TestEmailTools:
    """Test the send/reply confirmation flow."""

    def setup_method(self):
        """Set up test fixtures."""
        self.email = AsyncMock(spec=EmailService)
        self.email.send_email.return_value = "msg-1"
        self.catalog = build_tool_catalog(DomainServices(email=self.email))
        self.arguments = {"to": "ana@acme.com", "subject": "Propuesta", "body": "Adjunto la propuesta."}

    @pytest.mark.asyncio
    async def test_send_previews_first(self):
        result = json.loads(await self.catalog.execute_tool("u1", "send_email", dict(self.arguments)))

        assert result["preview"] is True
        assert result["email"]["to"] == ["ana@acme.com"]
        self.email.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_when_confirmed(self):
        result = json.loads(await self.catalog.execute_tool(
            "u1", "send_email", {**self.arguments, "confirmed": True}
        ))

        assert result == {"sent": True, "message_id": "msg-1"}
        self.email.send_email.assert_awaited_once_with(
            "u1", EmailDraft(to=["ana@acme.com"], subject="Propuesta", body="Adjunto la propuesta.")
        )

    @pytest.mark.asyncio
    async def test_reply_preview_shows_original(self):
        self.email.get_email_detail.return_value = EmailMessage(id="m1", subject="Hola", sender="luis@globex.com")

        result = json.loads(await self.catalog.execute_tool(
            "u1", "reply_to_email", {"email_id": "m1", "body": "Gracias"}
        ))

        assert result["preview"] is True
        self.email.reply_to_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_reply_when_confirmed(self):
        self.email.reply_to_email.return_value = "msg-2"

        await self.catalog.execute_tool("u1", "reply_to_email", {"email_id": "m1", "body": "Gracias", "confirmed": "yes"})

        self.email.reply_to_email.assert_awaited_once_with("u1", "m1", "Gracias")

    @pytest.mark.asyncio
    async def test_send_preview_then_confirm(self):
        preview = json.loads(await self.catalog.execute_tool("u1", "send_email", dict(self.arguments)))
        assert preview["preview"] is True
        self.email.send_email.assert_not_called()

        done = json.loads(await self.catalog.execute_tool("u1", "send_email", {**self.arguments, "confirmed": "sí"}))
        assert done == {"sent": True, "message_id": "msg-1"}
        self.email.send_email.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reply_preview_then_confirm(self):
        self.email.get_email_detail.return_value = EmailMessage(id="m1", subject="Hola", sender="luis@globex.com")
        self.email.reply_to_email.return_value = "msg-2"
        arguments = {"email_id": "m1", "body": "Gracias"}

        preview = json.loads(await self.catalog.execute_tool("u1", "reply_to_email", dict(arguments)))
        assert preview["preview"] is True
        self.email.reply_to_email.assert_not_called()

        done = json.loads(await self.catalog.execute_tool("u1", "reply_to_email", {**arguments, "confirmed": True}))
        assert done == {"sent": True, "message_id": "msg-2"}
        self.email.reply_to_email.assert_awaited_once_with("u1", "m1", "Gracias")


class TestMemoryTools:
    """Test remember / recall / forget against a real store."""

    def setup_method(self):
        """Set up test fixtures."""
        self.db = Database(":memory:")
        self.catalog = build_tool_catalog(DomainServices(), memory_store=MemoryStore(self.db))

    def teardown_method(self):
        self.db.close()

    @pytest.mark.asyncio
    async def test_remember_recall_forget(self):
        stored = json.loads(await self.catalog.execute_tool(
            "u1", "remember", {"content": "Ana es la CFO de Acme", "type": "contact", "company": "Acme"}
        ))
        assert stored["stored"] is True

        recalled = json.loads(await self.catalog.execute_tool("u1", "recall_memories", {"query": "acme"}))
        assert recalled["count"] == 1

        forgotten = json.loads(await self.catalog.execute_tool("u1", "forget", {"query": "Ana"}))
        assert forgotten["forgotten"] == 1

        recalled = json.loads(await self.catalog.execute_tool("u1", "recall_memories", {"query": "acme"}))
        assert recalled["count"] == 0

    @pytest.mark.asyncio
    async def test_remember_rejects_unknown_type(self):
        result = json.loads(await self.catalog.execute_tool("u1", "remember", {"content": "x", "type": "gossip"}))
        assert "error" in result


class TestConfirmationWords:
    """Test what counts as an explicit confirmation."""

    def test_yes_like_values(self):
        for value in [True, "true", "YES", "1", "sí", "si"]:
            assert is_confirmed(value) is True

    def test_everything_else(self):
        for value in [None, False, "no", "", "maybe", 0]:
            assert is_confirmed(value) is False


class TestParseDatetime:
    """Test datetime arguments are read as naive local times."""

    def test_naive_is_kept(self):
        assert parse_datetime("2025-03-10T15:00") == datetime(2025, 3, 10, 15, 0)

    def test_date_only(self):
        assert parse_datetime("2025-03-10") == datetime(2025, 3, 10)

    def test_utc_is_converted_to_local(self):
        expected = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)

        assert parse_datetime("2025-03-10T15:00:00Z") == expected

    def test_offset_is_converted_to_local(self):
        moment = datetime(2025, 3, 10, 15, 0, tzinfo=timezone(timedelta(hours=2)))

        assert parse_datetime("2025-03-10T15:00:00+02:00") == moment.astimezone().replace(tzinfo=None)
        assert parse_datetime(moment) == moment.astimezone().replace(tzinfo=None)

    def test_invalid(self):
        with pytest.raises(ValueError, match="invalid start"):
            parse_datetime("mañana", field="start")
