"""Calendar tools."""

import logging
from datetime import datetime, timedelta
from typing import Optional, Any

from services.models import EventCreate, EventUpdate
from .base import (
    Tool,
    ToolResult,
    params,
    string,
    integer,
    boolean,
    string_list,
    parse_datetime,
    is_confirmed,
    as_list,
    clamp,
)
from .matching import EventMatch, MatchConfidence, match_event, describe_candidates

logger = logging.getLogger(__name__)

# Shared argument descriptions of the tools that act on an existing event
_LOOKUP_PROPERTIES = {
    "event_id": string("Exact event id, when known"),
    "search_title": string("Words from the event title, e.g. 'reunión'"),
    "search_time": string("Start time of the event, e.g. '10', '10:30', '10pm'"),
    "date": string("Day of the event (YYYY-MM-DD); defaults to today"),
}


def _day_bounds(day: datetime):
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


class _EventLookupTool(Tool):
    """Base for tools that act on one existing event referenced loosely."""

    async def resolve(
        self,
        user_id: str,
        event_id: Optional[str],
        search_title: Optional[str],
        search_time: Optional[str],
        date: Optional[str]
    ) -> EventMatch:
        calendar = self.services.require("calendar")
        if date:
            start, end = _day_bounds(parse_datetime(date, "date"))
            candidates = await calendar.get_events(user_id, start, end)
        else:
            candidates = await calendar.get_today_events(user_id)
        return match_event(candidates, event_id=event_id, search_title=search_title, search_time=search_time)

    def unresolved(self, match: EventMatch) -> ToolResult:
        """Disambiguation payload; the model asks the user which event they mean."""
        if match.confidence == MatchConfidence.NONE:
            message = "No event matches that description. Offer the user the listed events."
        else:
            message = "Several events match. Ask the user which one they mean."
        return self.ok({
            "found": False,
            "confidence": match.confidence.value,
            "message": message,
            "candidates": describe_candidates(match.candidates),
        })


class GetTodayEventsTool(Tool):
    name = "get_today_events"
    description = "Get the user's calendar events for today."

    async def execute(self, user_id: str) -> ToolResult:
        events = await self.services.require("calendar").get_today_events(user_id)
        return self.ok({"count": len(events), "events": events})


class GetUpcomingEventsTool(Tool):
    name = "get_upcoming_events"
    description = "Get the user's calendar events for the next days (7 by default)."

    parameters = params(days=integer("How many days ahead to look (1-30)"))

    async def execute(self, user_id: str, days: Any = 7) -> ToolResult:
        events = await self.services.require("calendar").get_upcoming_events(user_id, clamp(days, 7, 30))
        return self.ok({"count": len(events), "events": events})


class GetEventsTool(Tool):
    name = "get_events"
    description = "Get the user's calendar events between two dates (ISO 8601). Use for specific days or ranges."

    parameters = params(
        required=["start_date"],
        start_date=string("Range start, YYYY-MM-DD or full ISO datetime"),
        end_date=string("Range end; defaults to the end of start_date's day"),
    )

    async def execute(self, user_id: str, start_date: str, end_date: Optional[str] = None) -> ToolResult:
        start = parse_datetime(start_date, "start_date")
        if end_date:
            end = parse_datetime(end_date, "end_date")
            if len(end_date.strip()) <= 10:
                end = _day_bounds(end)[1]
        else:
            end = _day_bounds(start)[1]

        events = await self.services.require("calendar").get_events(user_id, start, end)
        return self.ok({"count": len(events), "events": events})


class CreateCalendarEventTool(Tool):
    name = "create_calendar_event"
    description = """Create an event in the user's calendar.
Resolve relative dates ("tomorrow at 10") against the current date before calling.
If no end time is given the event lasts one hour."""

    parameters = params(
        required=["title", "start"],
        title=string("Event title"),
        start=string("Start, ISO 8601 datetime"),
        end=string("End, ISO 8601 datetime"),
        description=string("Optional description"),
        location=string("Optional location"),
        attendees=string_list("Optional attendee emails"),
    )

    async def execute(
        self,
        user_id: str,
        title: str,
        start: str,
        end: Optional[str] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        attendees: Any = None
    ) -> ToolResult:
        start_at = parse_datetime(start, "start")
        end_at = parse_datetime(end, "end") if end else start_at + timedelta(hours=1)
        if end_at <= start_at:
            return self.fail("end must be after start")

        event = await self.services.require("calendar").create_event(user_id, EventCreate(
            title=title,
            start=start_at,
            end=end_at,
            description=description,
            location=location,
            attendees=as_list(attendees)
        ))
        logger.info(f"Calendar event created via agent: {event.id}")
        return self.ok({"created": True, "event": event})


class UpdateCalendarEventTool(_EventLookupTool):
    name = "update_calendar_event"
    description = """Change an existing event (title, time, place, attendees).
Identify it by id, or loosely by words of its title and/or its start time.
If the result lists candidates instead of an update, ask the user which one."""

    parameters = params(
        **_LOOKUP_PROPERTIES,
        new_title=string("New title"),
        new_start=string("New start, ISO 8601 datetime"),
        new_end=string("New end, ISO 8601 datetime"),
        new_location=string("New location"),
        new_description=string("New description"),
        attendees=string_list("Replacement attendee emails"),
    )

    async def execute(
        self,
        user_id: str,
        event_id: Optional[str] = None,
        search_title: Optional[str] = None,
        search_time: Optional[str] = None,
        date: Optional[str] = None,
        new_title: Optional[str] = None,
        new_start: Optional[str] = None,
        new_end: Optional[str] = None,
        new_location: Optional[str] = None,
        new_description: Optional[str] = None,
        attendees: Any = None
    ) -> ToolResult:
        match = await self.resolve(user_id, event_id, search_title, search_time, date)
        if not match.resolved:
            return self.unresolved(match)

        event = match.event
        changes = EventUpdate(
            title=new_title,
            location=new_location,
            description=new_description,
            attendees=as_list(attendees) if attendees is not None else None
        )
        if new_start:
            changes.start = parse_datetime(new_start, "new_start")
            # Keep the duration when only the start moves
            changes.end = changes.start + (event.end - event.start)
        if new_end:
            changes.end = parse_datetime(new_end, "new_end")

        updated = await self.services.require("calendar").update_event(user_id, event.id, changes)
        return self.ok({"updated": True, "confidence": match.confidence.value, "event": updated})


class DeleteCalendarEventTool(_EventLookupTool):
    name = "delete_calendar_event"
    description = """Delete an event from the user's calendar. Two steps:
1) call without confirmed: you get a preview, show it and ask the user to confirm;
2) only after the user agrees, call again with the same arguments and confirmed=true."""

    parameters = params(
        **_LOOKUP_PROPERTIES,
        confirmed=boolean("true only after the user confirmed the deletion"),
    )

    async def execute(
        self,
        user_id: str,
        event_id: Optional[str] = None,
        search_title: Optional[str] = None,
        search_time: Optional[str] = None,
        date: Optional[str] = None,
        confirmed: Any = None
    ) -> ToolResult:
        match = await self.resolve(user_id, event_id, search_title, search_time, date)
        if not match.resolved:
            return self.unresolved(match)

        event = match.event
        if not is_confirmed(confirmed):
            return self.ok({
                "preview": True,
                "action": "delete_calendar_event",
                "event": describe_candidates([event])[0],
                "message": "Nothing was deleted. Show this event to the user and ask for confirmation; "
                           "then call again with confirmed=true.",
            })

        await self.services.require("calendar").delete_event(user_id, event.id)
        logger.info(f"Calendar event deleted via agent: {event.id}")
        return self.ok({"deleted": True, "event_id": event.id, "title": event.title})


class CheckAvailabilityTool(Tool):
    name = "check_availability"
    description = "Check whether the user is free between two datetimes; returns the busy slots in that range."

    parameters = params(
        required=["start", "end"],
        start=string("Range start, ISO 8601 datetime"),
        end=string("Range end, ISO 8601 datetime"),
    )

    async def execute(self, user_id: str, start: str, end: str) -> ToolResult:
        start_at = parse_datetime(start, "start")
        end_at = parse_datetime(end, "end")
        busy = await self.services.require("calendar").get_free_busy(user_id, start_at, end_at)
        return self.ok({"available": not busy, "busy": busy})
