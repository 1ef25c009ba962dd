"""Fuzzy resolution of a calendar event the user referred to loosely."""

import re
import unicodedata
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field

from services.models import CalendarEvent

# 10, 10:30, 10pm, 10:30 pm, 10 p.m.
_TIME_PATTERN = re.compile(
    r"^\s*(\d{1,2})(?:[:.h](\d{2}))?\s*(?:([ap])\.?\s*m\.?)?\s*$",
    re.IGNORECASE
)


class MatchConfidence(str, Enum):
    EXACT = "exact"          # id matched
    HIGH = "high"            # title or time matched exactly one event
    DEFAULT = "default"      # nothing matched, but only one candidate exists
    AMBIGUOUS = "ambiguous"  # several events fit
    NONE = "none"            # nothing fits


class EventMatch(BaseModel):
    confidence: MatchConfidence
    event: Optional[CalendarEvent] = None
    candidates: List[CalendarEvent] = Field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.event is not None


def normalize(text: str) -> str:
    """Lower-case and strip accents so "Reunión" matches "reunion"."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold().strip()


def parse_time_token(token: str) -> Optional[Tuple[int, Optional[int]]]:
    """
    Parse a loose time reference into (hour 0-23, minute or None).

    Returns None when the token is not a time.
    """
    found = _TIME_PATTERN.match(token or "")
    if not found:
        return None

    hour = int(found.group(1))
    minute = int(found.group(2)) if found.group(2) else None
    meridiem = (found.group(3) or "").lower()

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "p" else 0)
    elif hour > 23:
        return None

    if minute is not None and minute > 59:
        return None
    return hour, minute


def _time_matches(event: CalendarEvent, wanted: Tuple[int, Optional[int]]) -> bool:
    hour, minute = wanted
    if event.start.hour != hour:
        return False
    return minute is None or event.start.minute == minute


def match_event(
    candidates: List[CalendarEvent],
    event_id: Optional[str] = None,
    search_title: Optional[str] = None,
    search_time: Optional[str] = None
) -> EventMatch:
    """
    Resolve one event among candidates.

    Steps, first hit wins: exact id, title substring (case and accent
    insensitive), time token, the only candidate. Several title or time hits
    are ambiguous; when both criteria are given the time narrows several
    title hits. Criteria that match nothing among several candidates give
    none with every candidate listed.
    """
    if event_id:
        for event in candidates:
            if event.id == event_id:
                return EventMatch(confidence=MatchConfidence.EXACT, event=event, candidates=[event])

    wanted_time = parse_time_token(search_time) if search_time and search_time.strip() else None

    if search_title and search_title.strip():
        wanted_title = normalize(search_title)
        by_title = [e for e in candidates if wanted_title in normalize(e.title)]
        if len(by_title) > 1 and wanted_time is not None:
            narrowed = [e for e in by_title if _time_matches(e, wanted_time)]
            if narrowed:
                by_title = narrowed
        if len(by_title) == 1:
            return EventMatch(confidence=MatchConfidence.HIGH, event=by_title[0], candidates=by_title)
        if by_title:
            return EventMatch(confidence=MatchConfidence.AMBIGUOUS, candidates=by_title)

    if wanted_time is not None:
        by_time = [e for e in candidates if _time_matches(e, wanted_time)]
        if len(by_time) == 1:
            return EventMatch(confidence=MatchConfidence.HIGH, event=by_time[0], candidates=by_time)
        if by_time:
            return EventMatch(confidence=MatchConfidence.AMBIGUOUS, candidates=by_time)

    if len(candidates) == 1:
        return EventMatch(confidence=MatchConfidence.DEFAULT, event=candidates[0], candidates=candidates)
    if not candidates:
        return EventMatch(confidence=MatchConfidence.NONE)

    had_criteria = any(v and v.strip() for v in (event_id, search_title, search_time))
    if had_criteria:
        return EventMatch(confidence=MatchConfidence.NONE, candidates=candidates)
    return EventMatch(confidence=MatchConfidence.AMBIGUOUS, candidates=candidates)


def describe_candidates(events: List[CalendarEvent]) -> List[dict]:
    """Compact listing the model can read back to the user."""
    return [
        {
            "id": e.id,
            "title": e.title,
            "start": e.start.isoformat(),
            "end": e.end.isoformat(),
        }
        for e in events
    ]
