"""Tests for loose calendar event matching."""

from tools.matching import MatchConfidence, match_event, normalize, parse_time_token
from tests.fakes import make_event


class TestParseTimeToken:
    """Test time token parsing."""

    def test_plain_hours(self):
        assert parse_time_token("10") == (10, None)
        assert parse_time_token("22") == (22, None)

    def test_hours_and_minutes(self):
        assert parse_time_token("10:30") == (10, 30)
        assert parse_time_token("9.15") == (9, 15)

    def test_meridiem(self):
        assert parse_time_token("10pm") == (22, None)
        assert parse_time_token("10 p.m.") == (22, None)
        assert parse_time_token("12am") == (0, None)
        assert parse_time_token("12pm") == (12, None)
        assert parse_time_token("7:45 AM") == (7, 45)

    def test_not_a_time(self):
        assert parse_time_token("x") is None
        assert parse_time_token("25") is None
        assert parse_time_token("13pm") is None
        assert parse_time_token("10:75") is None


class TestMatchEvent:
    """Test event resolution by id, title and time."""

    def setup_method(self):
        """Set up test fixtures."""
        self.standup = make_event("e1", "Standup diario", 9)
        self.meeting = make_event("e2", "Reunión con Acme", 10)
        self.dinner = make_event("e3", "Cena de equipo", 22)
        self.events = [self.standup, self.meeting, self.dinner]

    def test_exact_id_wins(self):
        match = match_event(self.events, event_id="e3", search_title="standup")

        assert match.confidence == MatchConfidence.EXACT
        assert match.event.id == "e3"

    def test_time_with_meridiem(self):
        match = match_event(self.events, search_time="10pm")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e3"

    def test_title_ignores_accents_and_case(self):
        match = match_event(self.events, search_title="reunion")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e2"

    def test_title_wins_over_time(self):
        match = match_event(self.events, search_title="reunión", search_time="22")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e2"

    def test_time_narrows_several_title_hits(self):
        events = self.events + [make_event("e4", "Reunión de presupuesto", 16)]

        match = match_event(events, search_title="reunión", search_time="4pm")

        assert match.event.id == "e4"

    def test_ambiguous_time(self):
        events = self.events + [make_event("e4", "Llamada", 22, 30)]

        match = match_event(events, search_time="10pm")

        assert match.confidence == MatchConfidence.AMBIGUOUS
        assert {e.id for e in match.candidates} == {"e3", "e4"}

    def test_unmatched_title(self):
        match = match_event(self.events, search_title="x")

        assert match.confidence == MatchConfidence.NONE
        assert match.resolved is False
        assert len(match.candidates) == 3

    def test_ambiguous_title(self):
        events = self.events + [make_event("e4", "Reunión de presupuesto", 16)]

        match = match_event(events, search_title="reunión")

        assert match.confidence == MatchConfidence.AMBIGUOUS
        assert {e.id for e in match.candidates} == {"e2", "e4"}
        assert match.event is None

    def test_single_candidate_without_criteria(self):
        match = match_event([self.meeting])

        assert match.confidence == MatchConfidence.DEFAULT
        assert match.event.id == "e2"

    def test_several_candidates_without_criteria(self):
        assert match_event(self.events).confidence == MatchConfidence.AMBIGUOUS

    def test_no_candidates(self):
        assert match_event([], search_title="reunión").confidence == MatchConfidence.NONE
        assert match_event([]).confidence == MatchConfidence.NONE

    def test_unknown_id_never_invents_one(self):
        match = match_event(self.events, event_id="missing")

        assert match.confidence == MatchConfidence.NONE
        assert match.event is None
        assert len(match.candidates) == 3

    def test_unknown_id_with_single_candidate(self):
        match = match_event([self.meeting], event_id="missing")

        assert match.confidence == MatchConfidence.DEFAULT
        assert match.event.id == "e2"

    def test_unknown_id_falls_back_to_title(self):
        match = match_event(self.events, event_id="missing", search_title="cena")
        assert match.event.id == "e3"

    def test_invalid_time_matches_nothing(self):
        assert match_event(self.events, search_time="mañana").confidence == MatchConfidence.NONE

    def test_normalize(self):
        assert normalize("  Reunión ÁGIL ") == "reunion agil"


class TestMatchFallbackOrder:
    """Test each step of the title, time, single-candidate fallback."""

    def setup_method(self):
        """Set up test fixtures."""
        self.call = make_event("e1", "Llamada importante", 22)
        self.meeting = make_event("e2", "Reunión equipo", 10)
        self.events = [self.call, self.meeting]

    def test_time_token(self):
        match = match_event(self.events, search_time="10pm")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e1"

    def test_title(self):
        match = match_event(self.events, search_title="reunión")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e2"

    def test_unmatched_title_lists_both(self):
        match = match_event(self.events, search_title="x")

        assert match.confidence == MatchConfidence.NONE
        assert [e.id for e in match.candidates] == ["e1", "e2"]

    def test_time_used_when_title_misses(self):
        match = match_event(self.events, search_title="llamada urgente", search_time="10pm")

        assert match.confidence == MatchConfidence.HIGH
        assert match.event.id == "e1"

    def test_single_candidate_when_criteria_miss(self):
        match = match_event([self.meeting], search_title="la reunión")

        assert match.confidence == MatchConfidence.DEFAULT
        assert match.event.id == "e2"

    def test_single_candidate_when_time_misses(self):
        match = match_event([self.call], search_time="9")

        assert match.confidence == MatchConfidence.DEFAULT
        assert match.event.id == "e1"

    def test_nothing_matches_among_several(self):
        match = match_event(self.events, search_title="almuerzo", search_time="13")

        assert match.confidence == MatchConfidence.NONE
        assert match.event is None
        assert len(match.candidates) == 2
