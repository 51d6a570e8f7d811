"""Tests for feed parsing, browsing helpers and the parsed events cache."""

from datetime import datetime

import pytest
import pytz
import requests

from ade_backend.errors import FeedError
from ade_backend.feed import (
    EVENTS_KEY,
    UNKNOWN_ROOM,
    CourseEvent,
    ParsedEventsCache,
    fetch_feed,
    filter_by_group,
    filter_by_room,
    filter_by_teacher,
    group_alphabetically,
    list_groups,
    list_rooms,
    list_teachers,
    parse_feed,
    split_description,
)

from fakes import FakeResponse, FakeSession

URL = "https://ade.example.fr/feed123.ics"

FEED = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//ADE/version 6.0\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:ade-2\r\n"
    "SUMMARY:R1.01 CM Initiation au developpement\r\n"
    "DTSTART:20261020T130000Z\r\n"
    "DTEND:20261020T150000Z\r\n"
    "LOCATION:Amphi A\\,Salle 102\r\n"
    "DESCRIPTION:\\nBUT1\\nDUPONT Marie\\n(Exported :18/10/2026 10:00)\\n\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:ade-1\r\n"
    "SUMMARY:EN1 TD Gr B2 Anglais\r\n"
    "DTSTART:20261019T080000Z\r\n"
    "DTEND:20261019T100000Z\r\n"
    "LOCATION:Salle 204\r\n"
    "DESCRIPTION:\\nGr B2\\nGr B3\\nMARTIN  Paul\\n(Exported :18/10/2026 10:00)\\n\r\n"
    "END:VEVENT\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:ade-3\r\n"
    "SUMMARY:Reunion de rentree\r\n"
    "DTSTART:20261021T090000Z\r\n"
    "DTEND:20261021T100000Z\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


def make_event(location="Salle 204", groups=None):
    return CourseEvent(
        title="EN1 TD Anglais",
        location=location,
        start=datetime(2026, 10, 19, 8, 0, tzinfo=pytz.UTC),
        end=datetime(2026, 10, 19, 10, 0, tzinfo=pytz.UTC),
        groups=groups or [],
    )


@pytest.fixture
def events():
    return parse_feed(FEED)


class TestParseFeed:

    def test_sorted_by_start(self, events):
        assert [e.start for e in events] == sorted(e.start for e in events)
        assert events[0].start == datetime(2026, 10, 19, 8, 0, tzinfo=pytz.UTC)
        assert events[0].end == datetime(2026, 10, 19, 10, 0, tzinfo=pytz.UTC)

    def test_td_event(self, events):
        event = events[0]
        assert event.course_type == "TD"
        assert event.course_name == "EN1"
        assert event.title == "EN1 TD  Anglais"
        assert event.groups == ["Gr B2", "Gr B3"]
        assert event.teacher == "MARTIN  Paul"
        assert event.time_log == "(Exported :18/10/2026 10:00)"

    def test_lecture_with_two_rooms(self, events):
        event = events[1]
        assert event.course_type == "CM"
        assert event.location == "Amphi A,Salle 102"
        assert event.rooms == ["Amphi A", "Salle 102"]
        assert event.teacher == "DUPONT Marie"
        assert event.groups == ["BUT1"]

    def test_event_without_location_or_description(self, events):
        event = events[2]
        assert event.location == UNKNOWN_ROOM
        assert event.rooms == []
        assert event.course_type == "Other"
        assert event.course_name == "Unknown"
        assert event.groups == []
        assert event.teacher is None

    def test_invalid_text(self):
        with pytest.raises(FeedError):
            parse_feed("this is not a calendar")


class TestSplitDescription:

    def test_without_stamp_last_line_is_dropped(self):
        assert split_description("G1\nG2\nDupont") == (["G1", "G2"], None, None)

    def test_repeated_teacher_line(self):
        # Groups stop at the first line equal to the teacher line
        groups, teacher, _ = split_description("Gr A1\nDOE\nGr A2\nDOE\n(Exported x)")
        assert groups == ["Gr A1"]
        assert teacher == "DOE"

    def test_stamp_only(self):
        assert split_description("(Exported :1/1/2026)") == ([], None, "(Exported :1/1/2026)")

    def test_blank_lines_ignored(self):
        groups, teacher, stamp = split_description("\nGr A1\n\nDOE John\n(Exported x)\n")
        assert groups == ["Gr A1"]
        assert teacher == "DOE John"
        assert stamp == "(Exported x)"


class TestBrowsing:

    def test_lists(self, events):
        assert list_rooms(events) == ["Amphi A", "Salle 102", "Salle 204"]
        assert list_groups(events) == ["BUT1", "Gr B2", "Gr B3"]
        assert list_teachers(events) == ["DUPONT Marie", "MARTIN Paul"]

    def test_first_year_group_is_exact(self, events):
        assert [e.course_name for e in filter_by_group(events, "BUT1", "Gr B3")] == ["EN1"]
        assert filter_by_group(events, "BUT1", "Gr B") == []
        assert filter_by_group(events, "BUT1", "BUT1") == [events[1]]

    def test_later_year_group_uses_prefixed_name(self):
        event = make_event(groups=["GEII BUT2A_G1 TD", "GEII BUT2A_G2 TD"])
        assert filter_by_group([event], "BUT2", "G1") == [event]
        assert filter_by_group([event], "BUT3", "G1") == []
        assert filter_by_group([event], "BUT2", "G3") == []

    def test_room_is_case_insensitive_substring(self, events):
        event = make_event(location="Salle A101 (GEII)")
        assert filter_by_room([event], "a101") == [event]
        assert filter_by_room(events, "salle 1") == [events[1]]
        assert filter_by_room(events, "amphi") == [events[1]]
        assert filter_by_room(events, UNKNOWN_ROOM) == [events[2]]

    def test_teacher_is_case_insensitive_substring(self, events):
        assert filter_by_teacher(events, "martin") == [events[0]]
        assert filter_by_teacher(events, "Marie") == [events[1]]
        assert filter_by_teacher(events, "nobody") == []

    def test_group_alphabetically(self):
        grouped = group_alphabetically(["salle 1", "Amphi A", "Amphi B", "", "Salle 2"])
        assert grouped == {"S": ["salle 1", "Salle 2"], "A": ["Amphi A", "Amphi B"]}


class TestFetchFeed:

    def test_fetch(self):
        session = FakeSession({("GET", URL): FakeResponse(200, FEED)})
        assert fetch_feed(URL, session=session) == FEED
        assert session.calls[0][2]["headers"] == {"Accept": "text/calendar"}

    @pytest.mark.parametrize("answer", [
        FakeResponse(404, "gone"),
        requests.ConnectionError("refused"),
    ])
    def test_fetch_errors(self, answer):
        with pytest.raises(FeedError):
            fetch_feed(URL, session=FakeSession({("GET", URL): answer}))


class TestParsedEventsCache:

    def test_empty(self, store, log):
        assert ParsedEventsCache(store, log).load() is None

    def test_save_load(self, store, log, events):
        cache = ParsedEventsCache(store, log)
        cache.save(events)
        loaded = cache.load()
        assert loaded == events
        assert all(isinstance(e, CourseEvent) for e in loaded)

    def test_clear(self, store, log, events):
        cache = ParsedEventsCache(store, log)
        cache.save(events)
        cache.clear()
        assert store.get_item(EVENTS_KEY) is None

    def test_corrupt_data_is_logged(self, store, log, messages):
        store.set_item(EVENTS_KEY, '[{"title": "x"}]')
        assert ParsedEventsCache(store, log).load() is None
        assert any("unreadable" in m for m in messages("ERROR"))
