"""
Download and parse the consolidated ADE feed.

ADE exports one VEVENT per class session. Its SUMMARY carries the course
code and type (CM/TD/TP), its DESCRIPTION lists the attending groups, then
the teacher, then an "(Exported ...)" stamp. Parsed events are cached in
the key-value store so the timetable is available without the network.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

import pytz
import requests
from icalendar import Calendar as ICalCalendar

from .errors import FeedError
from .kv_store import KeyValueStore
from .log_sink import LogSink


EVENTS_KEY = "parsed_global_events"
UNKNOWN_ROOM = "Unknown room"

_COURSE_TYPE_RE = re.compile(r"\b(CM|TD|TP)\b", re.IGNORECASE)
_COURSE_NAME_RE = re.compile(r"\b([A-Z]{2,5}[0-9])\b", re.IGNORECASE)
_GROUP_MARKER_RE = re.compile(r"Gr (?:[A-Z]{2,4}[0-9]?|[A-Z][0-9]?)")


@dataclass
class CourseEvent:
    """One class session from the feed."""
    title: str
    location: str
    start: datetime
    end: datetime
    full_description: str = ""
    groups: list[str] = field(default_factory=list)
    teacher: Optional[str] = None
    time_log: Optional[str] = None
    course_type: str = "Other"
    course_name: str = "Unknown"

    @property
    def rooms(self) -> list[str]:
        """Individual rooms; ADE joins several with commas."""
        return [
            room.strip() for room in self.location.split(",")
            if room.strip() and room.strip() != UNKNOWN_ROOM
        ]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start"] = self.start.isoformat()
        data["end"] = self.end.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'CourseEvent':
        data = dict(data)
        data["start"] = datetime.fromisoformat(data["start"])
        data["end"] = datetime.fromisoformat(data["end"])
        return cls(**data)


def _as_datetime(value) -> datetime:
    """icalendar DTSTART/DTEND value as an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else pytz.UTC.localize(value)
    if isinstance(value, date):
        return pytz.UTC.localize(datetime(value.year, value.month, value.day))
    raise FeedError(f"Unsupported date value: {value!r}")


def split_description(description: str) -> tuple[list[str], Optional[str], Optional[str]]:
    """
    Split an ADE description into (groups, teacher, time_log).

    The teacher is the line just above the "(Exported" stamp. Without a
    teacher line the last line is dropped and the rest are groups.
    """
    lines = [line for line in description.split("\n") if line.strip()]
    time_log = next((line for line in lines if line.startswith("(Exported")), None)
    teacher = None
    if time_log is not None:
        index = lines.index(time_log)
        if index > 0:
            teacher = lines[index - 1]
    if teacher is None:
        return lines[:-1], None, time_log
    return lines[:lines.index(teacher)], teacher, time_log


def event_from_component(component) -> CourseEvent:
    summary = str(component.get("SUMMARY", ""))
    description = str(component.get("DESCRIPTION", "")).replace("\\n", "\n").strip()
    location = str(component.get("LOCATION", "")) or UNKNOWN_ROOM

    dtstart = component.get("DTSTART")
    if dtstart is None:
        raise FeedError(f"Event without DTSTART: {summary!r}")
    start = _as_datetime(dtstart.dt)
    dtend = component.get("DTEND")
    end = _as_datetime(dtend.dt) if dtend is not None else start

    type_match = _COURSE_TYPE_RE.search(summary)
    name_match = _COURSE_NAME_RE.search(summary)
    groups, teacher, time_log = split_description(description)

    return CourseEvent(
        title=_GROUP_MARKER_RE.sub("", summary, count=1).strip(),
        location=location,
        start=start,
        end=end,
        full_description=description,
        groups=groups,
        teacher=teacher,
        time_log=time_log,
        course_type=type_match.group(1).upper() if type_match else "Other",
        course_name=name_match.group(1).upper() if name_match else "Unknown",
    )


def parse_feed(ical_text: str) -> list[CourseEvent]:
    """All VEVENTs of the feed, sorted by start time."""
    try:
        calendar = ICalCalendar.from_ical(ical_text)
    except ValueError as e:
        raise FeedError(f"Invalid iCalendar data: {e}") from e
    events = [event_from_component(component) for component in calendar.walk("VEVENT")]
    events.sort(key=lambda event: event.start)
    return events


def fetch_feed(location: str, timeout: float = 30, session: Optional[requests.Session] = None) -> str:
    """Download the raw VCALENDAR text."""
    getter = session.get if session is not None else requests.get
    try:
        response = getter(location, timeout=timeout, headers={'Accept': 'text/calendar'})
        response.raise_for_status()
    except requests.RequestException as e:
        raise FeedError(f"Network error: {e}") from e
    response.encoding = 'utf-8'
    return response.text


def load_feed_events(location: str, timeout: float = 30, session: Optional[requests.Session] = None) -> list[CourseEvent]:
    return parse_feed(fetch_feed(location, timeout=timeout, session=session))


# ==================== Browsing ====================

def list_rooms(events: Iterable[CourseEvent]) -> list[str]:
    """Every distinct room, sorted."""
    rooms = set()
    for event in events:
        rooms.update(event.rooms)
    return sorted(rooms)


def list_groups(events: Iterable[CourseEvent]) -> list[str]:
    """Every distinct group line, sorted."""
    groups = set()
    for event in events:
        groups.update(group.strip() for group in event.groups if group.strip())
    return sorted(groups)


def list_teachers(events: Iterable[CourseEvent]) -> list[str]:
    teachers = {
        " ".join(event.teacher.split())
        for event in events
        if event.teacher and event.teacher.strip()
    }
    return sorted(teachers)


def filter_by_group(events: Iterable[CourseEvent], year: str, group: str) -> list[CourseEvent]:
    """
    Sessions of one student group.

    BUT1 group lines are the bare group name. Later years list groups as
    "<year>A_<group>" inside a longer line, e.g. "GEII BUT2A_G1 TD".
    """
    if year == "BUT1":
        return [event for event in events if any(g.strip() == group for g in event.groups)]
    pattern = f"{year}A_{group}"
    return [event for event in events if any(pattern in g for g in event.groups)]


def filter_by_teacher(events: Iterable[CourseEvent], teacher: str) -> list[CourseEvent]:
    """Case-insensitive substring match on the teacher line."""
    needle = teacher.upper()
    return [event for event in events if event.teacher and needle in event.teacher.upper()]


def filter_by_room(events: Iterable[CourseEvent], room: str) -> list[CourseEvent]:
    """Case-insensitive substring match on the raw location."""
    needle = room.upper()
    return [event for event in events if event.location and needle in event.location.upper()]


def group_alphabetically(names: Iterable[str]) -> dict[str, list[str]]:
    """Names keyed by their upper-cased first letter, for index views."""
    grouped: dict[str, list[str]] = {}
    for name in names:
        if not name:
            continue
        grouped.setdefault(name[0].upper(), []).append(name)
    return grouped


# ==================== Persistence ====================

class ParsedEventsCache:
    """Parsed events stored as JSON next to the feed location cache."""

    def __init__(self, store: KeyValueStore, log: LogSink):
        self._store = store
        self._log = log

    def load(self) -> Optional[list[CourseEvent]]:
        try:
            raw = self._store.get_item(EVENTS_KEY)
            if not raw:
                return None
            events = [CourseEvent.from_dict(item) for item in json.loads(raw)]
        except (OSError, ValueError, KeyError, TypeError) as e:
            self._log.error(f"Parsed events cache unreadable: {e}")
            return None
        self._log.debug(f"Parsed events cache: {len(events)} events")
        return events

    def save(self, events: list[CourseEvent]) -> None:
        try:
            self._store.set_item(EVENTS_KEY, json.dumps([event.to_dict() for event in events]))
        except (OSError, ValueError) as e:
            self._log.error(f"Parsed events cache save error: {e}")

    def clear(self) -> None:
        try:
            self._store.remove_item(EVENTS_KEY)
        except (OSError, ValueError) as e:
            self._log.error(f"Parsed events cache clear error: {e}")
