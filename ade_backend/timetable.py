"""
Timetable loading: parsed-event cache first, then feed acquisition.

Mirrors what the application does at startup and on a forced refresh:
reuse the parsed events when present, otherwise acquire a feed location,
download the feed and cache the parsed events.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from .acquisition import AcquisitionResult, FeedAcquisition
from .config import Config
from .errors import FeedError
from .feed import CourseEvent, ParsedEventsCache, load_feed_events
from .kv_store import KeyValueStore
from .log_sink import LogSink


@dataclass
class TimetableLoad:
    events: list[CourseEvent] = field(default_factory=list)
    # None when the parsed-event cache answered without an acquisition
    acquisition: Optional[AcquisitionResult] = None
    from_event_cache: bool = False
    error: Optional[str] = None


class TimetableService:

    def __init__(
        self,
        acquisition: FeedAcquisition,
        events_cache: ParsedEventsCache,
        log: LogSink,
        fetch_events: Callable[[str], list[CourseEvent]] = load_feed_events,
    ):
        self._acquisition = acquisition
        self._events_cache = events_cache
        self._log = log
        self._fetch_events = fetch_events

    @classmethod
    def from_config(cls, config: Config, store: KeyValueStore, log: LogSink) -> 'TimetableService':
        events_cache = ParsedEventsCache(store, log)
        acquisition = FeedAcquisition.from_config(
            config, store, log, on_force_refresh=events_cache.clear
        )
        return cls(acquisition, events_cache, log)

    @property
    def acquisition(self) -> FeedAcquisition:
        return self._acquisition

    @property
    def log(self) -> LogSink:
        return self._log

    def load(self, cancel_event: Optional[threading.Event] = None, force: bool = False) -> TimetableLoad:
        """
        Load the timetable. With `force`, every cache is dropped and the feed
        location regenerated.
        """
        if force:
            result = self._acquisition.force_refresh(cancel_event)
        else:
            cached_events = self._events_cache.load()
            if cached_events:
                return TimetableLoad(events=cached_events, from_event_cache=True)
            result = self._acquisition.acquire(cancel_event)

        if result.location is None or result.cancelled:
            return TimetableLoad(acquisition=result, error="No feed location available")

        try:
            events = self._fetch_events(result.location)
        except FeedError as e:
            self._log.error(f"Feed download failed: {e}")
            return TimetableLoad(acquisition=result, error=str(e))

        self._log.info(f"Timetable loaded: {len(events)} events")
        self._events_cache.save(events)
        return TimetableLoad(events=events, acquisition=result)
