"""
Persistent cache of the last generated feed location.

A single entry, overwritten on every successful resolution. The store keeps
no TTL; the validator and the acquisition policy decide what is usable.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .kv_store import KeyValueStore
from .log_sink import LogSink
from .outcome import Outcome
from .timezone_utils import format_age, from_epoch_millis, to_epoch_millis, utc_now


CACHE_KEY = "global_calendar_cache"


@dataclass(frozen=True)
class FeedLocationCacheEntry:
    location: str
    acquired_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.acquired_at

    def to_json(self) -> str:
        return json.dumps({"url": self.location, "timestamp": to_epoch_millis(self.acquired_at)})

    @classmethod
    def from_json(cls, text: str) -> 'FeedLocationCacheEntry':
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get("url"), str) or not data["url"]:
            raise ValueError("cache entry has no url")
        return cls(location=data["url"], acquired_at=from_epoch_millis(int(data["timestamp"])))


class FeedLocationCache:
    """Load/save/clear the cached feed location."""

    def __init__(
        self,
        store: KeyValueStore,
        log: LogSink,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._log = log
        self._clock = clock

    def read(self) -> Outcome[FeedLocationCacheEntry]:
        """Outcome holding the entry (None on a miss); failure on unreadable data."""
        try:
            raw = self._store.get_item(CACHE_KEY)
            if not raw:
                return Outcome.ok(None)
            return Outcome.ok(FeedLocationCacheEntry.from_json(raw))
        except (OSError, ValueError, KeyError, TypeError) as e:
            return Outcome.failure(f"Cache read error: {e}")

    def load(self) -> Optional[FeedLocationCacheEntry]:
        """The cached entry, or None on a miss or any read failure."""
        outcome = self.read()
        if not outcome.success:
            self._log.error(outcome.error_message)
            return None
        entry = outcome.value
        if entry is None:
            self._log.debug("No cached feed location")
            return None
        self._log.debug(f"Cached feed location found: {format_age(entry.age(self._clock()))} old")
        return entry

    def save(self, location: str) -> Outcome[FeedLocationCacheEntry]:
        entry = FeedLocationCacheEntry(location=location, acquired_at=self._clock())
        try:
            self._store.set_item(CACHE_KEY, entry.to_json())
        except (OSError, ValueError) as e:
            self._log.error(f"Cache save error: {e}")
            return Outcome.failure(str(e))
        self._log.info(f"Feed location cached at {entry.acquired_at.isoformat()}")
        return Outcome.ok(entry)

    def clear(self) -> Outcome[None]:
        try:
            self._store.remove_item(CACHE_KEY)
        except (OSError, ValueError) as e:
            self._log.error(f"Cache clear error: {e}")
            return Outcome.failure(str(e))
        self._log.info("Feed location cache cleared")
        return Outcome.ok(None)
