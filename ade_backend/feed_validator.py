"""
Liveness check for a cached feed location.

ADE feed URLs rotate server-side; a cached URL is only reused if it still
serves a non-empty iCalendar document.
"""

from typing import Optional

import requests

from .log_sink import LogSink
from .outcome import Outcome


CALENDAR_START = "BEGIN:VCALENDAR"
EVENT_START = "BEGIN:VEVENT"


def check_feed_body(text) -> Optional[str]:
    """None if `text` looks like a usable feed, else the reason it does not."""
    if not isinstance(text, str) or not text.startswith(CALENDAR_START):
        return "response is not an iCalendar document"
    if EVENT_START not in text:
        return "iCalendar document has no events"
    return None


class FeedValidator:

    def __init__(
        self,
        log: LogSink,
        timeout: float = 8.0,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._log = log
        self._timeout = timeout
        self._headers = {'Accept': 'text/calendar'}
        if user_agent:
            self._headers['User-Agent'] = user_agent
        self._session = session

    def check(self, location: str) -> Outcome[bool]:
        """Outcome(True) for a live feed; failure with the reason otherwise."""
        getter = self._session.get if self._session is not None else requests.get
        try:
            response = getter(location, timeout=self._timeout, headers=self._headers)
        except requests.RequestException as e:
            return Outcome.failure(f"Validation error: {e}", default=False)

        if response.status_code != 200:
            return Outcome.failure(f"Validation got HTTP {response.status_code}", default=False)

        response.encoding = 'utf-8'
        try:
            text = response.text
        except (UnicodeDecodeError, LookupError) as e:
            return Outcome.failure(f"Validation error: {e}", default=False)

        problem = check_feed_body(text)
        if problem is not None:
            return Outcome.failure(problem, default=False)
        return Outcome.ok(True)

    def is_still_valid(self, location: str) -> bool:
        self._log.debug("Validating cached feed location...")
        outcome = self.check(location)
        if outcome.success:
            self._log.info("Cached feed location is valid")
            return True
        self._log.debug(f"Cached feed location rejected: {outcome.error_message}")
        return False
