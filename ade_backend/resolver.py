"""
Feed location resolution against CAS and ADE.

One resolution runs four strictly ordered steps inside a fresh
requests.Session:

1. GET the CAS login page and extract the execution token
2. POST the shared student credentials with that token
3. GWT-RPC login on MyPlanningClientServiceProxy
4. GWT-RPC getGeneratedUrl on CorePlanningServiceProxy, requesting an iCal
   feed of every class group for the current academic year

Any failure aborts the whole sequence; nothing is kept between attempts.
"""

import random
import re
import threading
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import quote

import requests

from .config import Config
from .errors import (
    ExecutionTokenNotFound,
    FeedUrlNotFound,
    ResolutionError,
    UnexpectedStatus,
    check_cancelled,
    interruptible_sleep,
)
from .execution_token import extract_execution_token
from .gwt_codec import (
    build_generated_url_payload,
    build_login_payload,
    gwt_headers,
    user_id_token,
)
from .log_sink import LogSink
from .timezone_utils import academic_year_bounds, utc_now


FEED_URL_RE = re.compile(r'https?://[^\s"\\]+')

# Pauses (seconds) mimicking a human between form submissions
CREDENTIALS_DELAY = (0.4, 0.7)
RPC_DELAY = (0.2, 0.35)


def find_feed_url(text: str) -> Optional[str]:
    """First absolute http(s) URL embedded in a GWT-RPC response body."""
    match = FEED_URL_RE.search(text)
    return match.group(0) if match else None


class FeedLocationResolver:
    """Performs one complete CAS + GWT-RPC exchange per resolve() call."""

    def __init__(
        self,
        config: Config,
        log: LogSink,
        session_factory: Callable[[], requests.Session] = requests.Session,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float, Optional[threading.Event]], None] = interruptible_sleep,
    ):
        self._config = config
        self._server = config.server
        self._timeout = config.network.session_timeout
        self._log = log
        self._session_factory = session_factory
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleep

    @property
    def login_url(self) -> str:
        service = quote(self._server.service_url, safe='')
        return f"{self._server.cas_login_url}?service={service}&renew=true"

    def _new_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers.update({
            'User-Agent': self._server.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'fr-FR,fr;q=0.9,en;q=0.8',
        })
        session.max_redirects = 5
        return session

    def _pause(self, bounds: tuple[float, float], cancel_event: Optional[threading.Event]) -> None:
        self._sleep(self._rng.uniform(*bounds), cancel_event)

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> str:
        """
        Run the four steps and return the generated feed URL.

        Raises:
            ResolutionError: a step failed (network error, bad status,
                missing token or URL)
            AcquisitionCancelled: `cancel_event` was set
        """
        session = self._new_session()
        try:
            self._log.info("CAS login...")
            token = self._fetch_execution_token(session, cancel_event)
            self._pause(CREDENTIALS_DELAY, cancel_event)
            self._submit_credentials(session, token, cancel_event)
            self._log.info("CAS login succeeded")
            return self._generate_feed_url(session, cancel_event)
        except ResolutionError as e:
            self._log.error(f"Resolution failed: {e}")
            raise
        finally:
            session.close()

    def _fetch_execution_token(self, session: requests.Session, cancel_event) -> str:
        check_cancelled(cancel_event)
        self._log.debug("Step 1/4: GET execution token")
        try:
            response = session.get(self.login_url, timeout=self._timeout)
        except requests.RequestException as e:
            raise ResolutionError(1, str(e)) from e
        if response.status_code != 200:
            raise UnexpectedStatus(1, response.status_code)

        html = response.text
        token = extract_execution_token(html)
        if token is None:
            self._log.debug(f"HTML received (first 500 chars): {html[:500]}")
            raise ExecutionTokenNotFound()
        self._log.debug(f"Execution token: {token[:20]}...")
        return token

    def _submit_credentials(self, session: requests.Session, token: str, cancel_event) -> None:
        check_cancelled(cancel_event)
        self._log.debug("Step 2/4: POST credentials")
        body = (
            f"username={self._server.username}&password={self._server.password}"
            f"&execution={token}&_eventId=submit&geolocation="
        )
        try:
            response = session.post(
                self.login_url,
                data=body.encode('utf-8'),
                headers={
                    'Content-Type': 'application/x-www-form-urlencoded',
                    'Referer': self.login_url,
                    'Origin': self._server.cas_origin,
                },
                allow_redirects=True,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ResolutionError(2, str(e)) from e
        if not 200 <= response.status_code < 400:
            raise UnexpectedStatus(2, response.status_code)

    def _generate_feed_url(self, session: requests.Session, cancel_event) -> str:
        module_base = self._server.module_base
        headers = gwt_headers(module_base, self._server.permutation)
        now = self._clock()
        user_id = user_id_token(now)
        start, end = academic_year_bounds(now, self._config.timezone)
        self._log.debug(f"Requested range: {start.date().isoformat()} -> {end.date().isoformat()}")

        check_cancelled(cancel_event)
        self._log.debug("Step 3/4: GWT login")
        login_payload = build_login_payload(module_base, self._server.login_policy, user_id)
        try:
            response = session.post(
                f"{module_base}MyPlanningClientServiceProxy",
                data=login_payload.encode('utf-8'),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ResolutionError(3, str(e)) from e
        if response.status_code != 200:
            raise UnexpectedStatus(3, response.status_code)

        self._pause(RPC_DELAY, cancel_event)

        self._log.debug("Step 4/4: generate feed URL")
        class_ids = self._config.catalog.all_ids()
        url_payload = build_generated_url_payload(
            module_base, self._server.core_policy, user_id, class_ids, start, end
        )
        try:
            response = session.post(
                f"{module_base}CorePlanningServiceProxy",
                data=url_payload.encode('utf-8'),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ResolutionError(4, str(e)) from e
        if response.status_code != 200:
            raise UnexpectedStatus(4, response.status_code)

        url = find_feed_url(response.text)
        if url is None:
            raise FeedUrlNotFound()
        self._log.info(f"Feed URL generated for {len(class_ids)} class groups: {url}")
        return url
