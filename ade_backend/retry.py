"""
Bounded retries around feed location resolution.

Each attempt is a complete, independent resolution (new session, new
tokens). After failed attempt k the orchestrator waits k * base_delay
seconds; after the last attempt it raises RetriesExhausted.
"""

import threading
from typing import Callable, Optional

from .config import RetryConfig
from .errors import AcquisitionCancelled, AdeError, RetriesExhausted, interruptible_sleep
from .log_sink import LogSink


class RetryOrchestrator:

    def __init__(
        self,
        resolve: Callable[[Optional[threading.Event]], str],
        log: LogSink,
        config: RetryConfig = RetryConfig(),
        sleep: Callable[[float, Optional[threading.Event]], None] = interruptible_sleep,
    ):
        """
        Args:
            resolve: One full resolution; receives the cancel event
            log: Diagnostic log sink
            config: Attempt cap and base delay
            sleep: Cancellable sleep, replaced in tests
        """
        self._resolve = resolve
        self._log = log
        self._config = config
        self._sleep = sleep

    def delay_after(self, attempt: int) -> float:
        """Wait (seconds) after failed attempt `attempt` (1-based)."""
        return attempt * self._config.base_delay

    def run(self, cancel_event: Optional[threading.Event] = None) -> str:
        max_attempts = self._config.max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            self._log.info(f"Attempt {attempt}/{max_attempts} to generate the feed URL")
            try:
                url = self._resolve(cancel_event)
            except AcquisitionCancelled:
                self._log.info(f"Cancelled during attempt {attempt}")
                raise
            except (AdeError, OSError) as e:
                last_error = e
                self._log.error(f"Attempt {attempt} failed: {e}")
            else:
                self._log.info(f"Succeeded after {attempt} attempt(s)")
                return url

            if attempt < max_attempts:
                delay = self.delay_after(attempt)
                self._log.info(f"Waiting {int(delay * 1000)}ms before retrying...")
                self._sleep(delay, cancel_event)

        self._log.error(f"Giving up after {max_attempts} attempts")
        raise RetriesExhausted(max_attempts, last_error)
