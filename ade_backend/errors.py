"""
Exceptions raised while acquiring the ADE feed location.

Only the resolver and the retry orchestrator raise these; the acquisition
facade turns every outcome into an AcquisitionResult.
"""

import threading
from typing import Optional


class AdeError(Exception):
    """Base class for ADE Planning errors."""


class ResolutionError(AdeError):
    """One step of the CAS + GWT-RPC exchange failed."""

    def __init__(self, step: int, message: str):
        super().__init__(f"Step {step}: {message}")
        self.step = step


class UnexpectedStatus(ResolutionError):
    def __init__(self, step: int, status: int):
        super().__init__(step, f"HTTP {status}")
        self.status = status


class ExecutionTokenNotFound(ResolutionError):
    def __init__(self):
        super().__init__(1, "execution token not found in CAS login page")


class FeedUrlNotFound(ResolutionError):
    def __init__(self):
        super().__init__(4, "no feed URL in GWT-RPC response")


class RetriesExhausted(AdeError):
    """Every resolution attempt failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"Feed URL generation failed after {attempts} attempts")
        self.attempts = attempts
        self.last_error = last_error


class AcquisitionCancelled(AdeError):
    """The caller cancelled the acquisition."""


class FeedError(AdeError):
    """The feed could not be downloaded or parsed."""


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise AcquisitionCancelled if `cancel_event` is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise AcquisitionCancelled("Acquisition cancelled")


def interruptible_sleep(seconds: float, cancel_event: Optional[threading.Event]) -> None:
    """
    Sleep for `seconds`, waking early and raising AcquisitionCancelled when
    `cancel_event` is set.
    """
    if cancel_event is None:
        cancel_event = threading.Event()
    if cancel_event.wait(max(seconds, 0.0)):
        raise AcquisitionCancelled("Acquisition cancelled")
