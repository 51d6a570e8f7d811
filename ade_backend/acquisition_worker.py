"""
Acquisition Worker - runs timetable loading in a background thread.

Resolution blocks for seconds (CAS login, GWT-RPC calls, retry backoff).
Running it on a ThreadPoolExecutor keeps the UI responsive; results are
delivered via Qt signals, which Qt queues to the receiver's thread.
"""

from concurrent.futures import ThreadPoolExecutor, Future
from typing import Optional
import threading
import traceback
import sys

from PySide6.QtCore import QObject, Signal

from .timetable import TimetableService


class AcquisitionWorker(QObject):
    """
    Runs TimetableService.load() off the GUI thread.

    At most one load is in flight; a second request while one is running
    returns the running Future.
    """

    # Args: (load: TimetableLoad)
    timetable_loaded = Signal(object)

    # Args: (error_message: str)
    operation_error = Signal(str)

    def __init__(self, service: TimetableService, parent=None):
        super().__init__(parent)
        self._service = service
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="acquisition")
        self._pending: Optional[Future] = None
        self._cancel_event = threading.Event()

    def submit_load(self, force: bool = False) -> Future:
        """
        Start loading the timetable in the background.

        The timetable_loaded or operation_error signal is emitted when done.
        """
        if self._pending is not None and not self._pending.done():
            return self._pending

        self._cancel_event = threading.Event()
        future = self._executor.submit(self._service.load, self._cancel_event, force)
        self._pending = future
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        if future.cancelled():
            return
        try:
            result = future.result()
        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            print(f"DEBUG AcquisitionWorker: load failed: {error_msg}", file=sys.stderr)
            traceback.print_exc(file=sys.stderr)
            self.operation_error.emit(error_msg)
            return
        self.timetable_loaded.emit(result)

    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cancel(self) -> None:
        """
        Cancel the running load. Sleeps wake up immediately; an HTTP call in
        progress finishes within its timeout.
        """
        self._cancel_event.set()
        if self._pending is not None:
            self._pending.cancel()

    def on_background(self) -> None:
        """
        The application left the foreground: stop loading and wipe the
        diagnostic log.
        """
        self.cancel()
        self._service.log.clear()

    def shutdown(self, wait: bool = True) -> None:
        """Cancel pending work and stop the executor."""
        self.cancel()
        self._executor.shutdown(wait=wait)
