"""
Diagnostic log kept in the key-value store.

Every acquisition step writes a leveled, timestamped line here so the
retry and failure history can be shown to the user. Only the newest
MAX_LINES lines are retained.
"""

import re
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .kv_store import KeyValueStore
from .timezone_utils import utc_now


LOGS_KEY = "app_logs"
MAX_LINES = 300
NO_LOGS_TEXT = "No logs available."

LEVELS = ("INFO", "DEBUG", "ERROR")

_LINE_RE = re.compile(r"^\[(?P<timestamp>[^\]]+)\] \[(?P<level>[A-Z]+)\] (?P<message>.*)$")


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.isoformat()}] [{self.level}] {self.message}"

    @classmethod
    def parse(cls, line: str) -> Optional['LogEntry']:
        match = _LINE_RE.match(line)
        if not match:
            return None
        try:
            timestamp = datetime.fromisoformat(match.group("timestamp"))
        except ValueError:
            return None
        return cls(timestamp=timestamp, level=match.group("level"), message=match.group("message"))


class LogSink:
    """
    Append-only, size-bounded log.

    Writing never raises: a storage failure is reported on stderr and the
    entry is dropped.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_lines: int = MAX_LINES,
        echo_debug: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._max_lines = max_lines
        self._echo_debug = echo_debug
        self._clock = clock
        # Serializes the read-modify-write of the log text
        self._lock = threading.Lock()

    def add(self, message: str, level: str = "INFO") -> None:
        """Append one entry, dropping the oldest lines beyond the limit."""
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        # One entry per line
        flat = " ".join(message.splitlines()).strip()
        entry = LogEntry(timestamp=self._clock(), level=level, message=flat)

        if level != "DEBUG" or self._echo_debug:
            print(f"[{level}] {flat}", file=sys.stderr)

        try:
            with self._lock:
                existing = self._store.get_item(LOGS_KEY) or ""
                lines = [line for line in existing.split("\n") if line]
                lines.append(entry.format())
                self._store.set_item(LOGS_KEY, "\n".join(lines[-self._max_lines:]) + "\n")
        except (OSError, ValueError) as e:
            print(f"Log sink error: {e}", file=sys.stderr)

    def info(self, message: str) -> None:
        self.add(message, "INFO")

    def debug(self, message: str) -> None:
        self.add(message, "DEBUG")

    def error(self, message: str) -> None:
        self.add(message, "ERROR")

    def get_logs(self) -> str:
        """Full log text for the diagnostics viewer."""
        try:
            return self._store.get_item(LOGS_KEY) or NO_LOGS_TEXT
        except (OSError, ValueError):
            return "Error while reading logs."

    def entries(self) -> list[LogEntry]:
        """Parsed entries, oldest first. Unparseable lines are skipped."""
        text = self.get_logs()
        if text == NO_LOGS_TEXT:
            return []
        entries = []
        for line in text.split("\n"):
            entry = LogEntry.parse(line)
            if entry is not None:
                entries.append(entry)
        return entries

    def clear(self) -> None:
        """Drop every entry; the clearing itself is logged."""
        try:
            with self._lock:
                self._store.remove_item(LOGS_KEY)
        except (OSError, ValueError) as e:
            print(f"Log sink error: {e}", file=sys.stderr)
            return
        self.info("Logs cleared by user")
