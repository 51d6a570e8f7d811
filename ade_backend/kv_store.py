"""
Persistent key-value storage for ADE Planning.

Abstract base class and a JSON file implementation. Values are strings;
structured entries are JSON-encoded by their owners. The store is shared
between the cache, the log sink and the parsed-event cache.
"""

import json
import os
import sys
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORAGE: {msg}", file=sys.stderr)


class KeyValueStore(ABC):
    """
    Minimal string key-value persistence.

    Implementations may raise OSError or ValueError; callers decide how to
    degrade.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Value for `key`, or None when absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store or overwrite `key`."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete `key` if present."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Non-persistent store, used when no state file is wanted."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonKeyValueStore(KeyValueStore):
    """
    JSON file-based store.

    The whole map lives in one file; writes go to a temporary file that
    replaces the original, so a crash never leaves a half-written state file.
    """

    def __init__(self, state_file: Path):
        self.state_file = Path(state_file)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.state_file.exists():
            return {}
        with open(self.state_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"State file {self.state_file} does not hold a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.state_file.parent, prefix=".state-", suffix=".json"
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.state_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        return value if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except ValueError as e:
                _debug_print(f"Discarding unreadable state file: {e}")
                data = {}
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def create_store(state_file: Optional[Path] = None) -> KeyValueStore:
    """Factory function: JSON store at `state_file`, or in-memory when None."""
    if state_file is None:
        return MemoryKeyValueStore()
    return JsonKeyValueStore(state_file)
