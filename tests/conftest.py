"""
pytest configuration for ADE Planning tests.

Adds the repository root to the Python path and provides in-memory
storage, a log sink and a frozen clock.
"""

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytz

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from ade_backend.config import Config  # noqa: E402
from ade_backend.kv_store import MemoryKeyValueStore  # noqa: E402
from ade_backend.log_sink import LogSink  # noqa: E402
from fakes import FakeClock  # noqa: E402


@pytest.fixture
def clock():
    # A Sunday in October, inside the 2026-2027 academic year
    return FakeClock(datetime(2026, 10, 18, 12, 0, tzinfo=pytz.UTC))


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def log(store, clock):
    return LogSink(store, clock=clock)


@pytest.fixture
def config(tmp_path):
    return Config(state_file=tmp_path / "state.json")


def log_messages(log: LogSink, level: str = None) -> list[str]:
    return [e.message for e in log.entries() if level is None or e.level == level]


@pytest.fixture
def messages(log):
    """Helper returning the logged messages, optionally filtered by level."""
    return lambda level=None: log_messages(log, level)
