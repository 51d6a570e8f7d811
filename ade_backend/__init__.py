"""
ADE Planning Backend Module

This module provides the timetable acquisition pipeline:
- Configuration parsing (config.py)
- CAS login and GWT-RPC feed URL generation (resolver.py, gwt_codec.py)
- Bounded retries (retry.py)
- Cache/validation/fallback decision procedure (acquisition.py)
- Feed parsing and group/room filtering (feed.py)
- Background loading for the GUI (acquisition_worker.py)
"""

from .config import Config, ClassGroupCatalog
from .kv_store import KeyValueStore, JsonKeyValueStore, MemoryKeyValueStore, create_store
from .log_sink import LogSink, LogEntry
from .cache_store import FeedLocationCache, FeedLocationCacheEntry
from .connectivity import ConnectivityProbe, ConnectivityStatus
from .feed_validator import FeedValidator
from .resolver import FeedLocationResolver
from .retry import RetryOrchestrator
from .acquisition import FeedAcquisition, AcquisitionResult
from .feed import CourseEvent, ParsedEventsCache
from .timetable import TimetableService, TimetableLoad

__all__ = [
    'Config',
    'ClassGroupCatalog',
    'KeyValueStore',
    'JsonKeyValueStore',
    'MemoryKeyValueStore',
    'create_store',
    'LogSink',
    'LogEntry',
    'FeedLocationCache',
    'FeedLocationCacheEntry',
    'ConnectivityProbe',
    'ConnectivityStatus',
    'FeedValidator',
    'FeedLocationResolver',
    'RetryOrchestrator',
    'FeedAcquisition',
    'AcquisitionResult',
    'CourseEvent',
    'ParsedEventsCache',
    'TimetableService',
    'TimetableLoad',
]
