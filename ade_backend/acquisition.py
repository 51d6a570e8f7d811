"""
Single entry point for obtaining a usable feed location.

Decision order on every call:

1. Offline: serve the cache if any.
2. Online with a cache that still validates: serve it, no resolution.
3. Otherwise regenerate through the retry orchestrator and cache the new
   location. If every attempt fails, fall back to the previous cache entry
   unless it is older than the configured ceiling.

Only one acquisition runs at a time; concurrent callers share its result.
"""

import sys
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .cache_store import FeedLocationCache, FeedLocationCacheEntry
from .config import CacheConfig, Config
from .connectivity import ConnectivityProbe
from .errors import AcquisitionCancelled, RetriesExhausted
from .feed_validator import FeedValidator
from .kv_store import KeyValueStore
from .log_sink import LogSink
from .resolver import FeedLocationResolver
from .retry import RetryOrchestrator
from .timezone_utils import format_age, utc_now


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] ACQUIRE: {msg}", file=sys.stderr)


@dataclass(frozen=True)
class AcquisitionResult:
    """
    Outcome of one acquisition.

    location=None with from_cache and is_offline both False means every
    source failed.
    """
    location: Optional[str]
    from_cache: bool = False
    is_offline: bool = False
    cancelled: bool = False


class FeedAcquisition:
    """Composes probe, cache, validator and retrying resolver."""

    def __init__(
        self,
        probe: ConnectivityProbe,
        cache: FeedLocationCache,
        validator: FeedValidator,
        orchestrator: RetryOrchestrator,
        log: LogSink,
        cache_policy: CacheConfig = CacheConfig(),
        clock: Callable[[], datetime] = utc_now,
        on_force_refresh: Optional[Callable[[], None]] = None,
    ):
        self._probe = probe
        self._cache = cache
        self._validator = validator
        self._orchestrator = orchestrator
        self._log = log
        self._cache_policy = cache_policy
        self._clock = clock
        self._on_force_refresh = on_force_refresh

        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: KeyValueStore,
        log: LogSink,
        on_force_refresh: Optional[Callable[[], None]] = None,
    ) -> 'FeedAcquisition':
        """Wire the production collaborators from a Config."""
        resolver = FeedLocationResolver(config, log)
        return cls(
            probe=ConnectivityProbe(config.network, log),
            cache=FeedLocationCache(store, log),
            validator=FeedValidator(
                log,
                timeout=config.network.validation_timeout,
                user_agent=config.server.user_agent,
            ),
            orchestrator=RetryOrchestrator(resolver.resolve, log, config.retry),
            log=log,
            cache_policy=config.cache,
            on_force_refresh=on_force_refresh,
        )

    # ==================== Public API ====================

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> AcquisitionResult:
        """
        Get a usable feed location. Never raises.

        If another acquisition is already running, wait for it and return
        its result instead of starting a second resolution.
        """
        with self._lock:
            inflight = self._inflight
            owner = inflight is None
            if owner:
                inflight = self._inflight = Future()

        if not owner:
            _debug_print("Acquisition already in flight, waiting for it")
            return inflight.result()

        try:
            try:
                result = self._acquire(cancel_event)
            except Exception as e:
                # Unexpected bug: handle it like a failed regeneration
                self._log.error(f"Unexpected acquisition error: {type(e).__name__}: {e}")
                result = self._fallback(self._cache.load())
        except BaseException as e:
            self._release(inflight)
            inflight.set_exception(e)
            raise
        self._release(inflight)
        inflight.set_result(result)
        return result

    def _release(self, inflight: Future) -> None:
        with self._lock:
            if self._inflight is inflight:
                self._inflight = None

    def force_refresh(self, cancel_event: Optional[threading.Event] = None) -> AcquisitionResult:
        """Drop the cached location (and dependent caches), then acquire."""
        self._log.info("Forced refresh requested")
        self._cache.clear()
        if self._on_force_refresh is not None:
            self._on_force_refresh()
        return self.acquire(cancel_event)

    def is_in_flight(self) -> bool:
        with self._lock:
            return self._inflight is not None

    # ==================== Decision procedure ====================

    def _acquire(self, cancel_event: Optional[threading.Event]) -> AcquisitionResult:
        self._log.info("=" * 60)
        self._log.info("Feed acquisition started")

        if not self._probe.is_online():
            self._log.info("Offline mode")
            cached = self._cache.load()
            if cached is not None:
                self._log.info("Using cached feed location (offline)")
                return AcquisitionResult(location=cached.location, from_cache=True, is_offline=True)
            self._log.error("No cached feed location available offline")
            return AcquisitionResult(location=None, is_offline=True)

        cached = self._cache.load()
        if cached is not None:
            self._log.info("Cache found, validating...")
            if self._validator.is_still_valid(cached.location):
                self._log.info("Cache valid, using it directly")
                return AcquisitionResult(location=cached.location, from_cache=True)
            self._log.info("Cache expired, regenerating")
        else:
            self._log.info("No cache, generating a new feed location")

        try:
            location = self._orchestrator.run(cancel_event)
        except AcquisitionCancelled:
            self._log.info("Acquisition cancelled")
            return AcquisitionResult(
                location=cached.location if cached else None,
                from_cache=cached is not None,
                cancelled=True,
            )
        except RetriesExhausted as e:
            self._log.error(f"Generation failed: {e}")
            return self._fallback(cached)

        self._cache.save(location)
        self._log.info("Feed acquisition succeeded")
        return AcquisitionResult(location=location, from_cache=False)

    def _fallback(self, cached: Optional[FeedLocationCacheEntry]) -> AcquisitionResult:
        if cached is None:
            self._log.error("No fallback available")
            return AcquisitionResult(location=None)

        age = cached.age(self._clock())
        ceiling_days = self._cache_policy.max_fallback_age_days
        if ceiling_days > 0 and age > timedelta(days=ceiling_days):
            self._log.error(
                f"Cached feed location too old to fall back on ({format_age(age)})"
            )
            return AcquisitionResult(location=None)

        self._log.info(f"Using stale cache as last resort ({format_age(age)} old)")
        return AcquisitionResult(location=cached.location, from_cache=True)
