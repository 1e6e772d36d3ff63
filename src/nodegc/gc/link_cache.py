"""Expiring set of provider IDs that are being claimed by a Machine."""

import threading
import time
from collections.abc import Callable
from typing import Any

from nodegc.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 10.0


class LinkCache:
    """Thread-safe key set with a fixed time-to-live per entry.

    The Link controller adds a provider ID when it starts claiming a newly
    observed instance; the garbage collector only reads. An entry expires
    ``ttl`` seconds after it was last written, regardless of how often it is
    read. Expired entries are invisible to :meth:`contains` immediately and are
    removed from memory by :meth:`purge_expired`, which the background sweeper
    calls every ``sweep_interval`` seconds.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            ttl: Default entry lifetime in seconds
            sweep_interval: Seconds between background purges
            clock: Monotonic time source (injectable for tests)
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def set(self, provider_id: str, marker: Any = None, ttl: float | None = None) -> None:
        """Add or refresh an entry.

        Args:
            provider_id: Provider ID being claimed
            marker: Opaque value stored with the entry
            ttl: Lifetime in seconds (defaults to the cache TTL)
        """
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        with self._lock:
            self._entries[provider_id] = (marker, expires_at)

    def set_default(self, provider_id: str, marker: Any = None) -> None:
        """Add or refresh an entry with the default TTL."""
        self.set(provider_id, marker)

    def contains(self, provider_id: str) -> bool:
        """Whether a live entry exists for ``provider_id``."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(provider_id)
            if entry is None:
                return False
            if entry[1] <= now:
                del self._entries[provider_id]
                return False
            return True

    __contains__ = contains

    def get(self, provider_id: str) -> Any:
        """Return the marker of a live entry, or None."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(provider_id)
            if entry is None or entry[1] <= now:
                return None
            return entry[0]

    def delete(self, provider_id: str) -> None:
        with self._lock:
            self._entries.pop(provider_id, None)

    def flush(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop expired entries from memory.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("link_cache_purged", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet purged."""
        with self._lock:
            return len(self._entries)

    def start(self) -> None:
        """Start the background sweeper thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="link-cache-sweeper", daemon=True
        )
        self._sweeper.start()
        logger.debug("link_cache_sweeper_started", interval=self.sweep_interval)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background sweeper and wait for it to exit."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None
            logger.debug("link_cache_sweeper_stopped")

    def __enter__(self) -> "LinkCache":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.purge_expired()
