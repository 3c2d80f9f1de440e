"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock guards the key map. Operations never await while holding
  it, so each call is atomic for concurrent tasks on the event loop as well.
- Expired entries are evicted lazily on access and swept when a window is
  created; there is no background task.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from admission.adapters.rate_limit.base import (
    AbstractWindowStore,
    Admitted,
    ConsumeOutcome,
    CounterEntry,
    Exhausted,
    NotFound,
)

logger = logging.getLogger(__name__)


class InMemoryWindowStore(AbstractWindowStore):
    """Window store backed by a process-local dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker enforces its own
        independent limits.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CounterEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryWindowStore(entries={len(self)})"

    def _is_expired(self, entry: CounterEntry, now: float) -> bool:
        return now >= entry.expires_at

    def _live_entry_locked(self, key: str, now: float) -> CounterEntry | None:
        """Return the live entry for key, evicting it first if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, now):
            del self._entries[key]
            logger.debug("window_store.expired", extra={"entries": len(self._entries)})
            return None
        return entry

    def _evict_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired_keys:
            del self._entries[key]

    @staticmethod
    def _check_key(key: str) -> None:
        if not key:
            raise ValueError("key must be a non-empty string")

    async def query(self, key: str) -> int | None:
        self._check_key(key)
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return None if entry is None else entry.remaining

    async def try_consume(self, key: str) -> ConsumeOutcome:
        """Check and decrement the counter for key under the lock."""
        self._check_key(key)
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            if entry is None:
                return NotFound()
            if entry.remaining <= 0:
                return Exhausted()

            remaining = entry.remaining - 1
            self._entries[key] = CounterEntry(remaining=remaining, expires_at=entry.expires_at)
            return Admitted(remaining=remaining)

    async def create(self, key: str, initial_remaining: int, expires_at: float) -> bool:
        """Install a fresh window unless a live one already exists.

        Raises:
            ValueError: If key is empty or initial_remaining is negative.
        """
        self._check_key(key)
        if initial_remaining < 0:
            raise ValueError("initial_remaining must be >= 0")

        now = self._clock()
        with self._lock:
            self._evict_expired_locked(now)
            if key in self._entries:
                return False

            self._entries[key] = CounterEntry(remaining=initial_remaining, expires_at=expires_at)
            logger.debug(
                "window_store.created",
                extra={"entries": len(self._entries), "ttl_s": max(0.0, expires_at - now)},
            )
            return True

    async def time_to_live(self, key: str, default: float) -> float:
        self._check_key(key)
        now = self._clock()
        with self._lock:
            entry = self._live_entry_locked(key, now)
            if entry is None:
                return default
            return max(0.0, entry.expires_at - now)

    async def remove(self, key: str) -> int:
        self._check_key(key)
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None or self._is_expired(entry, self._clock()):
                return 0
            return entry.remaining
