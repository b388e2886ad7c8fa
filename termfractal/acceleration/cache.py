"""
Fingerprint-keyed result cache with compute-once de-duplication.

Concurrent requests for the same fingerprint share one in-flight
computation through a Future; all of them receive the same Grid object.
Completed results live in a bounded LRU map. The cache lock is only held
for bookkeeping, never while a grid is being computed, so clearing or
resizing never blocks computations for other fingerprints.
"""

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable

from ..core.fractal_types import FractalDescriptor
from ..core.quality import QualityPolicy
from ..core.viewport import Viewport

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


@dataclass(frozen=True)
class Fingerprint:
    """Composite key of every input that affects a computed Grid."""

    descriptor: FractalDescriptor
    viewport: Viewport
    policy: QualityPolicy

    @property
    def digest(self) -> str:
        """Short stable hex digest, for log messages."""
        return hashlib.md5(repr(self).encode()).hexdigest()[:12]


@dataclass
class CacheEntry:
    """A computed result and its last access time."""
    fingerprint: Hashable
    value: Any
    last_access_time: float


class ResultCache:
    """Bounded LRU cache with de-duplicated get-or-compute."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize the cache.

        Args:
            capacity: Maximum number of completed entries kept
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._inflight: Dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get_or_compute(self, fingerprint: Hashable, compute_fn: Callable[[], Any]) -> Any:
        """
        Get the cached value for ``fingerprint``, computing it at most once.

        If another caller is already computing the same fingerprint this
        call waits for that computation instead of starting a second one.
        An exception raised by ``compute_fn`` reaches the computing caller
        and every waiter; nothing is cached in that case.

        Args:
            fingerprint: Hashable key of the request
            compute_fn: Zero-argument callable producing the value

        Returns:
            The cached or freshly computed value
        """
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is not None:
                self._entries.move_to_end(fingerprint)
                entry.last_access_time = time.monotonic()
                self._hits += 1
                return entry.value

            future = self._inflight.get(fingerprint)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[fingerprint] = future
                self._misses += 1
            else:
                self._hits += 1

        if not owner:
            logger.debug(f"Waiting for in-flight computation of {_describe(fingerprint)}")
            return future.result()

        try:
            value = compute_fn()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(fingerprint, None)
            future.set_exception(e)
            raise

        with self._lock:
            self._inflight.pop(fingerprint, None)
            self._insert(fingerprint, value)
        future.set_result(value)
        return value

    def _insert(self, fingerprint: Hashable, value: Any) -> None:
        """Insert a completed value, evicting LRU entries. Caller holds the lock."""
        self._entries[fingerprint] = CacheEntry(fingerprint, value, time.monotonic())
        self._entries.move_to_end(fingerprint)
        self._evict_to(self._capacity)

    def _evict_to(self, capacity: int) -> None:
        while len(self._entries) > capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {_describe(evicted)}")

    def get(self, fingerprint: Hashable) -> Any:
        """Get a completed value without computing; None when absent."""
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            self._entries.move_to_end(fingerprint)
            entry.last_access_time = time.monotonic()
            return entry.value

    def __contains__(self, fingerprint: Hashable) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def set_capacity(self, capacity: int) -> None:
        """Change the capacity, evicting LRU entries when shrinking."""
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        with self._lock:
            self._capacity = capacity
            self._evict_to(capacity)
        logger.info(f"Cache capacity set to {capacity}")

    def clear(self) -> None:
        """
        Purge all completed entries.

        Computations already in flight are left alone; they finish and
        may repopulate the cache afterwards.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} cache entries")

    def get_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        with self._lock:
            return {
                'entry_count': len(self._entries),
                'hit_count': self._hits,
                'miss_count': self._misses,
            }


def _describe(fingerprint: Hashable) -> str:
    digest = getattr(fingerprint, 'digest', None)
    return digest if isinstance(digest, str) else repr(fingerprint)
