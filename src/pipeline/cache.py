from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from src.rank.results import MatchResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 256


@dataclass(slots=True)
class CacheEntry:
    key: str
    data: MatchResult
    stored_at: float


class MatchResultCache:
    """In-memory, time-boxed memo of match results keyed by profile fingerprint.

    Expiry is checked lazily on lookup; there is no background eviction.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1 when set.")
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return (now - entry.stored_at) < self.ttl_seconds

    def get(self, key: str) -> MatchResult | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry, self._clock()):
                del self._entries[key]
                logger.debug("Evicted expired match cache entry %s", key)
                return None
            return entry.data

    def set(self, key: str, result: MatchResult) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(key=key, data=result, stored_at=self._clock())
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted_key, _ = self._entries.popitem(last=False)
                    logger.debug("Evicted oldest match cache entry %s", evicted_key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
