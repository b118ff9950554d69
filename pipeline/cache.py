import base64
import json
import time
from dataclasses import dataclass
from typing import Callable

from config import settings
from schemas import CacheStats, OptimizationResult
from utils.logging import get_logger

logger = get_logger("pipeline.cache")


@dataclass
class CacheEntry:
    result: OptimizationResult
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class ResultCache:
    """In-memory map of (source, options) -> OptimizationResult with TTL.

    - One entry per key; set() always overwrites and restarts the TTL
    - Expired entries are evicted lazily, on the lookup that finds them
    - Hits and misses are both counted, so hit_rate is a real ratio
    - No locking: owned by a single event loop. Two concurrent misses on
      the same key both transcode; the later set() wins.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def key_for(source: str, options: dict) -> str:
        """Deterministic key for a source and its options.

        Options are serialized with sorted keys, so dicts that differ only
        in key order share an entry.
        """
        options_json = json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)
        encoded = base64.urlsafe_b64encode(options_json.encode()).decode("ascii")
        return f"{source}-{encoded}"

    def get(self, key: str) -> OptimizationResult | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            self._misses += 1
            logger.debug("Cache entry expired", extra={"context": {"key": key}})
            return None

        self._hits += 1
        return entry.result

    def set(self, key: str, result: OptimizationResult) -> None:
        self._entries[key] = CacheEntry(result=result, stored_at=self._clock(), ttl=self.ttl)

    def clear(self) -> None:
        """Drop all entries and reset the hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def purge_expired(self) -> int:
        """Evict every stale entry now. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return CacheStats(
            size=len(self._entries),
            hit_rate=self._hits / lookups if lookups else 0.0,
            total_hits=self._hits,
            total_misses=self._misses,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())
