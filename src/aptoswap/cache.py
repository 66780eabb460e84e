"""Process-wide TTL caches for routing data.

Pair reserves and pair-existence checks are shared across concurrent
workflows without a lock: stale reads are bounded by the TTL and every
trade is re-simulated before submission. Expired entries are evicted by a
probability-sampled sweep on reads instead of a background timer.
"""

import logging
import random
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

from aptoswap.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    timestamp: float


class TTLCache:
    """In-memory cache with a fixed expiry window.

    Args:
        ttl: Entry lifetime in seconds
        sweep_probability: Chance that a read sweeps all expired entries
        clock: Time source (monotonic seconds), injectable for tests
        rng: Uniform [0, 1) source deciding when to sweep
    """

    def __init__(
        self,
        ttl: float,
        sweep_probability: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ):
        self.ttl = ttl
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng
        self._entries: dict[str, CacheEntry] = {}

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp < self.ttl

    def get(self, key: str, default: Any = None) -> Any:
        """Return a fresh cached value or default."""
        if self._rng() < self.sweep_probability:
            self.sweep()

        entry = self._entries.get(key)
        if entry is None:
            return default
        if not self._is_fresh(entry, self._clock()):
            return default
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self) -> int:
        """Evict expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        now = self._clock()
        fresh = sum(1 for entry in self._entries.values() if self._is_fresh(entry, now))
        return {"total_entries": len(self._entries), "fresh_entries": fresh, "ttl": self.ttl}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._is_fresh(entry, self._clock())


@lru_cache
def get_pair_cache() -> TTLCache:
    """Shared reserve and pair-existence cache."""
    settings = get_settings()
    return TTLCache(
        ttl=settings.pair_cache_ttl_seconds,
        sweep_probability=settings.cache_sweep_probability,
    )


@lru_cache
def get_token_list_cache() -> TTLCache:
    """Shared cache for DEX-published token lists."""
    settings = get_settings()
    return TTLCache(ttl=settings.token_list_cache_ttl_seconds, sweep_probability=0.0)


def clear_routing_caches(reason: Optional[str] = None) -> None:
    """Drop all cached routing data."""
    get_pair_cache().clear()
    get_token_list_cache().clear()
    if reason:
        logger.info(f"Routing caches cleared: {reason}")
