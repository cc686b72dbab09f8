"""
In-memory TTL cache for raw provider payloads.

Keyed by (provider, location, data_kind). Entries older than the timeout
are treated as misses, evicted on read and overwritten on the next write.
This is only a call-volume optimization for the FallbackAggregator; whether
a network call is needed at all is decided by the storage layer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60

CacheKey = Tuple[str, str, str]


def make_key(provider: str, location: str, data_kind: str) -> CacheKey:
    return (provider, location.strip().lower(), data_kind)


@dataclass
class CacheEntry:
    """Cached value with the clock reading at write time."""
    value: Any
    written_at: float

    def age_seconds(self, now: float) -> float:
        return now - self.written_at


class TTLCache:
    """
    Fixed-timeout memoization with an injectable clock.

    An entry written at t0 is a hit while now - t0 < ttl.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        age = entry.age_seconds(self._clock())
        if age >= self.ttl_seconds:
            logger.debug(f"[TTLCache] EXPIRED {key} (age {age:.1f}s)")
            del self._entries[key]
            return None

        logger.debug(f"[TTLCache] HIT {key} (age {age:.1f}s)")
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, written_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
