"""
Fingerprint Cache for Solar Irradiance

In-memory key -> entry map with per-entry expiry. Keys are built from the
provider name plus every parameter that changes the upstream response,
so two requests with the same fingerprint can share one fetch.

Behavior:
- An entry is visible until expires_at; an expired read behaves as a miss
  and evicts the entry on the spot (no background sweep)
- No size bound: one entry per distinct query
- No single-flight: concurrent misses on the same key may both fetch,
  last write wins
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached value with its expiry instant (clock seconds)."""
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


def build_cache_key(provider: str, *parts: Any) -> str:
    """
    Build a deterministic fingerprint.

    Example:
        build_cache_key("pvgis:series", "30.27,120.15", "2020-2020")
        -> "pvgis:series:30.27,120.15:2020-2020"
    """
    rendered = []
    for part in parts:
        if part is None:
            rendered.append("-")
        elif isinstance(part, bool):
            rendered.append("1" if part else "0")
        else:
            rendered.append(str(part))
    return ":".join([provider, *rendered])


class FingerprintCache:
    """
    Correctness/staleness cache for canonical responses.

    Args:
        clock: Monotonic clock in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            logger.debug(f"[FingerprintCache] MISS {key}")
            return None

        if entry.is_expired(self._clock()):
            del self._store[key]
            self.misses += 1
            logger.debug(f"[FingerprintCache] EXPIRED {key} (evicted)")
            return None

        self.hits += 1
        logger.debug(f"[FingerprintCache] HIT {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Store a value for ttl_ms milliseconds, replacing any previous entry."""
        expires_at = self._clock() + ttl_ms / 1000.0
        self._store[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
        logger.debug(f"[FingerprintCache] SET {key} (ttl={ttl_ms}ms)")

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and not entry.is_expired(self._clock())


class NullCache(FingerprintCache):
    """Cache that never stores anything (every read is a miss)."""

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        logger.debug(f"[NullCache] discarding {key}")
