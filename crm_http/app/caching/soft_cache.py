"""
Soft response cache: best-effort, short TTL, no persistence.

Keys are assembled by callers (for example ``"leads:list"``); the cache knows
nothing about what they mean. Successful mutations clear it wholesale.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from crm_common.logging import get_logger
from ..adapters.clock import Clock, SystemClock


@dataclass
class SoftCacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SoftResponseCache:
    """TTL key/value store owned by one client instance."""

    def __init__(self, clock: Optional[Clock] = None, bypass: Optional[Callable[[], bool]] = None):
        self.clock = clock or SystemClock()
        self._bypass = bypass or (lambda: False)
        self._entries: Dict[str, SoftCacheEntry] = {}
        self._generation = 0
        self.logger = get_logger("crm_http.soft_cache")

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key``; expired entries are evicted."""
        if self._bypass():
            return None

        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock.now()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: float) -> None:
        """Store ``value`` for ``ttl_ms`` milliseconds; non-positive TTLs store nothing."""
        if self._bypass() or ttl_ms <= 0:
            return
        self._entries[key] = SoftCacheEntry(value=value, expires_at=self.clock.now() + ttl_ms / 1000.0)

    @property
    def generation(self) -> int:
        """Bumped by every clear; a read started under an older generation is stale."""
        return self._generation

    def set_if_current(self, key: str, value: Any, ttl_ms: float, generation: int) -> bool:
        """Store ``value`` only if no clear happened since ``generation`` was read."""
        if generation != self._generation:
            self.logger.debug("Skipped caching a read that raced an invalidation", key=key)
            return False
        self.set(key, value, ttl_ms)
        return True

    def clear(self) -> None:
        self._generation += 1
        if self._entries:
            self.logger.debug("Soft cache cleared", entries=len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
