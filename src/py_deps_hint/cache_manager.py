"""
In-memory cache of registry version lists with TTL-based expiration.

Keys are case-insensitive package names. The TTL is supplied per lookup so a
single cache can serve callers with different freshness requirements.
"""

import threading
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .structured_logging import log_cache_event

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Cached version list for one package."""

    package_name: str
    versions: Tuple[str, ...]
    fetched_at: float
    access_count: int = 0

    def is_expired(self, now: float, ttl_minutes: float) -> bool:
        """Check if the entry is older than the TTL."""
        return (now - self.fetched_at) > ttl_minutes * 60

    def touch(self) -> None:
        self.access_count += 1


class CacheStats:
    """Cache performance statistics."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.expired_removals = 0
        self.manual_removals = 0
        self.total_requests = 0
        self._lock = Lock()

    def record_hit(self) -> None:
        """Record a cache hit."""
        with self._lock:
            self.hits += 1
            self.total_requests += 1

    def record_miss(self) -> None:
        """Record a cache miss."""
        with self._lock:
            self.misses += 1
            self.total_requests += 1

    def record_expired_removal(self) -> None:
        """Record removal of expired entry."""
        with self._lock:
            self.expired_removals += 1

    def record_manual_removal(self) -> None:
        """Record manual cache removal."""
        with self._lock:
            self.manual_removals += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            hit_rate_percent = 0.0
            if self.total_requests > 0:
                hit_rate_percent = (self.hits / self.total_requests) * 100.0

            return {
                "hits": self.hits,
                "misses": self.misses,
                "expired_removals": self.expired_removals,
                "manual_removals": self.manual_removals,
                "total_requests": self.total_requests,
                "hit_rate_percent": hit_rate_percent,
            }


class VersionCache:
    """
    Case-insensitive cache of version lists.

    Features:
    - TTL checked on read, expired entries are removed lazily
    - Injectable clock for deterministic expiry
    - Thread-safe operations
    - Hit/miss statistics
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize the cache.

        Args:
            clock: Function returning the current time in seconds
                (defaults to time.time)
        """
        self._clock = clock or time.time
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()

    @staticmethod
    def _key(package_name: str) -> str:
        return package_name.lower()

    def get(self, package_name: str, ttl_minutes: float) -> Optional[Tuple[str, ...]]:
        """
        Get the cached versions of a package.

        Args:
            package_name: Package name, any case
            ttl_minutes: Maximum entry age in minutes

        Returns:
            Cached version tuple, or None if absent or expired
        """
        key = self._key(package_name)

        with self._lock:
            entry = self._cache.get(key)

            if entry is None:
                self._stats.record_miss()
                log_cache_event("miss", key)
                return None

            if entry.is_expired(self._clock(), ttl_minutes):
                del self._cache[key]
                self._stats.record_expired_removal()
                self._stats.record_miss()
                log_cache_event("expired", key, ttl_minutes=ttl_minutes)
                return None

            entry.touch()
            self._stats.record_hit()
            log_cache_event("hit", key)
            return entry.versions

    def set(self, package_name: str, versions: Iterable[str]) -> None:
        """Store a version list, stamped with the current clock time."""
        key = self._key(package_name)
        entry = CacheEntry(
            package_name=key, versions=tuple(versions), fetched_at=self._clock()
        )

        with self._lock:
            self._cache[key] = entry

        log_cache_event("store", key, version_count=len(entry.versions))

    def remove(self, package_name: str) -> bool:
        """
        Remove a specific entry from cache.

        Returns:
            True if entry was removed, False if not found
        """
        key = self._key(package_name)

        with self._lock:
            if key in self._cache:
                del self._cache[key]
                self._stats.record_manual_removal()
                return True
            return False

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def size(self) -> int:
        """Get current cache size."""
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get hit/miss statistics plus the current size."""
        stats = self._stats.get_stats()

        with self._lock:
            stats["current_size"] = len(self._cache)

        return stats

    def get_entries_info(self, ttl_minutes: Optional[float] = None) -> List[Dict[str, Any]]:
        """
        Get information about current cache entries.

        Args:
            ttl_minutes: If given, report expiry against this TTL

        Returns:
            List of entry information dictionaries, most accessed first
        """
        with self._lock:
            now = self._clock()
            entries_info = []

            for entry in self._cache.values():
                info: Dict[str, Any] = {
                    "package_name": entry.package_name,
                    "version_count": len(entry.versions),
                    "age_seconds": now - entry.fetched_at,
                    "access_count": entry.access_count,
                }
                if ttl_minutes is not None:
                    info["is_expired"] = entry.is_expired(now, ttl_minutes)
                    info["seconds_until_expiry"] = ttl_minutes * 60 - (now - entry.fetched_at)
                entries_info.append(info)

            entries_info.sort(key=lambda x: x["access_count"], reverse=True)
            return entries_info
