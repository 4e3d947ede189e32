"""
Query result caching for case statistics.

Statistics are read far more often than cases are written (every /case stats
and dashboard refresh), so aggregated results are kept for a short TTL and
dropped whenever the case service writes to the same guild.
"""

from typing import Any, Dict, Optional, Tuple
import time

from casebook.util.logger import get_logger

logger = get_logger("database_cache")


class DatabaseQueryCache:
    """
    TTL-based cache keyed by strings such as ``"case_stats:<guild_id>:"``.

    Keys end with a separator so prefix invalidation for guild ``12`` never
    touches guild ``123``.
    """

    def __init__(self, ttl_seconds: int = 60):
        """
        Args:
            ttl_seconds: Time-to-live in seconds for cached entries (default: 60)
        """
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._ttl_seconds = ttl_seconds

    def get(self, cache_key: str) -> Optional[Any]:
        """
        Return the cached value for ``cache_key``, or None if missing or expired.
        """
        entry = self._cache.get(cache_key)
        if entry is None:
            return None

        stored_at, result = entry
        if time.monotonic() - stored_at < self._ttl_seconds:
            logger.debug("[CACHE] Hit for key: %s", cache_key)
            return result

        del self._cache[cache_key]
        logger.debug("[CACHE] Expired key: %s", cache_key)
        return None

    def set(self, cache_key: str, result: Any) -> None:
        """Cache ``result`` under ``cache_key`` starting now."""
        self._cache[cache_key] = (time.monotonic(), result)

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """
        Drop entries whose key starts with ``prefix``, or everything if None.

        Returns:
            Number of entries invalidated
        """
        if prefix is None:
            count = len(self._cache)
            self._cache.clear()
            logger.debug("[CACHE] Cleared all %d entries", count)
            return count

        keys_to_delete = [key for key in self._cache if key.startswith(prefix)]
        for key in keys_to_delete:
            del self._cache[key]
        if keys_to_delete:
            logger.debug("[CACHE] Cleared %d entries starting with '%s'", len(keys_to_delete), prefix)
        return len(keys_to_delete)

    def get_db_cache_stats(self) -> Dict[str, int]:
        return {
            "size": len(self._cache),
            "ttl_seconds": self._ttl_seconds,
        }
