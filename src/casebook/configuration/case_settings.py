from typing import Any, Dict


class CaseSettings:
    """Typed accessors for the ``cases`` section of the app configuration.

    Mirrors the raw mapping and only coerces values on access, so a
    malformed entry falls back to its default instead of failing at load
    time.
    """

    DEFAULT_MAX_ATTEMPTS = 50
    DEFAULT_CREATE_ATTEMPTS = 3
    DEFAULT_MAX_PAGE_SIZE = 25
    DEFAULT_STATS_CACHE_TTL = 60
    DEFAULT_SLOW_QUERY_MS = 100.0

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the underlying mapping."""
        return self.data

    def _positive_int(self, key: str, default: int) -> int:
        try:
            value = int(self.data.get(key, default))
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default

    @property
    def max_attempts(self) -> int:
        return self._positive_int("max_attempts", self.DEFAULT_MAX_ATTEMPTS)

    @property
    def create_attempts(self) -> int:
        return self._positive_int("create_attempts", self.DEFAULT_CREATE_ATTEMPTS)

    @property
    def max_page_size(self) -> int:
        return self._positive_int("max_page_size", self.DEFAULT_MAX_PAGE_SIZE)

    @property
    def stats_cache_ttl_seconds(self) -> int:
        return self._positive_int("stats_cache_ttl_seconds", self.DEFAULT_STATS_CACHE_TTL)

    @property
    def slow_query_threshold_ms(self) -> float:
        try:
            return float(self.data.get("slow_query_threshold_ms", self.DEFAULT_SLOW_QUERY_MS))
        except (TypeError, ValueError):
            return self.DEFAULT_SLOW_QUERY_MS
