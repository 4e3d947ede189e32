"""
Timing of case store operations.

Every CaseService call reports its duration here so slow lookups (usually a
missing index or a guild with an unusually long history) show up in the log.
"""

import time
from contextlib import contextmanager
from typing import Dict, Iterator

from casebook.util.logger import get_logger

logger = get_logger("database_perf_mon")


class DatabasePerformanceMonitor:
    """
    Per-operation count, total, min and max durations.

    Durations are in seconds; anything above the slow threshold is logged
    as a warning when it is recorded.
    """

    def __init__(self, slow_query_threshold_ms: float = 100.0):
        self._query_stats: Dict[str, Dict[str, float]] = {}
        self._slow_query_threshold = slow_query_threshold_ms / 1000.0

    def track(self, query_name: str, duration: float) -> None:
        """Record one execution of ``query_name`` that took ``duration`` seconds."""
        stats = self._query_stats.setdefault(query_name, {
            "count": 0,
            "total_time": 0.0,
            "min_time": float("inf"),
            "max_time": 0.0,
        })
        stats["count"] += 1
        stats["total_time"] += duration
        stats["min_time"] = min(stats["min_time"], duration)
        stats["max_time"] = max(stats["max_time"], duration)

        if duration > self._slow_query_threshold:
            logger.warning("[PERFORMANCE] Slow case query: %s took %.2fms", query_name, duration * 1000)

    @contextmanager
    def timed(self, query_name: str) -> Iterator[None]:
        """Context manager that tracks the wall time of its body, even when it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.track(query_name, time.perf_counter() - start)

    def get_statistics(self) -> Dict[str, Dict[str, float]]:
        """Return per-operation statistics including the average time."""
        return {
            query_name: {
                "count": stats["count"],
                "total_time": stats["total_time"],
                "avg_time": stats["total_time"] / stats["count"] if stats["count"] else 0.0,
                "min_time": stats["min_time"] if stats["min_time"] != float("inf") else 0.0,
                "max_time": stats["max_time"],
            }
            for query_name, stats in self._query_stats.items()
        }

    def reset(self) -> None:
        """Reset all performance statistics."""
        self._query_stats.clear()
        logger.info("[PERFORMANCE] Statistics reset")

    def get_summary(self) -> str:
        """Human-readable summary, one block per operation."""
        stats = self.get_statistics()
        if not stats:
            return "No case queries tracked yet"

        lines = ["Case Store Performance Summary:", "=" * 50]
        for query_name, query_stats in sorted(stats.items()):
            lines.append(
                f"{query_name}:\n"
                f"  Count: {query_stats['count']}\n"
                f"  Avg: {query_stats['avg_time']*1000:.2f}ms\n"
                f"  Max: {query_stats['max_time']*1000:.2f}ms"
            )
        return "\n".join(lines)
