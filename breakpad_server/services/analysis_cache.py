"""Process-wide cache of minidump stack traces."""

import logging
import threading

from prometheus_client import Counter

from breakpad_server.utils.cache import KeyValueCache

logger = logging.getLogger(__name__)

ANALYSIS_CACHE_LOOKUPS_TOTAL = Counter(
    "breakpad_analysis_cache_lookups_total",
    "Stack trace cache lookups",
    ["result"],
)


class AnalysisCache:
    """Caches stack-trace text per crash report id.

    A trace depends on the symbol files present when it was computed, so
    every symbol change clears the cache. Each clear advances a generation
    counter: a caller captures the generation before running the analyzer
    and passes it to put(), and a put for an older generation is dropped.
    This keeps an analysis that overlapped a clear from repopulating the
    cache with a trace computed against the previous symbols.
    """

    def __init__(self, max_entries: int | None = None, ttl_seconds: float | None = None) -> None:
        self._cache = KeyValueCache(max_entries=max_entries, ttl_seconds=ttl_seconds)
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, report_id: int) -> str | None:
        trace = self._cache.get(report_id)
        ANALYSIS_CACHE_LOOKUPS_TOTAL.labels(result="hit" if trace is not None else "miss").inc()
        return trace

    def put(self, report_id: int, trace: str, generation: int | None = None) -> bool:
        """Store a trace. Returns False if it was dropped as stale."""
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(
                    "Dropping stack trace for report %d computed at generation %d (now %d)",
                    report_id,
                    generation,
                    self._generation,
                )
                return False
            self._cache.set(report_id, trace)
            return True

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache.clear()
        logger.info("Stack trace cache cleared")

    def __len__(self) -> int:
        return len(self._cache)
