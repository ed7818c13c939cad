"""In-memory routing telemetry: decision counters and the last routed intensity."""

from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Any, Optional

DECISIONS = "autorouter.decisions"
SWITCHES = "autorouter.switches"
AUTO_WEB_SEARCH = "autorouter.auto_web_search"
SPEC_FALLBACKS = "autorouter.spec_fallbacks"
SKIPPED = "autorouter.skipped"

# (metric name, sorted tag pairs)
SeriesKey = tuple[str, tuple[tuple[str, str], ...]]


def _series(name: str, tags: Optional[dict[str, Any]]) -> SeriesKey:
    return name, tuple(sorted((str(k), str(v)) for k, v in (tags or {}).items()))


class RoutingMetrics:
    """Thread-safe counters for routing outcomes, plus the latest intensity per intent."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counts: Counter[SeriesKey] = Counter()
        self._intensity: dict[str, float] = {}

    def incr(self, name: str, count: int = 1, tags: Optional[dict[str, Any]] = None) -> None:
        with self._lock:
            self._counts[_series(name, tags)] += count

    def count(self, name: str, tags: Optional[dict[str, Any]] = None) -> int:
        """Counter value; without tags, the total across every tag set."""
        with self._lock:
            if tags is None:
                return sum(value for (series, _), value in self._counts.items() if series == name)
            return self._counts[_series(name, tags)]

    def intensity(self, intent: str) -> Optional[float]:
        """Gauge intensity recorded by the latest decision for ``intent``."""
        with self._lock:
            return self._intensity.get(intent)

    def record_decision(self, spec: str, intent: str, intensity: float, switched: bool, auto_web_search: bool) -> None:
        self.incr(DECISIONS, tags={"spec": spec, "intent": intent})
        with self._lock:
            self._intensity[intent] = intensity
        if switched:
            self.incr(SWITCHES, tags={"intent": intent})
        if auto_web_search:
            self.incr(AUTO_WEB_SEARCH)

    def record_skip(self, reason: str) -> None:
        self.incr(SKIPPED, tags={"reason": reason})

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._intensity.clear()


_metrics: RoutingMetrics | None = None


def get_metrics() -> RoutingMetrics:
    """Get the global routing metrics."""
    global _metrics
    if _metrics is None:
        _metrics = RoutingMetrics()
    return _metrics
