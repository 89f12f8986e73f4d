"""Running cost and latency counters per (route type, model)."""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone

from llmrouter.models import PerformanceStats


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class PerformanceTracker:
    def __init__(self) -> None:
        self._stats: dict[str, PerformanceStats] = {}
        self._daily_cost: dict[str, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(route_type: str, model: str) -> str:
        return f"{route_type}:{model}"

    def record(self, route_type: str, model: str, latency: float, cost: float) -> PerformanceStats:
        """Add one completed request; averages are recomputed from the cumulative sums."""
        key = self.key(route_type, model)
        with self._lock:
            stats = self._stats.get(key) or PerformanceStats()
            count = stats.count + 1
            total_latency = stats.total_latency + latency
            total_cost = stats.total_cost + cost
            updated = PerformanceStats(
                count=count,
                total_latency=total_latency,
                total_cost=total_cost,
                avg_latency=total_latency / count,
                avg_cost=total_cost / count,
            )
            self._stats[key] = updated
            day = _today()
            self._daily_cost[day] = self._daily_cost.get(day, 0.0) + cost
        return updated

    def get(self, route_type: str, model: str) -> PerformanceStats | None:
        with self._lock:
            return self._stats.get(self.key(route_type, model))

    def daily_cost(self, day: date | str | None = None) -> float:
        if day is None:
            day = _today()
        elif isinstance(day, date):
            day = day.isoformat()
        with self._lock:
            return self._daily_cost.get(day, 0.0)

    def total_requests(self) -> int:
        with self._lock:
            return sum(s.count for s in self._stats.values())

    def snapshot(self) -> dict[str, PerformanceStats]:
        with self._lock:
            return dict(self._stats)
