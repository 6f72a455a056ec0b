from __future__ import annotations

from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any


@dataclass
class MetricAggregate:
    count: int = 0
    total: float = 0.0
    min: float = 0.0
    max: float = 0.0
    sum_of_squares: float = 0.0

    def observe(self, value: float) -> None:
        value = float(value)
        if self.count == 0 or value < self.min:
            self.min = value
        if self.count == 0 or value > self.max:
            self.max = value
        self.count += 1
        self.total += value
        self.sum_of_squares += value * value


class MetricTable:
    """Thread-safe, process-local metric aggregates between harvests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._metrics: dict[str, MetricAggregate] = {}

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            agg = self._metrics.get(name)
            if agg is None:
                agg = self._metrics[name] = MetricAggregate()
            agg.observe(value)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {name: asdict(agg) for name, agg in sorted(self._metrics.items())}

    def drain(self) -> dict[str, dict[str, Any]]:
        """Return the current aggregates and start a fresh table."""

        with self._lock:
            drained = {name: asdict(agg) for name, agg in sorted(self._metrics.items())}
            self._metrics = {}
            return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
