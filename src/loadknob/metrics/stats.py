"""Thread-safe aggregation of request outcomes."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import numpy as np

from loadknob._internal.logging import get_logger
from loadknob.metrics.models import LatencySummary, StatsSnapshot

if TYPE_CHECKING:
    from loadknob.engine.protocol import Outcome

logger = get_logger("metrics.stats")


def _summarize(latencies: list[float]) -> LatencySummary:
    """Compute avg/p50/p95/p99/max over *latencies* (milliseconds)."""
    if not latencies:
        return LatencySummary()

    arr = np.array(latencies, dtype=np.float64)
    p50, p95, p99 = np.percentile(arr, [50.0, 95.0, 99.0])

    return LatencySummary(
        count=len(latencies),
        avg=float(np.mean(arr)),
        p50=float(p50),
        p95=float(p95),
        p99=float(p99),
        max=float(np.max(arr)),
    )


class StatsAggregator:
    """Shared counters and response log fed by every worker.

    All mutation happens inside :meth:`record` and :meth:`reset`, each of
    which holds one ``threading.Lock`` for the whole update. A reader can
    therefore never observe an error counted without its response, or a
    response appended without its call.

    Invariants, at every instant:
        - ``error_count <= call_count``
        - ``len(responses) == call_count``
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._call_count = 0
        self._error_count = 0
        self._responses: list[Any] = []
        self._latencies: list[float] = []

    def record(self, outcome: Outcome) -> None:
        """Fold one completed outcome into the stats.

        Args:
            outcome: Success or failure of a finished request.
        """
        with self._lock:
            self._call_count += 1
            if not outcome.ok:
                self._error_count += 1
            self._responses.append(outcome.payload)
            if outcome.latency_ms is not None:
                self._latencies.append(outcome.latency_ms)

    def snapshot(self) -> StatsSnapshot:
        """Return an immutable, internally consistent copy of the stats."""
        with self._lock:
            return StatsSnapshot(
                call_count=self._call_count,
                error_count=self._error_count,
                responses=tuple(self._responses),
                latencies_ms=tuple(self._latencies),
            )

    def counts(self) -> tuple[int, int, int]:
        """Return ``(call_count, error_count, response_count)`` without copying."""
        with self._lock:
            return self._call_count, self._error_count, len(self._responses)

    def latency_summary(self) -> LatencySummary:
        """Summarize latencies of all completed, timed requests."""
        with self._lock:
            latencies = list(self._latencies)
        return _summarize(latencies)

    def reset(self) -> None:
        """Drop all counters and recorded responses."""
        with self._lock:
            self._call_count = 0
            self._error_count = 0
            self._responses = []
            self._latencies = []
        logger.debug("Stats cleared")

    def __len__(self) -> int:
        """Return the number of recorded responses."""
        with self._lock:
            return len(self._responses)
