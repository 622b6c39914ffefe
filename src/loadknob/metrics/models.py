"""Snapshot dataclasses read by the presentation layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

__all__ = [
    "HarnessState",
    "LatencySummary",
    "StatsSnapshot",
]


@dataclass(frozen=True)
class LatencySummary:
    """Latency distribution of completed requests, in milliseconds.

    All fields are 0.0 when nothing has completed yet.
    """

    count: int = 0
    avg: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class StatsSnapshot:
    """A consistent copy of the aggregated stats.

    Attributes:
        call_count: Completed round-trips, successful or not.
        error_count: Completed round-trips that failed.
        responses: Payload of every completed request, in arrival order.
        latencies_ms: Latency of every completed request that was timed.
    """

    call_count: int = 0
    error_count: int = 0
    responses: tuple[Any, ...] = ()
    latencies_ms: tuple[float, ...] = ()

    @property
    def response_count(self) -> int:
        return len(self.responses)

    @property
    def error_rate(self) -> float:
        return self.error_count / self.call_count if self.call_count else 0.0


@dataclass(frozen=True)
class HarnessState:
    """Everything the presentation layer shows, read in one go.

    Attributes:
        delay_ms: Current pacing delay.
        worker_count: Workers spawned per ``start``.
        target_uri: Endpoint being requested.
        running: Whether workers keep issuing new requests.
        call_count: Completed requests.
        error_count: Failed requests.
        response_count: Recorded payloads (always equals ``call_count``).
        in_flight: Requests sent but not yet completed.
        active_workers: Worker loops that have not terminated yet.
        latency: Latency summary over all completed requests.
        responses: Recorded payloads, only filled in when asked for.
    """

    delay_ms: int
    worker_count: int
    target_uri: str
    running: bool
    call_count: int
    error_count: int
    response_count: int
    in_flight: int
    active_workers: int
    latency: LatencySummary = field(default_factory=LatencySummary)
    responses: tuple[Any, ...] | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return a plain dict, dropping ``responses`` when not captured."""
        data = asdict(self)
        if self.responses is None:
            del data["responses"]
        else:
            data["responses"] = list(self.responses)
        return data
