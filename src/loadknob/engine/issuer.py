"""Request issuer: cache-busts a URI, fetches it and records the outcome."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from loadknob._internal.logging import get_logger
from loadknob.engine.protocol import Outcome

if TYPE_CHECKING:
    from loadknob._internal.types import FetchJson
    from loadknob.metrics.stats import StatsAggregator

logger = get_logger("engine.issuer")


def cache_bust(uri: str, now_ms: int | None = None) -> str:
    """Append a ``t=<epoch millis>`` query parameter to *uri*.

    Args:
        uri: URI that may or may not already carry a query string.
        now_ms: Timestamp to use instead of the current time.

    Returns:
        The URI with ``?t=...`` or ``&t=...`` appended.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    sep = "&" if "?" in uri else "?"
    return f"{uri}{sep}t={now_ms}"


class RequestIssuer:
    """Wraps the fetch capability for the workers.

    Every call to :meth:`issue` records exactly one outcome into the
    aggregator, on completion. The number of requests sent but not yet
    completed is tracked in :attr:`in_flight`.
    """

    def __init__(self, fetch: FetchJson, stats: StatsAggregator) -> None:
        self._fetch = fetch
        self._stats = stats
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Requests sent whose outcome has not been recorded yet."""
        return self._in_flight

    async def issue(self, uri: str) -> Outcome:
        """GET a cache-busted *uri* and record the outcome.

        A fetch capability that raises instead of returning a failure is
        treated as a failed request. Cancellation propagates unrecorded.

        Args:
            uri: Target URI, without cache-busting parameter.

        Returns:
            The recorded outcome.
        """
        url = cache_bust(uri)
        self._in_flight += 1
        start = time.monotonic()
        try:
            outcome = await self._fetch(url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Fetch of %s raised", url, exc_info=True)
            outcome = Outcome.failure(
                f"{type(exc).__name__}: {exc}",
                (time.monotonic() - start) * 1000,
            )
        finally:
            self._in_flight -= 1

        if outcome.latency_ms is None:
            outcome = Outcome(
                ok=outcome.ok,
                payload=outcome.payload,
                latency_ms=(time.monotonic() - start) * 1000,
            )

        self._stats.record(outcome)
        if not outcome.ok:
            logger.debug("Request to %s failed: %r", url, outcome.payload)
        return outcome
