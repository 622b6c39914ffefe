"""Tests for cache busting and the RequestIssuer."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from loadknob.engine.issuer import RequestIssuer, cache_bust
from loadknob.engine.protocol import Outcome
from loadknob.metrics.stats import StatsAggregator

if TYPE_CHECKING:
    from collections.abc import Callable


class TestCacheBust:
    def test_appends_query_string(self):
        assert cache_bust("/sample.json", now_ms=1234) == "/sample.json?t=1234"

    def test_extends_existing_query_string(self):
        assert cache_bust("/error?status=500", now_ms=99) == "/error?status=500&t=99"

    def test_defaults_to_current_time(self):
        first = cache_bust("/a")
        assert first.startswith("/a?t=")
        assert int(first.split("=")[1]) > 1_600_000_000_000


class TestOutcome:
    def test_constructors_tag_the_outcome(self):
        assert Outcome.success({"x": 1}).ok is True
        assert Outcome.failure("boom").ok is False
        assert Outcome.failure("boom", latency_ms=3.0).latency_ms == 3.0


class TestRequestIssuer:
    async def test_issue_records_success_once(self, ok_fetch) -> None:
        stats = StatsAggregator()
        issuer = RequestIssuer(ok_fetch, stats)

        outcome = await issuer.issue("/ok.json")

        assert outcome.ok
        assert outcome.payload == {"x": 1}
        assert stats.counts() == (1, 0, 1)

    async def test_issue_records_failure(self, failing_fetch) -> None:
        stats = StatsAggregator()
        issuer = RequestIssuer(failing_fetch, stats)

        outcome = await issuer.issue("/ok.json")

        assert not outcome.ok
        assert stats.snapshot().responses == ("boom",)
        assert stats.counts() == (1, 1, 1)

    async def test_fetch_receives_cache_busted_uri(self, ok_fetch) -> None:
        issuer = RequestIssuer(ok_fetch, StatsAggregator())
        await issuer.issue("/ok.json")
        await issuer.issue("/ok.json?a=1")
        assert ok_fetch.uris[0].startswith("/ok.json?t=")
        assert ok_fetch.uris[1].startswith("/ok.json?a=1&t=")

    async def test_latency_is_filled_in_when_fetch_omits_it(self, ok_fetch) -> None:
        stats = StatsAggregator()
        outcome = await RequestIssuer(ok_fetch, stats).issue("/ok.json")
        assert outcome.latency_ms is not None
        assert outcome.latency_ms >= 0
        assert len(stats.snapshot().latencies_ms) == 1

    async def test_raising_fetch_becomes_failure(self) -> None:
        async def _explode(uri: str) -> Outcome:
            raise ConnectionResetError("peer went away")

        stats = StatsAggregator()
        outcome = await RequestIssuer(_explode, stats).issue("/x")

        assert not outcome.ok
        assert outcome.payload == "ConnectionResetError: peer went away"
        assert stats.counts() == (1, 1, 1)

    async def test_call_is_counted_on_completion_not_send(
        self, make_fetch: Callable[..., object]
    ) -> None:
        fetch = make_fetch(Outcome.success(1), latency=0.1)
        stats = StatsAggregator()
        issuer = RequestIssuer(fetch, stats)

        task = asyncio.create_task(issuer.issue("/slow"))
        await asyncio.sleep(0.02)
        assert issuer.in_flight == 1
        assert stats.counts() == (0, 0, 0)

        await task
        assert issuer.in_flight == 0
        assert stats.counts() == (1, 0, 1)

    async def test_cancellation_propagates_unrecorded(
        self, make_fetch: Callable[..., object]
    ) -> None:
        fetch = make_fetch(Outcome.success(1), latency=1.0)
        stats = StatsAggregator()
        issuer = RequestIssuer(fetch, stats)

        task = asyncio.create_task(issuer.issue("/slow"))
        await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert issuer.in_flight == 0
        assert stats.counts() == (0, 0, 0)
