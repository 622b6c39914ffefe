"""Shared test fixtures for the loadknob test suite."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from loadknob.engine.protocol import Outcome

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _detach_loadknob_handlers() -> Iterator[None]:
    """Undo setup_logging() after each test.

    The CLI binds a handler to whatever sys.stderr is at the time, which
    under CliRunner is a buffer that gets closed afterwards.
    """
    yield
    logger = logging.getLogger("loadknob")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Fake fetch capabilities
# =============================================================================


class FakeFetch:
    """Scripted fetch capability that records every URI it is asked for.

    Attributes:
        uris: Every URI requested, cache-busting parameter included.
        concurrent: Requests currently awaiting completion.
        max_concurrent: Highest value ``concurrent`` has reached.
    """

    def __init__(self, outcome: Outcome, latency: float = 0.005) -> None:
        self.outcome = outcome
        self.latency = latency
        self.uris: list[str] = []
        self.concurrent = 0
        self.max_concurrent = 0

    async def __call__(self, uri: str) -> Outcome:
        self.uris.append(uri)
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            await asyncio.sleep(self.latency)
        finally:
            self.concurrent -= 1
        return self.outcome


@pytest.fixture
def ok_fetch() -> FakeFetch:
    """Fetch that answers ``{"x": 1}`` after 5ms."""
    return FakeFetch(Outcome.success({"x": 1}))


@pytest.fixture
def failing_fetch() -> FakeFetch:
    """Fetch that fails with ``"boom"`` after 5ms."""
    return FakeFetch(Outcome.failure("boom"))


@pytest.fixture
def make_fetch() -> Callable[..., FakeFetch]:
    """Factory for fetches with a custom outcome or latency."""
    return FakeFetch


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# JSON HTTP server handlers
# =============================================================================


async def _sample_handler(request: web.Request) -> web.Response:
    """Return a small JSON document echoing the query string."""
    return web.json_response({"x": 1, "query": dict(request.query)})


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _malformed_handler(request: web.Request) -> web.Response:
    """Return 200 with a body that is not JSON."""
    return web.Response(text="<html>not json</html>", content_type="text/html")


async def _bad_utf8_handler(request: web.Request) -> web.Response:
    """Return a JSON-typed body that is not valid UTF-8 (query param: ?status=200)."""
    status = int(request.query.get("status", "200"))
    return web.Response(
        body=b'{"x": "\xff\xfe"}',
        status=status,
        content_type="application/json",
        charset="utf-8",
    )


def _create_json_app() -> web.Application:
    """Build the test server app with all routes."""
    app = web.Application()
    app.router.add_get("/sample.json", _sample_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_get("/error", _error_handler)
    app.router.add_get("/malformed", _malformed_handler)
    app.router.add_get("/badutf8", _bad_utf8_handler)
    return app


# =============================================================================
# Server fixtures
# =============================================================================


@pytest.fixture
async def json_server() -> AsyncIterator[str]:
    """aiohttp JSON server on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    app = _create_json_app()
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_json_server() -> Iterator[str]:
    """JSON server running in a background thread for sync tests.

    Needed by CLI tests, where the command under test runs its own
    event loop and blocks the main thread.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_json_app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* every 10ms until it holds or *timeout* elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            msg = "condition not met in time"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Return an async poller: ``await wait_until(lambda: cond, timeout=2.0)``."""
    return _wait_until
