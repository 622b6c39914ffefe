"""The harness: owns the knobs, the run flag, the stats and the workers."""

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING

from loadknob._internal.config import (
    ConfigField,
    HarnessConfig,
    coerce_int,
    validate_delay,
    validate_target_uri,
    validate_worker_count,
)
from loadknob._internal.errors import ConfigError, EngineError
from loadknob._internal.logging import get_logger
from loadknob.engine.issuer import RequestIssuer
from loadknob.engine.worker import run_worker
from loadknob.metrics.models import HarnessState
from loadknob.metrics.stats import StatsAggregator
from loadknob.transport.client import JsonClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadknob._internal.config import ClientConfig
    from loadknob._internal.types import FetchJson

logger = get_logger("engine.harness")


class Harness:
    """Start/stop/reset controller for a pool of paced GET workers.

    ``start()`` spawns ``worker_count`` worker tasks on the running event
    loop. Each worker sleeps ``delay_ms``, checks the run flag and, if
    still running, issues one request and records its outcome. ``stop()``
    only clears the flag: workers finish their current wait or request and
    exit the next time they look. Requests already sent always complete
    and are always counted.

    Every ``start()`` and ``reset()`` opens a new run generation. Workers
    belonging to an older generation exit on their next wake even if the
    harness has been started again meanwhile, so a quick stop/start never
    leaves more than ``worker_count`` loops issuing requests for the run.

    Without an injected ``fetch`` capability the harness talks HTTP via its
    own :class:`JsonClient`, which needs ``async with Harness(...)``.

    Attributes:
        stats: Shared aggregator fed by every worker.
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        *,
        fetch: FetchJson | None = None,
        client_config: ClientConfig | None = None,
        on_reset: Callable[[], None] | None = None,
    ) -> None:
        """Initialize a stopped harness.

        Args:
            config: Initial knobs. Defaults to ``HarnessConfig()``.
            fetch: Fetch capability to use instead of an HTTP client.
            client_config: Settings for the owned HTTP client. Ignored
                when ``fetch`` is given.
            on_reset: Called after every ``reset()``, e.g. to clear a
                presentation log.
        """
        self._config = config or HarnessConfig()
        self._running = False
        self._generation = 0
        self._on_reset = on_reset

        self._client: JsonClient | None = None
        if fetch is None:
            self._client = JsonClient(client_config)
            fetch = self._client.fetch_json

        self.stats = StatsAggregator()
        self._issuer = RequestIssuer(fetch, self.stats)
        self._tasks: set[asyncio.Task[int]] = set()
        self._next_worker_id = 0

    async def __aenter__(self) -> Harness:
        if self._client is not None:
            await self._client.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.aclose()

    # -- read access ---------------------------------------------------------

    @property
    def config(self) -> HarnessConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_workers(self) -> int:
        """Worker loops, of any generation, that have not terminated."""
        return sum(1 for t in self._tasks if not t.done())

    @property
    def in_flight(self) -> int:
        return self._issuer.in_flight

    def state(self, *, include_responses: bool = False) -> HarnessState:
        """Return everything a presentation layer displays.

        Args:
            include_responses: Also copy the recorded payloads.
        """
        if include_responses:
            snap = self.stats.snapshot()
            calls, errors, response_count = snap.call_count, snap.error_count, snap.response_count
            responses: tuple[object, ...] | None = snap.responses
        else:
            calls, errors, response_count = self.stats.counts()
            responses = None

        config = self._config
        return HarnessState(
            delay_ms=config.delay_ms,
            worker_count=config.worker_count,
            target_uri=config.target_uri,
            running=self._running,
            call_count=calls,
            error_count=errors,
            response_count=response_count,
            in_flight=self._issuer.in_flight,
            active_workers=self.active_workers,
            latency=self.stats.latency_summary(),
            responses=responses,
        )

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Set the run flag and spawn ``worker_count`` workers.

        Does not block and does not reset stats. Calling it while already
        running is a no-op.

        Raises:
            EngineError: If there is no running event loop, or the owned
                HTTP client has not been opened with ``async with``.
        """
        if self._running:
            logger.warning("start() ignored: harness already running")
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            msg = "Harness.start() must be called from a running event loop"
            raise EngineError(msg) from None

        if self._client is not None and self._client.closed:
            msg = "Harness must be entered with 'async with' before start()"
            raise EngineError(msg)

        self._generation += 1
        self._running = True
        generation = self._generation
        count = self._config.worker_count

        for _ in range(count):
            worker_id = self._next_worker_id
            self._next_worker_id += 1
            task = asyncio.create_task(
                run_worker(
                    worker_id,
                    self._issuer,
                    delay_ms=lambda: self._config.delay_ms,
                    target_uri=lambda: self._config.target_uri,
                    should_continue=lambda: self._running and self._generation == generation,
                ),
                name=f"loadknob-worker-{worker_id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._on_worker_done)

        logger.info(
            "Started: workers=%d, delay=%dms, uri=%s",
            count,
            self._config.delay_ms,
            self._config.target_uri,
        )

    def stop(self) -> None:
        """Clear the run flag; in-flight waits and requests still complete."""
        if not self._running:
            return
        self._running = False
        logger.info(
            "Stopped: %d worker(s) will exit on next wake, %d request(s) in flight",
            self.active_workers,
            self._issuer.in_flight,
        )

    def reset(self) -> None:
        """Stop and restore default knobs and empty stats.

        Safe in any state. If called while running, a request that is
        already in flight still completes and is recorded into the fresh
        stats; at most one such request per pre-reset worker.
        """
        self._running = False
        self._generation += 1
        self._config = HarnessConfig()
        self.stats.reset()
        logger.info("Reset to defaults")
        if self._on_reset is not None:
            self._on_reset()

    def report(self, *, include_responses: bool = False) -> HarnessState:
        """Log the full current state to the diagnostic log and return it."""
        state = self.state(include_responses=include_responses)
        logger.info("Harness state", extra={"state": state.as_dict()})
        return state

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for every spawned worker to terminate.

        Nothing is cancelled: this only waits for workers that have
        observed the stop. Returns immediately if none are alive.

        Args:
            timeout: Maximum seconds to wait, or None to wait indefinitely.

        Returns:
            True if all workers terminated within the timeout.
        """
        pending = [t for t in self._tasks if not t.done()]
        if not pending:
            return True
        _done, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending

    async def aclose(self) -> None:
        """Stop, cancel any remaining workers and close the owned client."""
        self.stop()
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending, timeout=2.0)
        self._tasks.clear()
        if self._client is not None:
            await self._client.aclose()
        logger.debug("Harness closed")

    # -- configuration -------------------------------------------------------

    def set_delay(self, delay_ms: int) -> None:
        """Change the pacing delay; allowed while running.

        Raises:
            ConfigError: If out of ``[MIN_DELAY_MS, MAX_DELAY_MS]``.
        """
        validate_delay(delay_ms)
        self._config = dataclasses.replace(self._config, delay_ms=delay_ms)
        logger.debug("delay set to %dms", delay_ms)

    def set_worker_count(self, worker_count: int) -> None:
        """Change the worker count used by the next ``start()``.

        Raises:
            ConfigError: If out of ``[MIN_WORKERS, MAX_WORKERS]``.
            EngineError: If the harness is running.
        """
        self._ensure_stopped("worker count")
        validate_worker_count(worker_count)
        self._config = dataclasses.replace(self._config, worker_count=worker_count)
        logger.debug("worker count set to %d", worker_count)

    def set_target_uri(self, target_uri: str) -> None:
        """Change the URI requested by the next ``start()``.

        Raises:
            ConfigError: If empty.
            EngineError: If the harness is running.
        """
        self._ensure_stopped("target URI")
        target_uri = validate_target_uri(target_uri)
        self._config = dataclasses.replace(self._config, target_uri=target_uri)
        logger.debug("target URI set to %s", target_uri)

    def set_config(self, field: ConfigField | str, value: object) -> None:
        """Set one knob by name, coercing form-style string input.

        Args:
            field: ``ConfigField`` or its value (``"delay"``, ``"workers"``,
                ``"uri"``).
            value: New value; numeric knobs accept integer strings.

        Raises:
            ConfigError: Unknown field or invalid value.
            EngineError: Locked field changed while running.
        """
        try:
            field = ConfigField(field)
        except ValueError:
            choices = ", ".join(f.value for f in ConfigField)
            msg = f"Unknown config field {field!r}; expected one of: {choices}"
            raise ConfigError(msg) from None

        if field is ConfigField.DELAY:
            self.set_delay(coerce_int(value, "delay_ms"))
        elif field is ConfigField.WORKERS:
            self.set_worker_count(coerce_int(value, "worker_count"))
        else:
            if not isinstance(value, str):
                msg = f"target_uri must be a string, got: {value!r}"
                raise ConfigError(msg)
            self.set_target_uri(value)

    def _ensure_stopped(self, what: str) -> None:
        if self._running:
            msg = f"Cannot change {what} while running; stop first"
            raise EngineError(msg)

    def _on_worker_done(self, task: asyncio.Task[int]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Worker %s died", task.get_name(), exc_info=exc)
