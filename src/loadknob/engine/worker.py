"""Worker loop: wait, check the run flag, issue one request, repeat."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loadknob._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadknob.engine.issuer import RequestIssuer

logger = get_logger("engine.worker")


async def run_worker(
    worker_id: int,
    issuer: RequestIssuer,
    *,
    delay_ms: Callable[[], int],
    target_uri: Callable[[], str],
    should_continue: Callable[[], bool],
) -> int:
    """Run one worker until it finds it should no longer continue.

    The delay and the target are read through callables on every cycle,
    so a delay change made while running applies to the very next wait.
    The stop signal is polled once per cycle, right after waking: a stop
    never interrupts the current wait or the request in flight.

    Args:
        worker_id: Identifier used in log messages.
        issuer: Issuer that performs and records each request.
        delay_ms: Returns the current pacing delay in milliseconds.
        target_uri: Returns the URI to request.
        should_continue: Returns False once this worker must exit.

    Returns:
        Number of requests this worker issued.
    """
    issued = 0
    logger.debug("Worker %d started", worker_id)

    while True:
        await asyncio.sleep(delay_ms() / 1000)
        if not should_continue():
            break
        await issuer.issue(target_uri())
        issued += 1

    logger.debug("Worker %d exiting after %d requests", worker_id, issued)
    return issued
