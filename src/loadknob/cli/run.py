"""``loadknob run``: drive workers for a fixed duration with live terminal output."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import signal
import sys
import time
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel

from loadknob._internal.config import load_config
from loadknob._internal.errors import LoadKnobError
from loadknob._internal.logging import get_logger, setup_logging
from loadknob.cli.display import install_uvloop, make_state_table
from loadknob.engine.harness import Harness

if TYPE_CHECKING:
    from loadknob._internal.config import ClientConfig, HarnessConfig
    from loadknob.metrics.models import HarnessState

console = Console(stderr=True)
logger = get_logger("cli.run")

_REFRESH_SECONDS = 0.5


async def _drive(
    config: HarnessConfig,
    client_config: ClientConfig,
    duration: float,
    *,
    drain: bool,
    drain_timeout: float,
) -> HarnessState:
    """Start, let workers run for *duration*, stop, optionally drain.

    SIGINT/SIGTERM end the run early, the same way the duration does.
    """
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_requested.set)

    try:
        async with Harness(config, client_config=client_config) as harness:
            harness.start()
            deadline = time.monotonic() + duration

            with Live(
                make_state_table(harness.state()),
                console=console,
                refresh_per_second=2,
                transient=True,
            ) as live:
                while not stop_requested.is_set():
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    try:
                        await asyncio.wait_for(
                            stop_requested.wait(),
                            timeout=min(_REFRESH_SECONDS, remaining),
                        )
                    except TimeoutError:
                        pass
                    live.update(make_state_table(harness.state()))

                harness.stop()

                if drain:
                    drained = await harness.wait_idle(timeout=drain_timeout)
                    if not drained:
                        logger.warning(
                            "Drain timed out with %d request(s) still in flight",
                            harness.in_flight,
                        )
                    live.update(make_state_table(harness.state()))

            return harness.report()
    finally:
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)


def run_cmd(
    uri: str | None = typer.Argument(
        None,
        help="JSON endpoint to GET (absolute, or relative to --base-url).",
    ),
    delay: int | None = typer.Option(
        None,
        "--delay",
        "-d",
        help="Milliseconds each worker waits before every request (100-10000).",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of concurrent workers (1-20).",
    ),
    duration: float = typer.Option(
        10.0,
        "--duration",
        "-t",
        help="Seconds to keep workers issuing requests.",
        min=0.1,
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Base URL for relative URIs.",
    ),
    limit_per_host: int | None = typer.Option(
        None,
        "--limit-per-host",
        help="Max concurrent connections per host (0 = unlimited).",
        min=0,
    ),
    drain: bool = typer.Option(
        True,
        "--drain/--no-drain",
        help="After stopping, wait for in-flight requests to complete.",
    ),
    drain_timeout: float = typer.Option(
        30.0,
        "--drain-timeout",
        help="Maximum seconds to wait while draining.",
        min=0.0,
    ),
    fail_on_error_rate: float | None = typer.Option(
        None,
        "--fail-on-error-rate",
        help="Exit non-zero if error rate exceeds this threshold (e.g., 0.05).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as one JSON object per line.",
    ),
) -> None:
    """Run paced GET workers against one endpoint and print the counters."""
    setup_logging(level=logging.DEBUG if verbose else logging.INFO, json_format=json_logs)

    try:
        config, client_config = load_config()
        overrides: dict[str, object] = {}
        if uri is not None:
            overrides["target_uri"] = uri
        if delay is not None:
            overrides["delay_ms"] = delay
        if workers is not None:
            overrides["worker_count"] = workers
        config = dataclasses.replace(config, **overrides)

        client_overrides: dict[str, object] = {}
        if base_url is not None:
            client_overrides["base_url"] = base_url
        if limit_per_host is not None:
            client_overrides["limit_per_host"] = limit_per_host
        client_config = dataclasses.replace(client_config, **client_overrides)
    except LoadKnobError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]URI:[/bold]      {config.target_uri}\n"
            f"[bold]Base URL:[/bold] {client_config.base_url}\n"
            f"[bold]Workers:[/bold]  {config.worker_count}\n"
            f"[bold]Delay:[/bold]    {config.delay_ms}ms\n"
            f"[bold]Duration:[/bold] {duration}s",
            title="loadknob",
            border_style="cyan",
        )
    )

    install_uvloop()
    try:
        state = asyncio.run(
            _drive(config, client_config, duration, drain=drain, drain_timeout=drain_timeout)
        )
    except LoadKnobError as exc:
        console.print(f"[red]Run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(make_state_table(state, title="Run Complete"))

    error_rate = state.error_count / state.call_count if state.call_count else 0.0
    if fail_on_error_rate is not None and error_rate > fail_on_error_rate:
        console.print(
            f"[red]FAIL:[/red] Error rate {error_rate * 100:.2f}% "
            f"exceeds threshold {fail_on_error_rate * 100:.2f}%"
        )
        raise typer.Exit(code=1)

    console.print("[green]Run completed.[/green]")
