"""Rich rendering of harness state, shared by the ``run`` and ``shell`` commands."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.table import Table

from loadknob._internal.logging import get_logger

if TYPE_CHECKING:
    from loadknob.metrics.models import HarnessState

logger = get_logger("cli.display")


def install_uvloop() -> None:
    """Use uvloop for the event loop when it is installed (not on Windows)."""
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def make_state_table(state: HarnessState, *, title: str | None = None) -> Table:
    """Build the knobs-and-counters table the operator watches.

    Args:
        state: Harness state to render.
        title: Optional table title.

    Returns:
        Formatted Rich Table.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    status = "[green]running[/green]" if state.running else "[red]stopped[/red]"
    locked = " (locked while running)" if state.running else ""

    table.add_row("Status", status)
    table.add_row("Delay", f"{state.delay_ms}ms")
    table.add_row("Workers", f"{state.worker_count}{locked}")
    table.add_row("URI", f"{state.target_uri}{locked}")
    table.add_row("Calls", str(state.call_count))
    table.add_row("Errors", str(state.error_count))
    table.add_row("Responses", str(state.response_count))
    table.add_row("In Flight", str(state.in_flight))
    table.add_row("Active Workers", str(state.active_workers))
    table.add_row("p50 Latency", f"{state.latency.p50:.1f}ms")
    table.add_row("p95 Latency", f"{state.latency.p95:.1f}ms")
    table.add_row("Max Latency", f"{state.latency.max:.1f}ms")

    return table
