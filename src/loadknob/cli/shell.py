"""``loadknob shell``: line-oriented console with the controls of a load form.

The form had two sliders (delay, workers), a URI box, a counters table and
Start/Stop/Reset buttons; each maps to one command here. Workers and URI
are refused while running, just as the form disabled those controls.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from rich.console import Console

from loadknob._internal.config import ConfigField, load_config
from loadknob._internal.errors import LoadKnobError
from loadknob._internal.logging import get_logger, setup_logging
from loadknob.cli.display import install_uvloop, make_state_table
from loadknob.engine.harness import Harness

if TYPE_CHECKING:
    from loadknob._internal.config import ClientConfig, HarnessConfig

console = Console(stderr=True)
logger = get_logger("cli.shell")

_PROMPT = "[bold cyan]loadknob>[/bold cyan] "

HELP_TEXT = """\
[bold]start[/bold]          spawn workers and begin issuing requests
[bold]stop[/bold]           stop issuing new requests (in-flight ones still complete)
[bold]reset[/bold]          stop and restore default knobs and empty counters
[bold]report[/bold]         log the full state snapshot, every recorded response included
[bold]status[/bold]         show the counters table
[bold]drain[/bold]          wait until every stopped worker has exited
[bold]delay[/bold] N        set the per-worker delay in ms (allowed while running)
[bold]workers[/bold] N      set the worker count (only while stopped)
[bold]uri[/bold] U          set the target URI (only while stopped)
[bold]help[/bold]           show this help
[bold]quit[/bold]           stop and exit"""

_SETTERS = {
    "delay": ConfigField.DELAY,
    "workers": ConfigField.WORKERS,
    "uri": ConfigField.URI,
}
_ACTIONS = frozenset({"start", "stop", "reset", "report", "status", "drain", "help", "quit"})
_ALIASES = {"exit": "quit", "q": "quit", "?": "help"}


@dataclass(frozen=True)
class ShellCommand:
    """One parsed console line.

    Attributes:
        name: Command name, lowercased with aliases resolved.
        arg: Remainder of the line for setter commands, else None.
    """

    name: str
    arg: str | None = None


def parse_command(line: str) -> ShellCommand | None:
    """Parse a console line into a command.

    Args:
        line: Raw input line.

    Returns:
        The parsed command, or None for a blank line.

    Raises:
        typer.BadParameter: Unknown command, or a setter without a value.
    """
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return None

    name = parts[0].lower()
    name = _ALIASES.get(name, name)
    arg = parts[1].strip() if len(parts) > 1 else None

    if name in _SETTERS:
        if not arg:
            msg = f"'{name}' needs a value, e.g. '{name} {_example(name)}'"
            raise typer.BadParameter(msg)
        return ShellCommand(name, arg)
    if name in _ACTIONS:
        return ShellCommand(name)

    msg = f"Unknown command {parts[0]!r}; type 'help'"
    raise typer.BadParameter(msg)


def _example(name: str) -> str:
    return {"delay": "500", "workers": "6", "uri": "/sample.json"}[name]


async def execute(harness: Harness, command: ShellCommand) -> bool:
    """Apply one command to the harness.

    Harness errors (bad values, locked knobs) are printed and the console
    carries on.

    Returns:
        False when the console should exit, True otherwise.
    """
    name = command.name
    try:
        if name == "quit":
            return False
        if name == "help":
            console.print(HELP_TEXT)
        elif name == "start":
            harness.start()
        elif name == "stop":
            harness.stop()
        elif name == "reset":
            harness.reset()
        elif name == "report":
            harness.report(include_responses=True)
        elif name == "status":
            console.print(make_state_table(harness.state()))
        elif name == "drain":
            await harness.wait_idle()
            console.print(make_state_table(harness.state()))
        else:
            harness.set_config(_SETTERS[name], command.arg)
    except LoadKnobError as exc:
        console.print(f"[red]Error:[/red] {exc}")
    return True


def _read_line() -> asyncio.Future[str]:
    """Prompt for one line on a daemon thread.

    The reader thread is never joined, so Ctrl-C ends the shell even while
    ``input()`` is still blocked waiting for the operator.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _deliver(line: str | None, exc: Exception | None) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(line or "")

    def _reader() -> None:
        try:
            line, exc = console.input(_PROMPT), None
        except Exception as err:
            line, exc = None, err
        try:
            loop.call_soon_threadsafe(_deliver, line, exc)
        except RuntimeError:
            logger.debug("Input arrived after the shell loop closed; dropped")

    threading.Thread(target=_reader, name="loadknob-shell-input", daemon=True).start()
    return future


async def _console_loop(config: HarnessConfig, client_config: ClientConfig) -> None:
    async with Harness(config, client_config=client_config, on_reset=console.clear) as harness:
        console.print(make_state_table(harness.state(), title="loadknob"))
        console.print("Type [bold]help[/bold] for commands.")
        while True:
            try:
                line = await _read_line()
            except EOFError:
                break
            try:
                command = parse_command(line)
            except typer.BadParameter as exc:
                console.print(f"[red]Error:[/red] {exc}")
                continue
            if command is None:
                continue
            if not await execute(harness, command):
                break


def shell_cmd(
    uri: str | None = typer.Option(
        None,
        "--uri",
        "-u",
        help="Initial target URI.",
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
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Interactive console: set knobs, start, stop, reset and report."""
    setup_logging(level=logging.DEBUG if verbose else logging.INFO)

    try:
        config, client_config = load_config()
        if uri is not None:
            config = dataclasses.replace(config, target_uri=uri)
        client_overrides: dict[str, object] = {}
        if base_url is not None:
            client_overrides["base_url"] = base_url
        if limit_per_host is not None:
            client_overrides["limit_per_host"] = limit_per_host
        client_config = dataclasses.replace(client_config, **client_overrides)
    except LoadKnobError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    install_uvloop()
    try:
        asyncio.run(_console_loop(config, client_config))
    except KeyboardInterrupt:
        logger.info("Interrupted, harness closed")
        raise typer.Exit(code=130) from None
