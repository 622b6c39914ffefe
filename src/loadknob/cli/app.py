"""Main Typer application, entry point for the ``loadknob`` CLI."""

from __future__ import annotations

import typer

from loadknob import __version__
from loadknob.cli.run import run_cmd
from loadknob.cli.shell import shell_cmd

_ENV_EPILOG = (
    "Defaults come from the environment: LOADKNOB_DELAY_MS, LOADKNOB_WORKERS, "
    "LOADKNOB_URI, LOADKNOB_BASE_URL, LOADKNOB_POOL_SIZE, LOADKNOB_LIMIT_PER_HOST, "
    "LOADKNOB_TIMEOUT. Command-line options override them."
)

app = typer.Typer(
    name="loadknob",
    help="Generate paced, concurrent GET load against one JSON endpoint.",
    epilog=_ENV_EPILOG,
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)

app.command("run", epilog=_ENV_EPILOG)(run_cmd)
app.command("shell", epilog=_ENV_EPILOG)(shell_cmd)


def _print_version(value: bool) -> None:
    if not value:
        return
    typer.echo(f"loadknob {__version__}")
    raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    """Turn two knobs (delay and worker count) and watch the counters move."""
