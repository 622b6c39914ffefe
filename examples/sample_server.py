"""A tiny JSON endpoint to point loadknob at.

Serves ``/sample.json`` with an optional artificial latency so that
request serialization is easy to see: with a slow endpoint and a low
``--limit-per-host``, requests queue up client-side and ``In Flight``
climbs while ``Calls`` lags behind.

Run it with:

    python examples/sample_server.py --port 8080 --latency 0.5
    loadknob run /sample.json --workers 12 --delay 200 --limit-per-host 6
"""

from __future__ import annotations

import asyncio
import itertools

import typer
from aiohttp import web

_counter = itertools.count(1)


def create_app(latency: float) -> web.Application:
    """Build the sample app; every response waits *latency* seconds."""

    async def sample(request: web.Request) -> web.Response:
        if latency > 0:
            await asyncio.sleep(latency)
        return web.json_response({"n": next(_counter), "t": request.query.get("t")})

    async def broken(request: web.Request) -> web.Response:
        return web.json_response({"error": "boom"}, status=500)

    app = web.Application()
    app.router.add_get("/sample.json", sample)
    app.router.add_get("/broken.json", broken)
    return app


def main(
    port: int = typer.Option(8080, "--port", "-p", help="Port to listen on."),
    latency: float = typer.Option(0.0, "--latency", "-l", help="Seconds to delay each response."),
) -> None:
    """Serve /sample.json (and a failing /broken.json) on localhost."""
    web.run_app(create_app(latency), host="127.0.0.1", port=port)


if __name__ == "__main__":
    typer.run(main)
