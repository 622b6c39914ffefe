"""Drive a Harness from your own asyncio code instead of the CLI.

Turns the delay knob down mid-run to show that every worker picks up the
new delay on its next wait, then stops and drains.

    python examples/sample_server.py &
    python examples/embedded.py
"""

from __future__ import annotations

import asyncio

from loadknob import ClientConfig, Harness, HarnessConfig
from loadknob._internal.logging import setup_logging


async def main() -> None:
    setup_logging()
    config = HarnessConfig(delay_ms=1000, worker_count=4, target_uri="/sample.json")

    async with Harness(config, client_config=ClientConfig(limit_per_host=2)) as harness:
        harness.start()
        await asyncio.sleep(3)
        harness.report()

        harness.set_delay(100)
        await asyncio.sleep(3)
        harness.report()

        harness.stop()
        await harness.wait_idle(timeout=10)
        harness.report()


if __name__ == "__main__":
    asyncio.run(main())
