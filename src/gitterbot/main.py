"""Entry point for gitterbot.

`gitterbot` — connects to Gitter and relays messages to the event handlers
`gitterbot --config <path>` — same, with an explicit config.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from gitterbot.bus.dispatcher import EventDispatcher
from gitterbot.bus.handlers import build_handlers
from gitterbot.config import AppConfig
from gitterbot.gitter.adapter import create_adapter
from gitterbot.worker.host import WorkerHost

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="gitterbot — Gitter chat bot")
    parser.add_argument("--config", "-c", help="Path to config.json file")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args()

    if args.config:
        config = AppConfig.from_file(args.config)
    else:
        # Auto-discover ~/.gitterbot/config.json (or GITTERBOT_CONFIG env)
        config = AppConfig.load()

    if args.log_level:
        config.log_level = args.log_level.upper()

    errors = config.validate()
    if errors:
        print("Config errors:")
        for e in errors:
            print(f"  - {e}")
        sys.exit(1)

    logging.basicConfig(
        level=config.log_level_value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    asyncio.run(_run(config))


async def _run(config: AppConfig) -> None:
    dispatcher = EventDispatcher(build_handlers(config.handlers))
    adapter = create_adapter(
        config.token,
        outbox=dispatcher,
        api_url=config.api_url,
        faye_url=config.faye_url,
    )
    host = WorkerHost([dispatcher, adapter])

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, host.stop)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    print("gitterbot")
    print(f"  Workers: {', '.join(host.workers)}")
    print(f"  Handlers: {', '.join(config.handlers) or 'none'}")
    print("  Press Ctrl+C to stop.\n")

    try:
        await host.run()
    finally:
        await adapter.broker.close()
        logger.info("gitterbot stopped")


if __name__ == "__main__":
    main()
