"""Standalone workflow dispatcher: `python -m campus.worker`."""

import asyncio
import signal

import structlog

from .config import get_settings
from .core.database import create_tables
from .core.logging_config import configure_logging
from .services.workflow.dispatcher import run_forever

logger = structlog.get_logger(__name__)


async def main() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await run_forever(stop_event=stop_event)


if __name__ == "__main__":
    configure_logging(get_settings())
    create_tables()
    logger.info("workflow_worker_starting")
    asyncio.run(main())
