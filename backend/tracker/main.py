"""Headless presence tracker: polls restored and statically configured sessions."""

import asyncio
import logging

from tracker.core import get_settings, setup_logging
from tracker.runtime import TrackerRuntime

LOGGER = logging.getLogger(__name__)


async def run() -> None:
    settings = get_settings()
    runtime = await TrackerRuntime.create(settings)
    try:
        await runtime.start()
        if not len(runtime.registry):
            LOGGER.warning("No sessions to track; authorize through the API or set STATIC_* vars")
        await asyncio.Event().wait()
    finally:
        await runtime.stop()


def main() -> None:
    setup_logging(get_settings())
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
