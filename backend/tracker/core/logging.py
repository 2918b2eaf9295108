"""Logging configuration"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from tracker.core.config import TrackerSettings


def setup_logging(settings: TrackerSettings) -> None:
    """Configure root logging with a Rich handler"""
    level = getattr(logging, settings.log_level, logging.INFO)

    try:
        rich_handler = RichHandler(
            console=Console(force_terminal=True, width=120),
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            tracebacks_width=120,
        )
        rich_handler.setFormatter(
            logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]")
        )
        # force=True: uvicorn configures the root logger before the app starts
        logging.basicConfig(level=level, handlers=[rich_handler], force=True)
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )
        logging.getLogger(__name__).warning(f"Rich logging setup failed: {e}, using standard logging")

    if level == logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.INFO)
    else:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.ERROR)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging: {settings.log_level} | Env: {settings.environment}"
    )
