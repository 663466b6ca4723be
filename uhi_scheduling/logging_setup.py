"""
Logging configuration for the CLI and embedding applications.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", fmt: str = "rich", console: Optional[Console] = None) -> None:
    """
    Install a single handler on the package logger.

    ``rich`` renders through a Rich console (stderr by default), ``plain``
    writes classic one-line records. Calling this again replaces the handler.
    """
    logger = logging.getLogger("uhi_scheduling")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if fmt == "rich":
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    logger.debug("Logging initialised at level %s", level.upper())
