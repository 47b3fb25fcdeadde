"""
Logging setup for the ActionPacks CLI.

Library modules only create loggers (``logging.getLogger(__name__)``); handlers
are installed here, by the CLI, so embedding hosts keep control of their own
logging configuration.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """
    Route ActionPacks log records to stderr through Rich.

    Args:
        verbose: Log at DEBUG instead of WARNING
        console: Console to write to (stderr console if not provided)
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger("actionpacks")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False
