"""Logging setup."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Libraries that log every request at DEBUG/INFO
NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")


def setup_logging(level: str = "INFO", verbose: bool = False, console: Optional[Console] = None) -> None:
    """Configure the root logger with a rich handler on stderr.

    Args:
        level: Log level name for awsnuke loggers
        verbose: Also show file paths and let AWS SDK loggers through
        console: Console to log to (default: a new stderr console)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(log_level if verbose else max(log_level, logging.WARNING))
