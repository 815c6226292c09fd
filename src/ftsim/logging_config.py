from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ftsim"


def setup_logging(
    level: int = logging.INFO,
    log_file: str | Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``ftsim`` logger namespace.

    Console output goes through rich; ``log_file`` adds a plain-text copy.
    Calling this again replaces the previous handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(file_handler)

    logger.debug("Logging initialized")
    return logger
