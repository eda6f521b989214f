"""Logging utilities using rich for terminal output."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Global console instances
console = Console()
console_err = Console(stderr=True, style="red")


def setup_logger(name: str, verbosity: int = 0) -> logging.Logger:
    """
    Set up a logger with rich formatting.

    Log records go to stderr so they never interleave with the XML report,
    which is written on stdout by default.

    Args:
        name: Logger name
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)

    Returns:
        Configured logger instance
    """
    level_map = {
        0: logging.WARNING,
        1: logging.INFO,
        2: logging.DEBUG,
    }
    level = level_map.get(verbosity, logging.DEBUG)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger whose handlers come from setup_logger() at startup."""
    return logging.getLogger(name)
