"""
Logging configuration for command-line use.

Library modules only create loggers; handlers are installed here, once, by
the CLI entry point.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "WARNING", console: Console | None = None) -> None:
    """Route log records through rich at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
