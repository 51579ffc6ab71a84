"""Logging utilities."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "WARNING", console: Console | None = None) -> None:
    """Configure application logging.

    Installs one ``RichHandler`` on the root logger; calling again only
    adjusts the level.

    Args:
        level: Logging level name.
        console: Console to log to (defaults to stderr).
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
    )
    handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
