"""Logging setup for the command line and flows.

Library modules only create ``logging.getLogger(__name__)`` loggers; this is
the one place that attaches a handler.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure(level: str = "INFO") -> None:
    """Route all log records through a Rich console handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_time=False, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
