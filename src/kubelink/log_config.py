"""structlog pipeline for applications embedding kubelink.

The library itself only calls ``structlog.get_logger()``; configuring output is left to the
application, which can call :func:`configure_logging` once at startup.
"""

from __future__ import annotations

import sys
from typing import TextIO

import structlog


def configure_logging(stream: TextIO | None = None) -> None:
    """Render logs to ``stream`` (stderr by default): console output on a TTY, JSON otherwise."""
    stream = stream or sys.stderr
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if stream.isatty() else structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.PrintLoggerFactory(file=stream),
    )
