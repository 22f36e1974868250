# roomboard/core/logging.py
"""Process-wide logging setup.

Call sites keep using ``logging.getLogger(__name__)``; this module only
installs a structlog ``ProcessorFormatter`` on the root handler so that the
same records render either as coloured console lines (``text``) or as JSON
lines (``json``).
"""

from __future__ import annotations

import logging
import sys

import structlog

_NOISY_LOGGERS = ("httpx", "httpcore")


def _build_processors(time_fmt: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt=time_fmt),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the root logger.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        ``"text"`` for human-readable console output, ``"json"`` for JSON lines.
    """
    if fmt == "json":
        pre_chain = _build_processors(time_fmt="iso") + [structlog.processors.format_exc_info]
        renderer = structlog.processors.JSONRenderer()
    else:
        pre_chain = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
