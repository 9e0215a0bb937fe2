"""Structured logging configuration using structlog.

Every module logs through ``logging.getLogger(__name__)``; structlog renders
those records and adds whatever validation context is bound at the time
(run id, workbook source, CI count, the rule being evaluated).
"""
from __future__ import annotations

from contextlib import contextmanager
import logging
import sys
from typing import IO, Iterator, Optional

import structlog

# Third-party loggers that are chatty at INFO while reading workbooks.
QUIET_LOGGERS = ("openpyxl",)


def configure_logging(
    log_level: str = "warning",
    json_output: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Route stdlib logging through structlog.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: Emit JSON lines instead of console output.
        stream: Destination for log lines; defaults to stderr so findings
            printed on stdout stay machine-readable.
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    stream = stream if stream is not None else sys.stderr

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_run_context(run_id: str, source: Optional[str] = None) -> None:
    """Bind identifiers of the current CLI run to every later log record."""
    ctx = {"run_id": run_id}
    if source:
        ctx["source"] = source
    structlog.contextvars.bind_contextvars(**ctx)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def validation_context(**values: object) -> Iterator[None]:
    """Bind *values* (``None`` entries skipped) for the duration of the block.

    Keys bound by an enclosing run context are restored on exit.
    """
    bound = {key: value for key, value in values.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


__all__ = [
    "bind_run_context",
    "clear_run_context",
    "configure_logging",
    "validation_context",
]
