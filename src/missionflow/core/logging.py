# src/missionflow/core/logging.py
"""Logging setup for the CLI and editor sessions.

Modules log through structlog.get_logger(__name__). configure_logging()
routes those records, and stdlib records from dynaconf and python-dotenv,
through one processor chain, so a run produces a single format on stderr
and leaves stdout to command output.

Pipeline ids travel in context variables. Work on one pipeline runs
inside pipeline_context(), and every record logged inside it carries the
ids, whichever module emits it:

    with pipeline_context(config.id, execution_id=execution.id):
        machine.apply(event)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Settings and .env loading chatter; --verbose is for pipeline debugging
_LIBRARY_LOGGERS: tuple[str, ...] = ("dynaconf", "dotenv")

_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record/_from_structlog keys ProcessorFormatter adds."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


@contextmanager
def pipeline_context(pipeline_id: str, **ids: str) -> Iterator[None]:
    """Attach pipeline_id (and any extra ids) to every record logged inside."""
    with structlog.contextvars.bound_contextvars(pipeline_id=pipeline_id, **ids):
        yield


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Install the structlog/stdlib bridge on the root logger.

    Safe to call more than once; each call replaces the previous handler.

    Args:
        json_output: One JSON object per line instead of console rendering
        level: DEBUG, INFO, WARNING or ERROR (case-insensitive)

    Raises:
        ValueError: If level is not one of the above
    """
    try:
        log_level = _LEVELS[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(_LEVELS)}") from None

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]

    renderer: list[Any]
    if json_output:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=[_drop_formatter_bookkeeping, *renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    library_level = max(log_level, logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
