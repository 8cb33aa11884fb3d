"""Structured logging singleton.

Reads LOG_LEVEL from os.environ directly so logging works before Settings
is loaded. ``set_level`` applies the configured level once Settings exist,
and ``bind_project`` tags every later line with the controlled project.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# process-wide fields merged into every event, whatever task logs it
_static_fields: dict[str, str] = {}


def _parse_level(level_name: str) -> int | None:
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else None


def _add_static_fields(
    _logger: Any, _method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    for key, value in _static_fields.items():
        event_dict.setdefault(key, value)
    return event_dict


def _setup_logging() -> structlog.stdlib.BoundLogger:
    level = _parse_level(os.environ.get("LOG_LEVEL", "INFO")) or logging.INFO

    # stdlib root logger first so structlog's filter_by_level sees the level
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            _add_static_fields,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


logger = _setup_logging()


def set_level(level_name: str) -> bool:
    """Change the root log level after startup. False if the name is unknown."""
    level = _parse_level(level_name)
    if level is None:
        logger.warning("Unknown log level, keeping current", level=level_name)
        return False
    logging.getLogger().setLevel(level)
    return True


def bind_project(project: str) -> None:
    _static_fields["project"] = project


def _uncaught_exception_handler(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: object,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
    sys.exit(1)


sys.excepthook = _uncaught_exception_handler
