"""
Log output for the whole process.

Modules log through ``logging.getLogger(__name__)``; the root handler renders
each record with structlog, one JSON object per line (or plain console lines),
including any ``extra`` fields and the current request id.
"""
from __future__ import annotations

import logging
from typing import Any

import structlog

REQUEST_ID_KEY = "request_id"


def _renderer(log_format: str) -> Any:
    if log_format.lower() == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging(level: int | str = logging.INFO, log_format: str = "json") -> None:
    """Route the stdlib root logger through a structlog formatter.

    Existing root handlers are replaced, so calling this again (one app per
    test, for instance) does not duplicate output.
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # asyncssh logs every channel open at INFO
    logging.getLogger("asyncssh").setLevel(logging.WARNING)


def set_request_id(value: str | None) -> None:
    """Bind the request id for log lines emitted in the current context"""
    if value is None:
        structlog.contextvars.unbind_contextvars(REQUEST_ID_KEY)
    else:
        structlog.contextvars.bind_contextvars(**{REQUEST_ID_KEY: value})


def get_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get(REQUEST_ID_KEY)
