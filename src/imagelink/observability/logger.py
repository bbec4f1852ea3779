"""Structured JSON logger for imagelink.

Every log record is emitted as a single-line JSON object so that the
host editor's developer console (or any log collector) can filter paste
sessions by field.

Fields bound with :func:`log_context` are added to every record logged
in the same :mod:`contextvars` context.  Tasks copy the context they are
created in, so a background upload started inside ``log_context(token=...)``
keeps tagging its records with that paste session's token::

    {"ts": "2026-10-19T12:00:00.123456+00:00", "level": "INFO",
     "logger": "imagelink.upload", "message": "Upload complete",
     "token": "3f0c9a1e-...", "op": "upload", "status_code": 200}

Usage::

    from imagelink.observability import get_logger, log_context

    log = get_logger("imagelink.paste")
    with log_context(token=tok):
        log.info("Placeholder inserted", extra={"extra_fields": {"key": key}})
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

_context_fields: ContextVar[dict[str, Any] | None] = ContextVar(
    "imagelink_log_context", default=None
)


def current_log_context() -> dict[str, Any]:
    """Return a copy of the fields bound in the current context."""
    return dict(_context_fields.get() or {})


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind *fields* to every record logged inside the ``with`` block.

    Nested blocks add to (and may override) the outer fields; the outer
    binding is restored on exit.
    """
    reset_token = _context_fields.set({**current_log_context(), **fields})
    try:
        yield
    finally:
        _context_fields.reset(reset_token)


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys: ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Context fields come next, then fields passed via
    ``extra={"extra_fields": {...}}``, which win on a clash.  ``exc_info``
    and ``stack_info`` are serialised when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(current_log_context())

        fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if fields:
            entry.update(fields)

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


# Handlers are attached once per logger name; later calls are lookups.
_configured: set[str] = set()


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


def get_logger(
    name: str = "imagelink",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"imagelink"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive name.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A non-propagating logger with one :class:`StructuredFormatter`
        handler.  Only the first call for a *name* configures it.
    """
    logger = logging.getLogger(name)
    if name in _configured:
        return logger

    logger.setLevel(_resolve_level(level))
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    # The host console owns the root logger.
    logger.propagate = False
    _configured.add(name)
    return logger
