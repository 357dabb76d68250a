# src/khural_admin/infrastructure/logging/logger.py
# Copyright (c) Khural.
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Enrichment with the current ``operation_id`` (one per write attempt) via
      contextvars, so every line emitted while a create/update/delete is in
      flight can be correlated, including the outbound ``X-Request-ID``.
    * ``extra={"extra": {...}}`` fields are merged into the payload.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "get_operation_id",
    "operation_context",
]

_OPERATION_ID_CTX: ContextVar[str | None] = ContextVar("khural_operation_id", default=None)


def get_operation_id() -> str | None:
    """Return the id of the write operation in flight on this task, if any."""
    return _OPERATION_ID_CTX.get(None)


@contextmanager
def operation_context(operation_id: str | None = None) -> Iterator[str]:
    """Bind an operation id to the current context for the block's duration.

    Args:
        operation_id: Explicit id to bind; a random hex id is used if omitted.

    Yields:
        The bound operation id.
    """
    oid = operation_id or uuid.uuid4().hex
    token = _OPERATION_ID_CTX.set(oid)
    try:
        yield oid
    finally:
        _OPERATION_ID_CTX.reset(token)


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        oid = getattr(record, "operation_id", None) or _OPERATION_ID_CTX.get(None)
        if oid:
            payload["operation_id"] = oid

        # Exceptions: guard against None in exc_info tuple.
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    root.setLevel(resolved)

    if root.handlers:
        # Already configured; avoid duplicate handlers.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
