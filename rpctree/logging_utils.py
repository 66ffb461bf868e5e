# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Single-line JSON log output and a one-call logging setup.

:class:`RpcTreeJsonFormatter` renders each record as one JSON object.  The
structured fields that ``rpctree`` attaches through ``extra`` (``method``,
``request_id``, ``status``, ``duration_ms``, ``batch_size``, ...) become
top-level keys, as does anything an application passes the same way.

Library modules never install handlers; :func:`configure_logging` is meant
for applications and the ``rpctree`` CLI::

    from rpctree.logging_utils import configure_logging

    configure_logging("INFO", json_output=True)
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

__all__ = ["RpcTreeJsonFormatter", "configure_logging"]

# Attributes present on every LogRecord; anything else arrived via ``extra``.
_STANDARD_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_CORE_KEYS: tuple[str, ...] = ("timestamp", "level", "logger", "message")


class RpcTreeJsonFormatter(logging.Formatter):
    """Format records as single-line JSON with their ``extra`` fields.

    Args:
        static_fields: Key/value pairs added to every line (service name,
            deployment, ...).  Core keys and per-record extras win over them.

    The core keys ``timestamp`` (ISO 8601, UTC), ``level``, ``logger`` and
    ``message`` cannot be shadowed by extras.  Tracebacks appear under
    ``exception``.  Values that are not JSON serializable are rendered
    with ``str``.
    """

    def __init__(self, static_fields: Mapping[str, Any] | None = None) -> None:
        """Initialize with optional fields repeated on every line."""
        super().__init__()
        self._static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as one line of JSON."""
        out: dict[str, Any] = dict(self._static_fields)
        out.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in _CORE_KEYS
        )
        out["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds")
        out["level"] = record.levelname
        out["logger"] = record.name
        out["message"] = record.getMessage()
        if record.exc_info and record.exc_info[1] is not None:
            out["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            out["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(out, default=str)


def configure_logging(level: str | int = "WARNING", *, json_output: bool = False) -> logging.Handler:
    """Attach a stderr handler to the ``rpctree`` logger hierarchy.

    Calling it again replaces the handler installed by the previous call.

    Returns:
        The installed handler.

    """
    logger = logging.getLogger("rpctree")
    for handler in list(logger.handlers):
        if getattr(handler, "_rpctree_cli", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(RpcTreeJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._rpctree_cli = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
