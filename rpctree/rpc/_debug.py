# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Debug logging infrastructure for wire protocol diagnostics.

Provides logger instances under the ``rpctree.wire.*`` hierarchy and
formatting helpers for envelopes.  Enabling
``logging.getLogger("rpctree.wire").setLevel(logging.DEBUG)`` shows every
request and response that crosses the codec or the client transport.

All formatting helpers return ``str`` and never log directly.
They are designed to be called inside ``isEnabledFor`` guards so
there is zero overhead when debug logging is disabled.
"""

from __future__ import annotations

import json
import logging
from typing import Any

# ---------------------------------------------------------------------------
# Logger hierarchy: rpctree.wire.*
# ---------------------------------------------------------------------------

wire_request_logger = logging.getLogger("rpctree.wire.request")
"""Request parsing and validation."""

wire_response_logger = logging.getLogger("rpctree.wire.response")
"""Response assembly and encoding."""

wire_batch_logger = logging.getLogger("rpctree.wire.batch")
"""Client batch queueing, flushing, and demultiplexing."""

wire_http_logger = logging.getLogger("rpctree.wire.http")
"""HTTP client requests / responses."""

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 200
"""Maximum length of a formatted payload preview."""


def fmt_payload(payload: Any) -> str:
    """Format a decoded JSON payload as a truncated one-line preview.

    Returns:
        ``'{"jsonrpc": "2.0", "id": 1, ...'`` style text.

    """
    try:
        text = json.dumps(payload, default=repr)
    except ValueError:
        text = repr(payload)
    if len(text) > _MAX_VALUE_LEN:
        text = text[:_MAX_VALUE_LEN] + "..."
    return text


def fmt_methods(payload: Any) -> str:
    """Format the method names of a request or batch.

    Returns:
        ``"hello"`` for a single request or ``"[hello, agent.hello]"`` for a batch.

    """
    if isinstance(payload, list):
        return "[" + ", ".join(fmt_methods(item) for item in payload) + "]"
    if isinstance(payload, dict):
        return str(payload.get("method", "?"))
    return "?"
