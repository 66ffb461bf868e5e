# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Shared constants and request context for the HTTP transport layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

import falcon.asgi

_JSON_CONTENT_TYPE: Final = "application/json"
_REQUEST_ID_HEADER: Final = "X-Request-ID"

_logger = logging.getLogger("rpctree.http")


@dataclass(frozen=True, slots=True)
class HttpContext:
    """Default root context for requests served over HTTP.

    Attributes:
        request: The Falcon request being served.
        response: The Falcon response; transformers and endpoints may set
            headers on it.
        request_id: Correlation ID from ``X-Request-ID`` (or generated).

    """

    request: falcon.asgi.Request
    response: falcon.asgi.Response
    request_id: str
