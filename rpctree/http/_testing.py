# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""In-process test client for the HTTP transport.

``make_test_client`` wires an ``httpx.AsyncClient`` to the Falcon ASGI app
through ``httpx.ASGITransport``, so no real HTTP server is needed.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx

from rpctree.rpc import ErrorHandler, Node

from ._server import ContextFactory, make_asgi_app

TEST_BASE_URL = "http://test"


def make_test_client(
    root: Node,
    *,
    path: str = "/",
    context_factory: ContextFactory | None = None,
    error_handler: ErrorHandler | None = None,
    cors_origins: str | Iterable[str] | None = None,
    server_name: str = "rpctree",
    default_headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create an async httpx client that calls a procedure tree in-process.

    Args:
        root: The procedure tree to serve.
        path: See ``make_asgi_app``.
        context_factory: See ``make_asgi_app``.
        error_handler: See ``make_asgi_app``.
        cors_origins: See ``make_asgi_app``.
        server_name: See ``make_asgi_app``.
        default_headers: Headers merged into every request.

    Returns:
        A client with ``base_url`` ``http://test`` that can be passed to
        ``http_connect(path, client=...)``.  The caller closes it.

    """
    app = make_asgi_app(
        root,
        path=path,
        context_factory=context_factory,
        error_handler=error_handler,
        cors_origins=cors_origins,
        server_name=server_name,
    )
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url=TEST_BASE_URL,
        headers=default_headers,
    )
