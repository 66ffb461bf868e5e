# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""HTTP server implementation using Falcon/ASGI.

Provides ``make_asgi_app`` to expose a procedure tree as a Falcon ASGI
application.  The POST body is handed to the envelope codec undecoded, so
parse errors are reported as JSON-RPC envelopes rather than HTTP errors.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from http import HTTPStatus
from typing import Any

import falcon
import falcon.asgi

from rpctree.rpc import (
    ErrorHandler,
    ErrorResponse,
    InternalError,
    Node,
    Response,
    RpcError,
    ServerInfo,
    call,
    parse_request,
    render,
)
from rpctree.rpc._common import _access_logger, _current_request_id, _generate_request_id
from rpctree.rpc._dispatch import _resolve
from rpctree.rpc._wire import Request

from ._common import _JSON_CONTENT_TYPE, _REQUEST_ID_HEADER, HttpContext, _logger

type ContextFactory = Callable[[falcon.asgi.Request, falcon.asgi.Response], Any]
"""Builds the root context for one HTTP request (sync or async)."""


def _default_context(req: falcon.asgi.Request, resp: falcon.asgi.Response) -> HttpContext:
    return HttpContext(req, resp, getattr(req.context, "request_id", ""))


def _method_names(parsed: Any) -> str:
    if isinstance(parsed, list):
        return ",".join(r.method if isinstance(r, Request) else "?" for r in parsed)
    return parsed.method if isinstance(parsed, Request) else "?"


def _emit_access_log(
    req: falcon.asgi.Request,
    methods: str,
    batch_size: int,
    response: Response | list[Response],
    http_status: HTTPStatus,
    duration_ms: float,
) -> None:
    """Emit a structured access log record for a completed HTTP request."""
    if not _access_logger.isEnabledFor(logging.INFO):
        return
    responses = response if isinstance(response, list) else [response]
    errors = sum(1 for r in responses if isinstance(r, ErrorResponse))
    extra: dict[str, object] = {
        "method": methods,
        "batch_size": batch_size,
        "remote_addr": req.remote_addr or "",
        "duration_ms": round(duration_ms, 2),
        "status": "error" if errors else "ok",
        "error_count": errors,
        "http_status": http_status.value,
    }
    request_id = _current_request_id.get()
    if request_id:
        extra["request_id"] = request_id
    _access_logger.info("%s %d", methods, http_status.value, extra=extra)


class _RpcResource:
    """Falcon resource answering ``POST {path}`` with JSON-RPC envelopes."""

    __slots__ = ("_context_factory", "_error_handler", "_root", "_server_info")

    def __init__(
        self,
        root: Node,
        context_factory: ContextFactory,
        error_handler: ErrorHandler | None,
        server_info: ServerInfo,
    ) -> None:
        self._root = root
        self._context_factory = context_factory
        self._error_handler = error_handler
        self._server_info = server_info

    async def _context(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> Any:
        """Build the root context; failures become an error envelope."""
        try:
            return await _resolve(self._context_factory(req, resp))
        except RpcError:
            raise
        except Exception as exc:
            _logger.error(
                "Context factory failed: %s",
                exc,
                exc_info=True,
                extra={"error_type": type(exc).__name__},
            )
            raise InternalError(original_error=exc) from exc

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Parse, dispatch, and answer one request or batch."""
        start = time.monotonic()
        body = await req.stream.read()
        parsed = parse_request(body)
        response: Response | list[Response]
        try:
            context = await self._context(req, resp)
        except RpcError as exc:
            # A rejected batch is still answered with an array, one error per element.
            if isinstance(parsed, list):
                response = [ErrorResponse(None, exc) for _ in parsed]
            else:
                response = ErrorResponse(None, exc)
        else:
            response = await call(
                self._root,
                context,
                parsed,
                error_handler=self._error_handler,
                server_info=self._server_info,
            )
        http_status, text = render(response)
        resp.status = str(http_status.value)
        if http_status != HTTPStatus.NO_CONTENT:
            resp.content_type = _JSON_CONTENT_TYPE
            resp.text = text
        _emit_access_log(
            req,
            _method_names(parsed),
            len(parsed) if isinstance(parsed, list) else 1,
            response,
            http_status,
            (time.monotonic() - start) * 1000,
        )


class _RequestIdMiddleware:
    """Falcon middleware that sets a per-request correlation ID.

    Reads ``X-Request-ID`` from the incoming request or generates one, binds
    it to ``req.context.request_id`` and the request-id contextvar for the
    duration of the request, and echoes it on the response.
    """

    async def process_request(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Set request ID from header or generate one; populate contextvar."""
        request_id = req.get_header(_REQUEST_ID_HEADER) or _generate_request_id()
        req.context.request_id = request_id
        req.context.request_id_token = _current_request_id.set(request_id)

    async def process_response(
        self,
        req: falcon.asgi.Request,
        resp: falcon.asgi.Response,
        resource: object,
        req_succeeded: bool,
    ) -> None:
        """Echo request ID on response header and reset contextvar."""
        request_id = getattr(req.context, "request_id", None)
        if request_id is not None:
            resp.set_header(_REQUEST_ID_HEADER, request_id)
        token = getattr(req.context, "request_id_token", None)
        if token is not None:
            _current_request_id.reset(token)


def make_asgi_app(
    root: Node,
    *,
    path: str = "/",
    context_factory: ContextFactory | None = None,
    error_handler: ErrorHandler | None = None,
    cors_origins: str | Iterable[str] | None = None,
    server_name: str = "rpctree",
) -> falcon.asgi.App:
    """Create a Falcon ASGI app that serves a procedure tree over HTTP.

    Args:
        root: The procedure tree to serve.
        path: Route accepting ``POST`` requests (default ``/``).
        context_factory: Builds the root context from the Falcon request and
            response; may be sync or async.  Defaults to an
            :class:`HttpContext`.  Raising :class:`RpcError` answers the
            whole request with that error.
        error_handler: Optional hook classifying exceptions raised by
            endpoints; see :func:`rpctree.rpc.dispatch`.
        cors_origins: Allowed origins for CORS.  Pass ``"*"`` to allow all
            origins, a single origin, or an iterable of origins.  ``None``
            (the default) disables CORS headers.  Uses Falcon's built-in
            ``CORSMiddleware``, which also answers preflight requests.
        server_name: Name reported by the ``rpc.server`` method.

    Returns:
        A Falcon ASGI application.

    Raises:
        ValueError: If *path* does not start with ``/``.

    """
    if not path.startswith("/"):
        raise ValueError(f"path must start with '/', got {path!r}")
    middleware: list[Any] = [_RequestIdMiddleware()]
    if cors_origins is not None:
        middleware.append(falcon.CORSMiddleware(allow_origins=cors_origins, expose_headers=[_REQUEST_ID_HEADER]))
    app = falcon.asgi.App(middleware=middleware)
    app.add_route(
        path,
        _RpcResource(root, context_factory or _default_context, error_handler, ServerInfo(name=server_name)),
    )

    _logger.info(
        "ASGI app created for %s (path=%s, cors=%s)",
        server_name,
        path,
        "enabled" if cors_origins is not None else "disabled",
        extra={"server_name": server_name, "path": path, "cors_enabled": cors_origins is not None},
    )
    return app
