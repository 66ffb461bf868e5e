# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Envelope codec: parse JSON-RPC 2.0 payloads, drive dispatch, assemble responses.

Wire format::

    request  {"jsonrpc": "2.0", "id": 1, "method": "agent.hello", "params": ["world"]}
    result   {"jsonrpc": "2.0", "id": 1, "result": "Hello, world!"}
    error    {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}}

A batch is a JSON array of requests, answered by an array of responses in
the same order.  Malformed requests are answered with ``id: null`` because
the identifier of a request that fails the shape check cannot be trusted.
Requests with ``id: null`` are still answered; there are no notifications.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Final

from rpctree.rpc._common import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PATH_SEPARATOR,
    SERVER_INFO_METHOD,
    InternalError,
    InvalidRequestError,
    ParseError,
    RequestId,
    RpcError,
    _logger,
)
from rpctree.rpc._debug import fmt_payload, wire_request_logger, wire_response_logger
from rpctree.rpc._dispatch import ErrorHandler, dispatch
from rpctree.rpc._types import Node

# ---------------------------------------------------------------------------
# Envelope types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Request:
    """A well-formed request envelope."""

    id: RequestId
    method: str
    params: Any = field(default_factory=list)

    @property
    def path(self) -> list[str]:
        """The method split into path segments."""
        return self.method.split(PATH_SEPARATOR)

    @property
    def args(self) -> list[Any]:
        """Params normalised to a positional list (a lone value becomes one argument)."""
        if isinstance(self.params, list):
            return self.params
        return [self.params]

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form."""
        return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "method": self.method, "params": self.params}


@dataclass(frozen=True, slots=True)
class ResultResponse:
    """A successful response."""

    id: RequestId
    result: Any

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form."""
        return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "result": self.result}


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """A failed response carrying a classified error.

    The error's ``original_error`` stays in-process and is never part of
    :meth:`to_dict`.
    """

    id: RequestId
    error: RpcError

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form."""
        return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "error": self.error.to_dict()}


type Response = ResultResponse | ErrorResponse
type ParsedSingleRequest = Request | ErrorResponse
type ParsedRequest = ParsedSingleRequest | list[ParsedSingleRequest]


@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Static answer to the ``rpc.server`` method."""

    name: str = "rpctree"
    supported_extensions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form."""
        return {"name": self.name, "supportedExtensions": list(self.supported_extensions)}


_DEFAULT_SERVER_INFO: Final = ServerInfo()

# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _invalid(message: str) -> ErrorResponse:
    return ErrorResponse(None, InvalidRequestError(message=message))


def parse_one(candidate: Any) -> ParsedSingleRequest:
    """Validate a single decoded request candidate.

    Returns:
        A :class:`Request`, or an :class:`ErrorResponse` with
        ``InvalidRequestError`` and ``id=None`` describing the first violation.

    """
    if not isinstance(candidate, Mapping):
        return _invalid("Invalid Request")
    if candidate.get("jsonrpc") != JSONRPC_VERSION:
        return _invalid("Invalid JSON-RPC Version")
    if "id" not in candidate:
        return _invalid("Missing ID")
    request_id = candidate["id"]
    if isinstance(request_id, bool) or not isinstance(request_id, (str, int, float, type(None))):
        return _invalid("Invalid ID")
    method = candidate.get("method")
    if not isinstance(method, str):
        return _invalid("Invalid Method")
    return Request(request_id, method, candidate.get("params", []))


def parse_request(payload: Any) -> ParsedRequest:
    """Parse raw text or an already-decoded payload into request(s).

    ``str`` and ``bytes`` payloads are JSON-decoded first; anything else is
    treated as decoded JSON.

    Returns:
        A single parsed request, a list for a batch, or an
        :class:`ErrorResponse` (``ParseError`` for undecodable text,
        ``InvalidRequestError`` for an empty batch).

    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (ValueError, RecursionError):
            if wire_request_logger.isEnabledFor(logging.DEBUG):
                wire_request_logger.debug("Unparseable payload: %r", payload[:200])
            return ErrorResponse(None, ParseError(message="JSON Parse Error"))
    if isinstance(payload, list):
        if not payload:
            return _invalid("Invalid Request")
        return [parse_one(item) for item in payload]
    return parse_one(payload)


# ---------------------------------------------------------------------------
# Dispatch driving
# ---------------------------------------------------------------------------


async def call_one(
    root: Node,
    context: Any,
    request: ParsedSingleRequest,
    *,
    error_handler: ErrorHandler | None = None,
    server_info: ServerInfo = _DEFAULT_SERVER_INFO,
) -> Response:
    """Dispatch one parsed request; placeholders are returned unchanged."""
    if isinstance(request, ErrorResponse):
        return request
    if wire_request_logger.isEnabledFor(logging.DEBUG):
        wire_request_logger.debug(
            "Dispatch: id=%r, method=%s, params=%s",
            request.id,
            request.method,
            fmt_payload(request.params),
        )
    if request.method == SERVER_INFO_METHOD:
        return ResultResponse(request.id, server_info.to_dict())
    try:
        result = await dispatch(root, request.path, context, request.args, error_handler=error_handler)
    except RpcError as exc:
        return ErrorResponse(request.id, exc)
    return ResultResponse(request.id, result)


async def call(
    root: Node,
    context: Any,
    parsed: ParsedRequest,
    *,
    error_handler: ErrorHandler | None = None,
    server_info: ServerInfo = _DEFAULT_SERVER_INFO,
) -> Response | list[Response]:
    """Dispatch parsed request(s) against *root* under *context*.

    Batch elements are dispatched concurrently; the returned list preserves
    the input order.
    """
    if isinstance(parsed, list):
        return list(
            await asyncio.gather(
                *(call_one(root, context, r, error_handler=error_handler, server_info=server_info) for r in parsed)
            )
        )
    return await call_one(root, context, parsed, error_handler=error_handler, server_info=server_info)


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------

_STATUS_BY_CODE: Final[Mapping[int, HTTPStatus]] = {
    PARSE_ERROR: HTTPStatus.BAD_REQUEST,
    INVALID_REQUEST: HTTPStatus.BAD_REQUEST,
    INVALID_PARAMS: HTTPStatus.BAD_REQUEST,
    METHOD_NOT_FOUND: HTTPStatus.NOT_FOUND,
}


def status_code(response: Response | Sequence[Response]) -> HTTPStatus:
    """Map a response, or a batch of them, to an HTTP status.

    Results map to 200, client-side envelope errors to 400, unknown methods
    to 404, and everything else to 500.  A batch whose elements disagree is
    207 (Multi-Status); an empty batch response is 204.
    """
    if isinstance(response, ResultResponse):
        return HTTPStatus.OK
    if isinstance(response, ErrorResponse):
        return _STATUS_BY_CODE.get(response.error.code, HTTPStatus.INTERNAL_SERVER_ERROR)
    statuses = {status_code(r) for r in response}
    if not statuses:
        return HTTPStatus.NO_CONTENT
    if len(statuses) == 1:
        return statuses.pop()
    return HTTPStatus.MULTI_STATUS


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _encode_one(response: Response) -> tuple[Response, str]:
    """Serialize one response, replacing an unserializable result with an internal error."""
    try:
        return response, json.dumps(response.to_dict())
    except (TypeError, ValueError, RecursionError) as exc:
        _logger.error(
            "Result for id %r is not JSON serializable: %s",
            response.id,
            exc,
            extra={"error_type": type(exc).__name__},
        )
        replacement = ErrorResponse(response.id, InternalError(original_error=exc))
        return replacement, json.dumps(replacement.to_dict())


def render(response: Response | Sequence[Response]) -> tuple[HTTPStatus, str]:
    """Serialize a response, or a batch of them, and map the outcome to an HTTP status.

    An element whose result cannot be serialized is replaced by an
    ``InternalError`` response with the same id; siblings are unaffected and
    the status reflects the replacement.

    Returns:
        The HTTP status and the JSON text.

    """
    if isinstance(response, (ResultResponse, ErrorResponse)):
        final, text = _encode_one(response)
        status = status_code(final)
    else:
        encoded = [_encode_one(r) for r in response]
        status = status_code([final for final, _ in encoded])
        text = "[" + ",".join(part for _, part in encoded) + "]"
    if wire_response_logger.isEnabledFor(logging.DEBUG):
        wire_response_logger.debug("Encoded response (status=%d): %s", status.value, text[:200])
    return status, text


def encode(response: Response | Sequence[Response]) -> str:
    """Serialize a response, or a batch of them, to JSON text (see :func:`render`)."""
    return render(response)[1]


def original_error(response: Response) -> BaseException | None:
    """Return the in-process cause behind an error response, if any."""
    if isinstance(response, ErrorResponse):
        return response.error.original_error
    return None


async def handle(
    root: Node,
    context: Any,
    payload: Any,
    *,
    error_handler: ErrorHandler | None = None,
    server_info: ServerInfo = _DEFAULT_SERVER_INFO,
) -> tuple[HTTPStatus, str]:
    """Parse, dispatch, and encode *payload* in one step.

    Returns:
        The mapped HTTP status and the JSON response body.

    """
    parsed = parse_request(payload)
    response = await call(root, context, parsed, error_handler=error_handler, server_info=server_info)
    return render(response)
