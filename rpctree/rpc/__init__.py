# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Transport-agnostic JSON-RPC 2.0 over a tree of procedures.

Procedures are organised as a tree: routers map path segments to children,
context transformers derive a new context for the subtree beneath them, and
endpoints are the leaves.  A dotted method name such as ``agent.hello``
addresses the endpoint reached by following each segment from the root.

Wire Protocol
-------------
Plain JSON-RPC 2.0 with positional params::

    {"jsonrpc": "2.0", "id": 1, "method": "agent.hello", "params": ["world"]}
    {"jsonrpc": "2.0", "id": 1, "result": "Hello, world!"}

A JSON array is a batch and is answered by an array in the same order.
Every request is answered, including those with ``id: null``.  The method
``rpc.server`` is reserved and answers with static server information.

Errors
------
- ``-32700`` parse error, ``-32600`` invalid request
- ``-32601`` method not found, ``-32602`` invalid params
- ``-32603`` internal error (unclassified exceptions; the cause is logged
  and never sent)
- any other code: application errors raised as :class:`RpcError`

Client
------
:class:`Requester` queues calls and flushes them in batches over a
:class:`RoundTrip`; :class:`RpcClient` adds path addressing and argument
checks on top.  Batching defaults to one call per round trip.

"""

from __future__ import annotations

from rpctree.rpc._client import Pipelined, RpcClient, connect_local, pipeline, purify
from rpctree.rpc._common import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_INFO_METHOD,
    BatchMismatchError,
    ClientError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    JsonValue,
    MethodNotFoundError,
    NotPlainObjectError,
    ParseError,
    PipeliningNotSupportedError,
    RequesterError,
    RequestId,
    RequestTimeoutError,
    RpcError,
    TransportError,
)
from rpctree.rpc._dispatch import ErrorHandler, dispatch, resolve_endpoint
from rpctree.rpc._requester import LocalRoundTrip, PendingCall, Requester, RequesterConfig, RoundTrip
from rpctree.rpc._types import (
    ContextTransformer,
    Endpoint,
    InvalidRouteError,
    Node,
    Router,
    as_node,
    endpoint,
    router,
    validated,
    with_context,
)
from rpctree.rpc._validation import pydantic_validator
from rpctree.rpc._wire import (
    ErrorResponse,
    Request,
    Response,
    ResultResponse,
    ServerInfo,
    call,
    encode,
    handle,
    original_error,
    parse_request,
    render,
    status_code,
)

__all__ = [
    # Tree
    "ContextTransformer",
    "Endpoint",
    "InvalidRouteError",
    "Node",
    "Router",
    "as_node",
    "endpoint",
    "router",
    "validated",
    "with_context",
    "pydantic_validator",
    # Dispatch
    "ErrorHandler",
    "dispatch",
    "resolve_endpoint",
    # Envelope codec
    "JSONRPC_VERSION",
    "SERVER_INFO_METHOD",
    "ErrorResponse",
    "JsonValue",
    "Request",
    "RequestId",
    "Response",
    "ResultResponse",
    "ServerInfo",
    "call",
    "encode",
    "handle",
    "original_error",
    "parse_request",
    "render",
    "status_code",
    # Errors
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "RpcError",
    "ParseError",
    "InvalidRequestError",
    "MethodNotFoundError",
    "InvalidParamsError",
    "InternalError",
    "ClientError",
    "RequesterError",
    "BatchMismatchError",
    "TransportError",
    "RequestTimeoutError",
    "NotPlainObjectError",
    "PipeliningNotSupportedError",
    # Client
    "LocalRoundTrip",
    "PendingCall",
    "Requester",
    "RequesterConfig",
    "RoundTrip",
    "RpcClient",
    "Pipelined",
    "connect_local",
    "pipeline",
    "purify",
]
