# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""JSON-RPC 2.0 over a tree of procedures, with batching clients."""

import contextlib
import logging

from rpctree.rpc import (
    BatchMismatchError,
    ClientError,
    ContextTransformer,
    Endpoint,
    ErrorHandler,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    InvalidRouteError,
    LocalRoundTrip,
    MethodNotFoundError,
    Node,
    NotPlainObjectError,
    ParseError,
    PipeliningNotSupportedError,
    Requester,
    RequesterConfig,
    RequesterError,
    RequestTimeoutError,
    RoundTrip,
    Router,
    RpcClient,
    RpcError,
    ServerInfo,
    TransportError,
    connect_local,
    dispatch,
    endpoint,
    handle,
    router,
    validated,
    with_context,
)

# HTTP (optional, requires `pip install rpctree[http]`)
with contextlib.suppress(ImportError):
    from rpctree.http import (
        HttpContext,
        HttpRequester,
        http_connect,
        make_asgi_app,
        make_test_client,
    )

__all__ = [
    # Tree
    "Node",
    "Endpoint",
    "Router",
    "ContextTransformer",
    "InvalidRouteError",
    "endpoint",
    "router",
    "validated",
    "with_context",
    # Server
    "ErrorHandler",
    "ServerInfo",
    "dispatch",
    "handle",
    # Errors
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
    "RoundTrip",
    "Requester",
    "RequesterConfig",
    "LocalRoundTrip",
    "RpcClient",
    "connect_local",
]

# Conditionally include optional names only when actually imported
if "HttpRequester" in dir():
    __all__ += [
        "HttpContext",
        "HttpRequester",
        "http_connect",
        "make_asgi_app",
        "make_test_client",
    ]

# Attach NullHandler to the package logger so library users don't get
# "No handler found" warnings.  Must come after all imports so the
# logger hierarchy is fully populated.
logging.getLogger("rpctree").addHandler(logging.NullHandler())
