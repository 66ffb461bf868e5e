# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Dispatcher: resolve a method path against a procedure tree and invoke it."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Sequence
from typing import Any

from rpctree.rpc._common import (
    PATH_SEPARATOR,
    InternalError,
    InvalidParamsError,
    MethodNotFoundError,
    RpcError,
    _current_request_id,
    _logger,
)
from rpctree.rpc._types import ContextTransformer, Endpoint, Node, Router

type ErrorHandler = Callable[[Exception], RpcError | None]
"""Maps an unclassified endpoint exception to an :class:`RpcError`, or ``None`` to fall through."""


async def _resolve(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def _log_internal_error(method: str, exc: RpcError) -> None:
    """Log an internal error with the original traceback."""
    cause = exc.original_error or exc
    extra: dict[str, object] = {"method": method, "error_type": type(cause).__name__}
    request_id = _current_request_id.get()
    if request_id:
        extra["request_id"] = request_id
    _logger.error(
        "Error in %s: %s",
        method,
        cause,
        exc_info=(type(cause), cause, cause.__traceback__),
        extra=extra,
    )


def _apply_error_handler(error_handler: ErrorHandler, exc: Exception) -> RpcError | None:
    """Run the error handler; a hook that raises or returns a non-RpcError yields ``None``."""
    try:
        handled = error_handler(exc)
    except Exception as hook_exc:
        _logger.error(
            "Error handler failed: %s",
            hook_exc,
            exc_info=True,
            extra={"error_type": type(hook_exc).__name__},
        )
        return None
    if handled is not None and not isinstance(handled, RpcError):
        _logger.error(
            "Error handler returned %s, expected RpcError or None",
            type(handled).__name__,
            extra={"error_type": type(handled).__name__},
        )
        return None
    return handled


async def _enter(node: Node, ctx: Any) -> tuple[Node, Any]:
    """Run every context transformer at the head of *node* and return the first other node."""
    while isinstance(node, ContextTransformer):
        try:
            ctx = await _resolve(node.transform(ctx))
        except RpcError:
            raise
        except Exception as exc:
            raise InternalError(original_error=exc) from exc
        node = node.next
    return node, ctx


async def resolve_endpoint(root: Node, path: Sequence[str], context: Any) -> tuple[Endpoint, Any]:
    """Walk *path* from *root*, applying context transformers along the way.

    Returns:
        The endpoint at *path* and the context it should be invoked with.

    Raises:
        MethodNotFoundError: If the path does not lead to an endpoint.
        RpcError: If a context transformer fails.

    """
    node, ctx = await _enter(root, context)
    for segment in path:
        if not isinstance(node, Router):
            raise MethodNotFoundError()
        child = node.get(segment)
        if child is None:
            raise MethodNotFoundError()
        node, ctx = await _enter(child, ctx)
    if not isinstance(node, Endpoint):
        raise MethodNotFoundError()
    return node, ctx


async def _validate(endpoint: Endpoint, ctx: Any, args: Sequence[Any]) -> None:
    """Run the endpoint's validator, or check arity against its signature."""
    if endpoint.validator is None:
        if endpoint.signature is not None:
            try:
                endpoint.signature.bind(ctx, *args)
            except TypeError as exc:
                raise InvalidParamsError(message="Invalid number of arguments", original_error=exc) from exc
        return
    try:
        await _resolve(endpoint.validator(ctx, *args))
    except RpcError:
        raise
    except Exception as exc:
        raise InvalidParamsError(message=str(exc) or "Invalid params", original_error=exc) from exc


async def dispatch(
    root: Node,
    path: Sequence[str],
    context: Any,
    args: Sequence[Any],
    *,
    error_handler: ErrorHandler | None = None,
) -> Any:
    """Resolve *path* under *root*, validate *args*, and invoke the endpoint.

    Args:
        root: The procedure tree.
        path: Method path split into segments.
        context: The initial context passed through transformers.
        args: Positional arguments for the endpoint.
        error_handler: Optional hook classifying exceptions raised by the
            endpoint that are not already an :class:`RpcError`.

    Returns:
        The endpoint's return value (awaited if necessary).

    Raises:
        MethodNotFoundError: If *path* does not resolve to an endpoint.
        InvalidParamsError: If validation rejects *args*.
        InternalError: If a transformer or the endpoint fails unexpectedly;
            the cause is kept in ``original_error``.
        RpcError: Any classified error raised by the tree, unchanged.

    """
    method = PATH_SEPARATOR.join(path)
    try:
        endpoint, ctx = await resolve_endpoint(root, path, context)
        await _validate(endpoint, ctx, args)
        try:
            return await _resolve(endpoint.handler(ctx, *args))
        except RpcError:
            raise
        except Exception as exc:
            handled = _apply_error_handler(error_handler, exc) if error_handler is not None else None
            if handled is not None:
                if handled.original_error is None:
                    handled.original_error = exc
                raise handled from exc
            raise InternalError(original_error=exc) from exc
    except InternalError as exc:
        _log_internal_error(method, exc)
        raise
