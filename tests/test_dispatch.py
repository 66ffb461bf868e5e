# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Tests for path resolution and invocation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from rpctree.rpc import (
    Endpoint,
    ErrorHandler,
    InternalError,
    InvalidParamsError,
    MethodNotFoundError,
    Node,
    RpcError,
    dispatch,
    endpoint,
    resolve_endpoint,
    router,
    with_context,
)


def _dispatch(
    root: Node,
    path: list[str],
    args: list[Any],
    context: Any = None,
    error_handler: ErrorHandler | None = None,
) -> Any:
    return asyncio.run(dispatch(root, path, context, args, error_handler=error_handler))


class TestDispatchSuccess:
    """Successful invocations."""

    def test_hello(self, root: Node) -> None:
        """A validated endpoint returns its result."""
        assert _dispatch(root, ["hello"], ["world"]) == "Hello, world!"

    def test_async_handler(self, root: Node) -> None:
        """Async handlers are awaited."""
        assert _dispatch(root, ["add"], [2, 3]) == 5

    def test_nested_router(self, root: Node) -> None:
        """Paths walk through nested routers."""
        assert _dispatch(root, ["math", "add"], [1, 1]) == 2

    def test_context_passed_to_endpoint(self, root: Node) -> None:
        """The initial context reaches the endpoint."""
        assert _dispatch(root, ["whoami"], [], context={"user": "alice"}) == "alice"

    def test_context_transformer_applies_to_subtree(self, root: Node) -> None:
        """A transformer's result replaces the context below it."""
        assert _dispatch(root, ["agent", "whoami"], [], context={"user": "alice"}) == "agent-007"

    def test_transformers_chain(self) -> None:
        """Transformers stacked on one path apply in order."""
        tree = with_context(
            lambda ctx: [*ctx, "outer"],
            router(inner=with_context(lambda ctx: [*ctx, "inner"], router(trail=lambda ctx: ctx))),
        )
        assert _dispatch(tree, ["inner", "trail"], [], context=["root"]) == ["root", "outer", "inner"]

    def test_async_transformer(self) -> None:
        """Transformers may be coroutines."""

        async def lookup(ctx: Any) -> str:
            await asyncio.sleep(0)
            return "looked-up"

        tree = with_context(lookup, router(get=lambda ctx: ctx))
        assert _dispatch(tree, ["get"], []) == "looked-up"

    def test_resolve_endpoint_returns_context(self, root: Node) -> None:
        """resolve_endpoint yields the endpoint and its transformed context."""
        ep, ctx = asyncio.run(resolve_endpoint(root, ["agent", "hello"], None))
        assert isinstance(ep, Endpoint)
        assert ctx == {"user": "agent-007"}


class TestInvalidParams:
    """Argument validation failures."""

    def test_missing_argument(self, root: Node) -> None:
        """Calling hello without arguments is invalid params."""
        with pytest.raises(InvalidParamsError) as exc_info:
            _dispatch(root, ["hello"], [])
        assert exc_info.value.code == -32602

    def test_wrong_type(self, root: Node) -> None:
        """A non-string name fails validation."""
        with pytest.raises(InvalidParamsError, match="argument 0"):
            _dispatch(root, ["hello"], [5])

    def test_arity_checked_without_validator(self, root: Node) -> None:
        """Without a validator, arity is checked against the handler signature."""
        with pytest.raises(InvalidParamsError, match="Invalid number of arguments"):
            _dispatch(root, ["add"], [1])

    def test_variadic_handler_accepts_any_count(self, root: Node) -> None:
        """A *args handler accepts any number of arguments."""
        assert _dispatch(root, ["echo"], [1, 2, 3]) == [1, 2, 3]

    def test_validator_exception_becomes_invalid_params(self) -> None:
        """An unclassified validator exception is reported as invalid params."""

        def positive(ctx: Any, n: int) -> None:
            if n <= 0:
                raise ValueError("n must be positive")

        tree = router(double=endpoint(validator=positive)(lambda ctx, n: n * 2))
        with pytest.raises(InvalidParamsError, match="n must be positive"):
            _dispatch(tree, ["double"], [-1])
        assert _dispatch(tree, ["double"], [4]) == 8

    def test_handler_not_invoked_when_invalid(self) -> None:
        """The handler does not run when validation fails."""
        calls: list[Any] = []

        def reject(ctx: Any, *args: Any) -> None:
            raise InvalidParamsError(message="nope")

        tree = router(track=endpoint(validator=reject)(lambda ctx, *a: calls.append(a)))
        with pytest.raises(InvalidParamsError, match="nope"):
            _dispatch(tree, ["track"], [1])
        assert calls == []


class TestMethodNotFound:
    """Paths that do not lead to an endpoint."""

    @pytest.mark.parametrize(
        "path",
        [["missing"], ["math"], ["hello", "extra"], ["math", "sub"], ["constructor"], ["__class__"], []],
    )
    def test_not_found(self, root: Node, path: list[str]) -> None:
        """Unknown, partial, overlong, and reserved paths are method not found."""
        with pytest.raises(MethodNotFoundError) as exc_info:
            _dispatch(root, path, [])
        assert exc_info.value.code == -32601

    def test_transformer_not_run_for_unknown_sibling(self, root: Node) -> None:
        """A failing transformer on another branch does not affect lookup."""
        with pytest.raises(MethodNotFoundError):
            _dispatch(root, ["nowhere"], [])


class TestErrors:
    """Classification of failures raised by the tree."""

    def test_unclassified_error_is_internal(self, root: Node) -> None:
        """An arbitrary exception becomes InternalError with the cause kept."""
        with pytest.raises(InternalError) as exc_info:
            _dispatch(root, ["boom"], [])
        assert exc_info.value.code == -32603
        assert exc_info.value.message == "Internal error"
        assert isinstance(exc_info.value.original_error, RuntimeError)

    def test_internal_error_logged(self, root: Node, caplog: pytest.LogCaptureFixture) -> None:
        """Internal errors are logged with the method name and traceback."""
        with caplog.at_level(logging.ERROR, logger="rpctree.rpc"), pytest.raises(InternalError):
            _dispatch(root, ["boom"], [])
        records = [r for r in caplog.records if r.name == "rpctree.rpc"]
        assert len(records) == 1
        assert records[0].__dict__["method"] == "boom"
        assert records[0].exc_info is not None

    def test_application_error_passes_through(self, root: Node) -> None:
        """An RpcError raised by an endpoint keeps its code, message, and data."""
        with pytest.raises(RpcError) as exc_info:
            _dispatch(root, ["deny"], [])
        assert not isinstance(exc_info.value, InternalError)
        assert exc_info.value.code == -32000
        assert exc_info.value.data == {"reason": "test"}

    def test_transformer_failure_is_internal(self, root: Node) -> None:
        """An unclassified exception in a transformer aborts with InternalError."""
        with pytest.raises(InternalError) as exc_info:
            _dispatch(root, ["locked", "secret"], [])
        assert isinstance(exc_info.value.original_error, ValueError)

    def test_transformer_rpc_error_passes_through(self) -> None:
        """A transformer may reject with a classified error."""

        def auth(ctx: Any) -> Any:
            raise RpcError(-32001, "Unauthorized")

        tree = with_context(auth, router(x=lambda ctx: 1))
        with pytest.raises(RpcError) as exc_info:
            _dispatch(tree, ["x"], [])
        assert exc_info.value.code == -32001


class TestErrorHandler:
    """The error handler hook classifies endpoint exceptions."""

    def test_handler_classifies(self, root: Node) -> None:
        """A returned RpcError is raised with the original cause attached."""

        def handler(exc: Exception) -> RpcError | None:
            if isinstance(exc, RuntimeError):
                return RpcError(-32010, "Runtime trouble")
            return None

        with pytest.raises(RpcError) as exc_info:
            _dispatch(root, ["boom"], [], error_handler=handler)
        assert exc_info.value.code == -32010
        assert isinstance(exc_info.value.original_error, RuntimeError)

    def test_handler_falls_through(self, root: Node) -> None:
        """Returning None keeps the default InternalError."""
        with pytest.raises(InternalError):
            _dispatch(root, ["boom"], [], error_handler=lambda exc: None)

    def test_failing_handler_falls_through(self, root: Node, caplog: pytest.LogCaptureFixture) -> None:
        """A hook that raises is logged and the endpoint failure stays an InternalError."""

        def handler(exc: Exception) -> RpcError | None:
            raise KeyError("hook broke")

        with caplog.at_level(logging.ERROR, logger="rpctree.rpc"), pytest.raises(InternalError) as exc_info:
            _dispatch(root, ["boom"], [], error_handler=handler)
        assert isinstance(exc_info.value.original_error, RuntimeError)
        assert any(r.getMessage().startswith("Error handler failed") for r in caplog.records)

    def test_handler_returning_non_error_ignored(self, root: Node) -> None:
        """A hook returning something other than an RpcError is ignored."""
        with pytest.raises(InternalError):
            _dispatch(root, ["boom"], [], error_handler=lambda exc: "bad")  # type: ignore[arg-type,return-value]

    def test_handler_not_called_for_rpc_errors(self, root: Node) -> None:
        """Classified errors bypass the handler."""
        seen: list[Exception] = []

        def handler(exc: Exception) -> RpcError | None:
            seen.append(exc)
            return None

        with pytest.raises(RpcError):
            _dispatch(root, ["deny"], [], error_handler=handler)
        assert seen == []
