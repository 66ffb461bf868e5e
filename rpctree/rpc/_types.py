# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Procedure tree: endpoints, routers, and context transformers.

A procedure tree is built bottom-up from three node kinds:

- :class:`Endpoint` wraps a callable ``handler(ctx, *args)`` and an optional
  ``validator(ctx, *args)``.
- :class:`Router` maps path segments to child nodes.
- :class:`ContextTransformer` derives a new context for its single child.

Construction only checks structure (legal keys, node types); all behaviour
happens at dispatch time.  Nodes are immutable, so a tree built this way is
always finite and acyclic.

Example::

    @validated(str)
    async def hello(ctx, name):
        return f"Hello, {name}!"

    root = router(
        hello=hello,
        agent=with_context(lambda ctx: {"agent": ctx.request.user_agent}, router(hello=hello)),
    )
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, overload

from rpctree.rpc._common import check_path_segment

type Handler = Callable[..., Any]
"""Endpoint callable: ``handler(ctx, *args) -> value`` (sync or async)."""

type Validator = Callable[..., Awaitable[None] | None]
"""Argument check: ``validator(ctx, *args)``; raises to reject (sync or async)."""

type Transform = Callable[[Any], Any]
"""Context transform: ``transform(ctx) -> new_ctx`` (sync or async)."""


class InvalidRouteError(ValueError):
    """Raised when a router key is not a legal path segment."""


def _signature_of(handler: Handler) -> inspect.Signature | None:
    try:
        return inspect.signature(handler)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Leaf procedure invoked as ``handler(ctx, *args)``.

    Attributes:
        handler: The procedure.  May return a value or an awaitable.
        validator: Optional argument check run before *handler*.  When
            absent, arguments are bound against the handler signature so
            arity mismatches are reported as invalid params.
        name: Display name used in logs (defaults to the handler's name).

    """

    handler: Handler
    validator: Validator | None = None
    name: str = ""
    signature: inspect.Signature | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Check the handler and capture its signature."""
        if not callable(self.handler):
            raise TypeError(f"Endpoint handler must be callable, got {type(self.handler).__name__}")
        if self.validator is not None and not callable(self.validator):
            raise TypeError(f"Endpoint validator must be callable, got {type(self.validator).__name__}")
        if not self.name:
            object.__setattr__(self, "name", getattr(self.handler, "__name__", type(self.handler).__name__))
        if self.signature is None:
            object.__setattr__(self, "signature", _signature_of(self.handler))

    def __call__(self, ctx: Any, *args: Any) -> Any:
        """Invoke the handler directly (no validation)."""
        return self.handler(ctx, *args)


class Router(Mapping[str, "Node"]):
    """Immutable mapping from path segment to child node.

    Plain callables are wrapped as :class:`Endpoint` and plain mappings
    become nested routers.

    Raises:
        InvalidRouteError: If a key is empty, contains ``"."``, or is a
            reserved name (``constructor``, ``prototype``, dunder names).
        TypeError: If a value cannot be turned into a node.

    """

    __slots__ = ("_routes",)

    def __init__(self, routes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> None:
        """Initialize from a mapping and/or keyword arguments."""
        merged: dict[str, Node] = {}
        for key, value in {**(routes or {}), **kwargs}.items():
            problem = check_path_segment(key)
            if problem is not None:
                raise InvalidRouteError(problem)
            merged[key] = as_node(value)
        self._routes: Mapping[str, Node] = MappingProxyType(merged)

    def __getitem__(self, key: str) -> Node:
        """Return the child node under *key*."""
        return self._routes[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate over route keys."""
        return iter(self._routes)

    def __len__(self) -> int:
        """Return the number of routes."""
        return len(self._routes)

    def __repr__(self) -> str:
        """Return a compact representation listing the keys."""
        return f"Router({', '.join(self._routes)})"


@dataclass(frozen=True, slots=True)
class ContextTransformer:
    """Derives a new context and evaluates *next* under it.

    Attributes:
        transform: ``transform(ctx) -> new_ctx``, sync or async.  Raising
            aborts dispatch.
        next: The child node evaluated with the new context.

    """

    transform: Transform
    next: Node

    def __post_init__(self) -> None:
        """Check the transform and coerce *next* to a node."""
        if not callable(self.transform):
            raise TypeError(f"Context transform must be callable, got {type(self.transform).__name__}")
        object.__setattr__(self, "next", as_node(self.next))


type Node = Endpoint | Router | ContextTransformer


def as_node(value: Any) -> Node:
    """Coerce *value* into a node.

    Nodes pass through, mappings become routers, and other callables become
    endpoints.

    Raises:
        TypeError: If *value* is none of the above.

    """
    if isinstance(value, (Endpoint, Router, ContextTransformer)):
        return value
    if isinstance(value, Mapping):
        return Router(value)
    if callable(value):
        return Endpoint(value)
    raise TypeError(f"Cannot use {type(value).__name__} as a procedure tree node")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@overload
def endpoint(handler: Handler, /) -> Endpoint: ...
@overload
def endpoint(*, validator: Validator | None = None, name: str = "") -> Callable[[Handler], Endpoint]: ...
def endpoint(
    handler: Handler | None = None,
    /,
    *,
    validator: Validator | None = None,
    name: str = "",
) -> Endpoint | Callable[[Handler], Endpoint]:
    """Wrap a handler as an :class:`Endpoint`; usable bare or as a decorator factory.

    Example::

        @endpoint
        async def echo(ctx, value):
            return value

        @endpoint(validator=check_positive)
        def double(ctx, n):
            return n * 2

    """
    if handler is not None:
        return Endpoint(handler, validator, name)

    def decorate(fn: Handler) -> Endpoint:
        return Endpoint(fn, validator, name)

    return decorate


def validated(*types: Any) -> Callable[[Handler], Endpoint]:
    """Decorate a handler with a pydantic validator for its positional arguments.

    Each entry of *types* is the expected type of the corresponding
    argument; the call must supply exactly ``len(types)`` arguments.
    """
    from rpctree.rpc._validation import pydantic_validator

    return endpoint(validator=pydantic_validator(*types))


def router(routes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Router:
    """Build a :class:`Router` from a mapping and/or keyword arguments."""
    return Router(routes, **kwargs)


def with_context(transform: Transform, next: Any) -> ContextTransformer:
    """Build a :class:`ContextTransformer` evaluating *next* under ``transform(ctx)``."""
    return ContextTransformer(transform, next)
