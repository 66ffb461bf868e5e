# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Shared test fixtures for rpctree tests."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from rpctree.rpc import Node, RpcError, router, validated, with_context

# ---------------------------------------------------------------------------
# Fixture tree
# ---------------------------------------------------------------------------


@validated(str)
def hello(ctx: Any, name: str) -> str:
    """Return a greeting."""
    return f"Hello, {name}!"


async def add(ctx: Any, a: float, b: float) -> float:
    """Add two numbers (no validator: arity checked against the signature)."""
    return a + b


def echo(ctx: Any, *values: Any) -> list[Any]:
    """Return the arguments unchanged."""
    return list(values)


async def slow(ctx: Any, delay: float, tag: str) -> str:
    """Sleep, then return *tag*."""
    await asyncio.sleep(delay)
    return tag


def boom(ctx: Any) -> None:
    """Raise an unclassified error."""
    raise RuntimeError("kaboom")


def deny(ctx: Any) -> None:
    """Raise an application error."""
    raise RpcError(-32000, "Denied", data={"reason": "test"})


def unserializable(ctx: Any) -> set[int]:
    """Return a value JSON cannot encode."""
    return {1, 2}


def whoami(ctx: Any) -> Any:
    """Return the ``user`` entry of a mapping context."""
    return ctx.get("user") if isinstance(ctx, Mapping) else None


def _as_agent(ctx: Any) -> dict[str, Any]:
    return {"user": "agent-007"}


def _reject(ctx: Any) -> Any:
    raise ValueError("no entry")


def build_tree() -> Node:
    """Build the tree shared by the test modules."""
    return router(
        hello=hello,
        add=add,
        echo=echo,
        slow=slow,
        boom=boom,
        deny=deny,
        unserializable=unserializable,
        whoami=whoami,
        math={"add": add},
        agent=with_context(_as_agent, router(hello=hello, whoami=whoami)),
        locked=with_context(_reject, {"secret": lambda ctx: "s3cret"}),
    )


@pytest.fixture
def root() -> Node:
    """Return the shared fixture tree."""
    return build_tree()
