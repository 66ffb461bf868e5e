"""Minimal rpctree example: define a procedure tree and call it in-process.

This is the quickest way to get started.  ``connect_local`` runs each
request through the same JSON encode/decode path the HTTP transport uses,
so no server or network is needed.

Run::

    python examples/hello_world.py
"""

from __future__ import annotations

import asyncio
from typing import Any

from rpctree import RequesterConfig, connect_local, router, validated, with_context


# 1. Endpoints are plain functions (sync or async) taking the context first.
#    ``validated`` checks the positional arguments with pydantic.
@validated(str)
def greet(ctx: Any, name: str) -> str:
    """Return a greeting for *name*."""
    return f"Hello, {name}!"


@validated(float, float)
async def add(ctx: Any, a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


def whoami(ctx: dict[str, Any]) -> str:
    """Return the user the enclosing transformer put in the context."""
    return ctx["user"]


# 2. Routers nest; ``with_context`` rewrites the context for a subtree.
root = router(
    greet=greet,
    math={"add": add},
    admin=with_context(lambda ctx: {"user": "root"}, router(whoami=whoami)),
)


# 3. Connect in-process.  Calls issued together share one batch.
async def _run() -> None:
    config = RequesterConfig(max_batch_size=10, max_batch_wait=0.005)
    async with connect_local(root, config=config) as client:
        greeting, total, user = await asyncio.gather(
            client.call("greet", "World"),
            client.route("math").call("add", 2.5, 3.5),
            client.call("admin.whoami"),
        )
        print(greeting)  # Hello, World!
        print(total)  # 6.0
        print(user)  # root


def main() -> None:
    """Run the example."""
    asyncio.run(_run())


if __name__ == "__main__":
    main()
