"""Testing the HTTP transport without a running server.

``make_test_client`` wires an ``httpx.AsyncClient`` to the Falcon app through
``httpx.ASGITransport``, so the full HTTP stack (context factory, status
mapping, batching) runs in-process with zero network I/O.

Requires ``pip install rpctree[http]``

Run::

    python examples/testing_http.py
"""

from __future__ import annotations

import asyncio
from typing import Any

import falcon.asgi

from rpctree import MethodNotFoundError, RequesterConfig, router, validated
from rpctree.http import http_connect, make_test_client


@validated(str)
def greet(ctx: Any, name: str) -> str:
    """Greet by name."""
    return f"Hello, {name}!"


def whoami(ctx: dict[str, Any]) -> str:
    """Return the caller's identity."""
    return ctx["user"] or "anonymous"


root = router(greet=greet, whoami=whoami)


def _context(req: falcon.asgi.Request, resp: falcon.asgi.Response) -> dict[str, Any]:
    """Build the root context from a request header."""
    return {"user": req.get_header("X-User")}


async def _run() -> None:
    async with make_test_client(root, context_factory=_context, default_headers={"X-User": "tester"}) as http:
        # Raw envelopes: the HTTP status reflects the JSON-RPC outcome.
        resp = await http.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "nope", "params": []})
        print(resp.status_code, resp.json()["error"]["message"])  # 404 Method not found

        # Through the batching client.
        config = RequesterConfig(max_batch_size=5, max_batch_wait=0.005)
        async with http_connect("/", client=http, config=config) as client:
            print(await asyncio.gather(client.call("greet", "HTTP"), client.call("whoami")))
            try:
                await client.call("nope")
            except MethodNotFoundError as e:
                print(f"raised {type(e).__name__}")


def main() -> None:
    """Run the example."""
    asyncio.run(_run())


if __name__ == "__main__":
    main()
