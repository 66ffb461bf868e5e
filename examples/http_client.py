"""HTTP client that connects to the demo HTTP server.

Requires the HTTP extra: ``pip install rpctree[http]``

Start the server first::

    python examples/http_server.py

Then run this client::

    python examples/http_client.py
"""

from __future__ import annotations

import asyncio

from rpctree import RequesterConfig, RpcError
from rpctree.http import http_connect

PORT = 8234


async def _run(url: str) -> None:
    config = RequesterConfig(max_batch_size=10, max_batch_wait=0.005)
    async with http_connect(url, config=config, headers={"Authorization": "Bearer secret-token"}) as client:
        info = await client.server_info()
        print(f"Connected to {info['name']}")

        # Issued together, so sent as one batch.
        echoed, fib, user = await asyncio.gather(
            client.call("echo", "Hello over HTTP"),
            client.call("fibonacci", 50),
            client.route("account").call("whoami"),
        )
        print(echoed)
        print(fib)
        print(f"whoami: {user}")

    async with http_connect(url) as anonymous:
        try:
            await anonymous.call("account.whoami")
        except RpcError as e:
            print(f"anonymous whoami failed: {e.code} {e.message}")


def main() -> None:
    """Run the example against the local demo server."""
    asyncio.run(_run(f"http://127.0.0.1:{PORT}/"))


if __name__ == "__main__":
    main()
