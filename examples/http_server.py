"""HTTP server example using Falcon (ASGI) and uvicorn.

Requires the HTTP extra: ``pip install rpctree[http]``

Start the server::

    python examples/http_server.py

Then run the client in another terminal::

    python examples/http_client.py

The same tree can be served with the CLI::

    rpctree serve examples.http_server:root --port 8234
"""

from __future__ import annotations

import sys
from typing import Any

import falcon.asgi
import uvicorn

from rpctree import RpcError, router, validated, with_context
from rpctree.http import HttpContext, make_asgi_app
from rpctree.logging_utils import configure_logging

PORT = 8234

_TOKENS = {"secret-token": "alice"}


# ---------------------------------------------------------------------------
# Procedure tree
# ---------------------------------------------------------------------------


@validated(str)
def echo(ctx: Any, message: str) -> str:
    """Echo a message back."""
    return message


@validated(int)
def fibonacci(ctx: Any, limit: int) -> list[int]:
    """Return the Fibonacci numbers up to *limit*."""
    out: list[int] = []
    a, b = 0, 1
    while a <= limit:
        out.append(a)
        a, b = b, a + b
    return out


def _authenticate(ctx: HttpContext) -> dict[str, str]:
    """Resolve the bearer token to a user, or refuse the subtree."""
    header = ctx.request.get_header("Authorization") or ""
    user = _TOKENS.get(header.removeprefix("Bearer "))
    if user is None:
        raise RpcError(-32001, "Unauthorized")
    return {"user": user}


def whoami(ctx: dict[str, str]) -> str:
    """Return the authenticated user."""
    return ctx["user"]


root = router(
    echo=echo,
    fibonacci=fibonacci,
    account=with_context(_authenticate, router(whoami=whoami)),
)


def create_app() -> falcon.asgi.App:
    """Build the ASGI application."""
    return make_asgi_app(root, server_name="demo", cors_origins="*")


def main() -> None:
    """Serve on ``PORT`` (or the port given as the first argument)."""
    port = int(sys.argv[1]) if len(sys.argv) > 1 else PORT
    configure_logging("INFO")
    uvicorn.run(create_app(), host="127.0.0.1", port=port, log_config=None)


if __name__ == "__main__":
    main()
