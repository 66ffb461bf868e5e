# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""HTTP transport for rpctree using Falcon (server) and httpx (client).

Provides ``make_asgi_app`` to expose a procedure tree as a Falcon ASGI
application, and ``http_connect`` to call it from Python with ``httpx``.

HTTP Wire Protocol
------------------
A single route (default ``/``) accepts ``POST`` with a JSON-RPC 2.0 request
or batch and answers with ``Content-Type: application/json``.  The HTTP
status summarises the envelope(s):

- ``200`` every response is a result
- ``400`` parse error, invalid request, or invalid params
- ``404`` method not found
- ``500`` any other error
- ``207`` a batch whose elements map to different statuses

Clients decode the body regardless of status.  ``X-Request-ID`` is read or
generated per request and echoed on the response.

Optional dependencies: ``pip install rpctree[http]``
"""

from rpctree.http._client import HttpRequester, http_connect
from rpctree.http._common import _JSON_CONTENT_TYPE, _REQUEST_ID_HEADER, HttpContext
from rpctree.http._server import ContextFactory, make_asgi_app
from rpctree.http._testing import TEST_BASE_URL, make_test_client

__all__ = [
    "ContextFactory",
    "HttpContext",
    "HttpRequester",
    "TEST_BASE_URL",
    "_JSON_CONTENT_TYPE",
    "_REQUEST_ID_HEADER",
    "http_connect",
    "make_asgi_app",
    "make_test_client",
]
