# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""HTTP client implementation using httpx.

Provides :class:`HttpRequester`, a :class:`Requester` that POSTs each flush
as JSON, and the ``http_connect`` context manager.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from rpctree.rpc import Requester, RequesterConfig, RpcClient, TransportError
from rpctree.rpc._debug import fmt_payload, wire_http_logger

from ._common import _JSON_CONTENT_TYPE


class _HttpRoundTrip:
    """POST one payload and decode the JSON reply, whatever the HTTP status.

    Error envelopes arrive with 4xx/5xx statuses, so the status alone does
    not mean the round trip failed; only an undecodable body does.
    """

    __slots__ = ("_client", "_headers", "_url")

    def __init__(self, client: httpx.AsyncClient, url: str, headers: Mapping[str, str]) -> None:
        self._client = client
        self._url = url
        self._headers = {"Accept": _JSON_CONTENT_TYPE, **headers}

    async def __call__(self, payload: Any) -> Any:
        if wire_http_logger.isEnabledFor(logging.DEBUG):
            wire_http_logger.debug("HTTP POST %s: %s", self._url, fmt_payload(payload))
        resp = await self._client.post(self._url, json=payload, headers=self._headers)
        if wire_http_logger.isEnabledFor(logging.DEBUG):
            wire_http_logger.debug(
                "HTTP response: status=%d, content_type=%s, size=%d",
                resp.status_code,
                resp.headers.get("content-type", ""),
                len(resp.content),
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                f"HTTP {resp.status_code}: response body is not JSON",
                status_code=resp.status_code,
            ) from exc


class HttpRequester(Requester):
    """A :class:`Requester` whose round trips are HTTP POSTs.

    Args:
        url: Endpoint URL.  May be relative when *client* has a ``base_url``.
        client: Optional ``httpx.AsyncClient`` to reuse.  When omitted, one
            is created and closed by :meth:`aclose`.
        config: Batching and deadline policy.
        headers: Extra headers sent with every POST.

    """

    __slots__ = ("_client", "_own_client")

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        config: RequesterConfig | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize with the endpoint URL and optional client, policy, and headers."""
        self._own_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(follow_redirects=True)
        super().__init__(_HttpRoundTrip(self._client, url, headers or {}), config)

    async def aclose(self) -> None:
        """Flush outstanding calls, then close the httpx client if owned."""
        try:
            await super().aclose()
        finally:
            if self._own_client:
                await self._client.aclose()


@contextlib.asynccontextmanager
async def http_connect(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    config: RequesterConfig | None = None,
    headers: Mapping[str, str] | None = None,
) -> AsyncIterator[RpcClient]:
    """Connect to an HTTP JSON-RPC endpoint and yield a client.

    Args:
        url: Endpoint URL (e.g. ``http://localhost:8000/``).  May be
            relative when *client* carries a ``base_url``.
        client: Optional ``httpx.AsyncClient``, for example one from
            :func:`make_test_client`.  It is left open on exit.
        config: Batching and deadline policy.
        headers: Extra headers sent with every POST.

    Yields:
        An :class:`RpcClient` bound to the root of the remote tree.

    """
    requester = HttpRequester(url, client=client, config=config, headers=headers)
    try:
        yield RpcClient(requester)
    finally:
        await requester.aclose()
