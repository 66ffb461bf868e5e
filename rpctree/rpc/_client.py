# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Client facade: path-addressed calls over a :class:`Requester`.

Calls are enqueued synchronously so that several calls issued before the
first ``await`` can share one batch::

    client = RpcClient(Requester(round_trip, RequesterConfig(max_batch_size=10, max_batch_wait=0.005)))
    a = client.call("hello", "world")
    b = client.route("agent").call("hello", "world")
    print(await a, await b)
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from rpctree.rpc._common import (
    PATH_SEPARATOR,
    SERVER_INFO_METHOD,
    NotPlainObjectError,
    PipeliningNotSupportedError,
    check_path_segment,
)
from rpctree.rpc._dispatch import ErrorHandler
from rpctree.rpc._requester import LocalRoundTrip, Requester, RequesterConfig
from rpctree.rpc._types import Node
from rpctree.rpc._wire import _DEFAULT_SERVER_INFO, ServerInfo


@dataclass(frozen=True, slots=True)
class Pipelined:
    """Marks a pending result to be used as an argument of a later call.

    Only requesters advertising ``supports_pipelining`` accept it.
    """

    future: asyncio.Future[Any]


def pipeline(future: asyncio.Future[Any]) -> Pipelined:
    """Wrap a pending call result for use as an argument."""
    return Pipelined(future)


def purify(value: Any, path: list[str | int] | None = None, *, allow_pipelined: bool = False) -> Any:
    """Return *value* as plain JSON data, or raise if it is not one.

    Tuples become lists; mappings must have string keys.

    Raises:
        NotPlainObjectError: If *value* contains anything other than
            ``None``, ``bool``, ``int``, ``float``, ``str``, lists, tuples, or
            string-keyed mappings.  ``path`` names the offending location.
        PipeliningNotSupportedError: If *value* contains a
            :class:`Pipelined` marker and *allow_pipelined* is false.

    """
    path = [] if path is None else path
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Pipelined):
        if not allow_pipelined:
            raise PipeliningNotSupportedError()
        return value
    if isinstance(value, (list, tuple)):
        return [purify(item, [*path, i], allow_pipelined=allow_pipelined) for i, item in enumerate(value)]
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise NotPlainObjectError([*path, str(key)])
            out[key] = purify(item, [*path, key], allow_pipelined=allow_pipelined)
        return out
    raise NotPlainObjectError(path)


def _split(method: str) -> list[str]:
    segments = method.split(PATH_SEPARATOR) if method else []
    for segment in segments:
        problem = check_path_segment(segment)
        if problem is not None:
            raise ValueError(f"Invalid method {method!r}: {problem}")
    return segments


class RpcClient:
    """Calls procedures by path through a :class:`Requester`.

    Sub-clients created with :meth:`route` share the parent's requester, so
    their calls batch together.
    """

    __slots__ = ("_path", "_requester")

    def __init__(self, requester: Requester, path: Sequence[str] = ()) -> None:
        """Initialize with a requester and an optional path prefix.

        Raises:
            ValueError: If a prefix segment is not a legal path segment.

        """
        for segment in path:
            problem = check_path_segment(segment)
            if problem is not None:
                raise ValueError(problem)
        self._requester = requester
        self._path: tuple[str, ...] = tuple(path)

    @property
    def requester(self) -> Requester:
        """The shared requester."""
        return self._requester

    @property
    def path(self) -> tuple[str, ...]:
        """Path prefix applied to every call."""
        return self._path

    def __repr__(self) -> str:
        """Return a representation showing the path prefix."""
        return f"RpcClient(path={PATH_SEPARATOR.join(self._path)!r})"

    def route(self, *segments: str) -> RpcClient:
        """Return a client whose calls are prefixed with *segments*."""
        return RpcClient(self._requester, (*self._path, *segments))

    def call(self, method: str, *args: Any) -> asyncio.Future[Any]:
        """Enqueue a call to *method* (dotted, relative to this client's prefix).

        Must be called with a running event loop.  Arguments are checked
        before anything is queued.

        Raises:
            ValueError: If *method* is not a legal path.
            NotPlainObjectError: If an argument is not plain JSON data.
            PipeliningNotSupportedError: If an argument is :class:`Pipelined`.

        """
        path = [*self._path, *_split(method)]
        if not path:
            raise ValueError("Method path must not be empty")
        plain = purify(list(args), allow_pipelined=self._requester.supports_pipelining)
        return self._requester.request(path, plain)

    async def server_info(self) -> dict[str, Any]:
        """Query the server's ``rpc.server`` method (ignores the path prefix)."""
        result: dict[str, Any] = await self._requester.request(SERVER_INFO_METHOD.split(PATH_SEPARATOR), [])
        return result


@contextlib.asynccontextmanager
async def connect_local(
    root: Node,
    context_factory: Callable[[], Any] | None = None,
    *,
    config: RequesterConfig | None = None,
    error_handler: ErrorHandler | None = None,
    server_info: ServerInfo = _DEFAULT_SERVER_INFO,
) -> AsyncIterator[RpcClient]:
    """Serve *root* in-process and yield a client connected to it.

    Outstanding calls are flushed when the block exits.

    Example::

        async with connect_local(root, lambda: {"user": "alice"}) as client:
            print(await client.call("hello", "world"))

    """
    round_trip = LocalRoundTrip(root, context_factory, error_handler=error_handler, server_info=server_info)
    requester = Requester(round_trip, config)
    try:
        yield RpcClient(requester)
    finally:
        await requester.aclose()
