# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Client transport: queue outgoing calls, flush them in batches, match responses.

A :class:`Requester` owns one queue of pending calls.  ``request()`` never
suspends: it builds the request, appends it to the queue, and either
snapshots the queue immediately (size limit reached) or arms a timer for
the wait window.  Taking the snapshot cancels the timer and swaps the queue
in one synchronous step, so a second flush trigger always sees an empty
queue and does nothing.

A flush of one call sends a single request object; a flush of several sends
a batch array.  Batch replies are matched to calls by position.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol

from rpctree.rpc._common import (
    JSONRPC_VERSION,
    PATH_SEPARATOR,
    BatchMismatchError,
    ClientError,
    RequesterError,
    RequestTimeoutError,
    RpcError,
    TransportError,
)
from rpctree.rpc._debug import fmt_methods, fmt_payload, wire_batch_logger
from rpctree.rpc._dispatch import ErrorHandler, _resolve
from rpctree.rpc._types import Node
from rpctree.rpc._wire import _DEFAULT_SERVER_INFO, Request, ServerInfo, call, encode, parse_request

_logger = logging.getLogger("rpctree.client")


class RoundTrip(Protocol):
    """Sends one decoded JSON payload (request or batch) and returns the decoded reply."""

    async def __call__(self, payload: Any) -> Any:
        """Perform the round trip."""
        ...


@dataclass(frozen=True)
class RequesterConfig:
    """Batching and deadline policy for a :class:`Requester`.

    Attributes:
        max_batch_size: Flush as soon as this many calls are queued.  The
            default of ``1`` sends every call on its own.
        max_batch_wait: Seconds to wait after the first queued call before
            flushing a partial batch.
        timeout: Deadline in seconds for each round trip, or ``None`` for
            no deadline.

    Raises:
        ValueError: If *max_batch_size* < 1, *max_batch_wait* < 0, or
            *timeout* <= 0.

    """

    max_batch_size: int = 1
    max_batch_wait: float = 0.0
    timeout: float | None = 10.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {self.max_batch_size}")
        if self.max_batch_wait < 0:
            raise ValueError(f"max_batch_wait must be >= 0, got {self.max_batch_wait}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")


@dataclass(slots=True)
class PendingCall:
    """A queued request and the future its caller is waiting on."""

    request: Request
    future: asyncio.Future[Any]


def _check_response(request: Request, response: Any) -> Any:
    """Validate one response against its request and return the result.

    Raises:
        RequesterError: If the response shape, version, or id does not match.
        RpcError: If the response carries an error envelope.

    """
    if not isinstance(response, Mapping):
        raise RequesterError("Invalid response")
    if response.get("jsonrpc") != JSONRPC_VERSION:
        raise RequesterError("Invalid JSON-RPC version")
    response_id = response.get("id")
    error = response.get("error")
    # A null id on an error means the server could not attribute it; it still answers this call.
    unattributed = response_id is None and error is not None
    if not unattributed and (isinstance(response_id, bool) or response_id != request.id):
        raise RequesterError(f"Invalid response ID: expected {request.id!r}, got {response_id!r}")
    if error is not None:
        raise RpcError.from_dict(error if isinstance(error, Mapping) else {"message": str(error)})
    return response.get("result")


class Requester:
    """Batches calls over a :class:`RoundTrip` and settles each caller's future.

    Must be used from a single event loop.  Request ids start at 1 and
    increase for the life of the instance.
    """

    supports_pipelining: ClassVar[bool] = False

    __slots__ = ("_config", "_next_id", "_queue", "_round_trip", "_sending", "_timer")

    def __init__(self, round_trip: RoundTrip, config: RequesterConfig | None = None) -> None:
        """Initialize with a round-trip callable and an optional batching policy."""
        self._round_trip = round_trip
        self._config = config or RequesterConfig()
        self._next_id = 1
        self._queue: list[PendingCall] = []
        self._timer: asyncio.TimerHandle | None = None
        self._sending: set[asyncio.Task[None]] = set()

    @property
    def config(self) -> RequesterConfig:
        """The batching and deadline policy."""
        return self._config

    @property
    def pending(self) -> int:
        """Number of calls queued but not yet flushed."""
        return len(self._queue)

    def request(self, path: Sequence[str], args: Sequence[Any]) -> asyncio.Future[Any]:
        """Queue a call and return a future for its result.

        Must be called with a running event loop.  The future resolves to
        the response's ``result`` or fails with the decoded :class:`RpcError`
        or a :class:`ClientError`.
        """
        loop = asyncio.get_running_loop()
        request = Request(self._next_id, PATH_SEPARATOR.join(path), list(args))
        self._next_id += 1
        future: asyncio.Future[Any] = loop.create_future()
        self._queue.append(PendingCall(request, future))
        if len(self._queue) >= self._config.max_batch_size:
            self._start_send(self._take())
        elif self._timer is None:
            self._timer = loop.call_later(self._config.max_batch_wait, self._on_timer)
        return future

    async def flush(self) -> None:
        """Send whatever is queued now and wait for the round trip to finish."""
        batch = self._take()
        if batch:
            await self._send(batch)

    async def aclose(self) -> None:
        """Flush the queue and wait for every in-flight round trip."""
        await self.flush()
        if self._sending:
            await asyncio.gather(*self._sending)

    # -- internals ----------------------------------------------------------

    def _take(self) -> list[PendingCall]:
        """Snapshot and reset the queue, disarming the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        batch, self._queue = self._queue, []
        return batch

    def _on_timer(self) -> None:
        self._timer = None
        batch = self._take()
        if batch:
            self._start_send(batch)

    def _start_send(self, batch: list[PendingCall]) -> None:
        task = asyncio.get_running_loop().create_task(self._send(batch))
        self._sending.add(task)
        task.add_done_callback(self._sending.discard)

    async def _send(self, batch: list[PendingCall]) -> None:
        """Perform one round trip for *batch* and settle every future in it."""
        if len(batch) == 1:
            payload: Any = batch[0].request.to_dict()
        else:
            payload = [p.request.to_dict() for p in batch]
        if wire_batch_logger.isEnabledFor(logging.DEBUG):
            wire_batch_logger.debug("Flush: size=%d, methods=%s", len(batch), fmt_methods(payload))

        try:
            async with asyncio.timeout(self._config.timeout):
                reply = await self._round_trip(payload)
        except TimeoutError:
            _logger.warning(
                "Round trip timed out after %ss (%d calls)",
                self._config.timeout,
                len(batch),
                extra={"batch_size": len(batch)},
            )
            self._fail_all(batch, RequestTimeoutError(f"Request timed out after {self._config.timeout}s"))
            return
        except asyncio.CancelledError:
            for pending in batch:
                pending.future.cancel()
            raise
        except (ClientError, RpcError) as exc:
            self._fail_all(batch, exc)
            return
        except Exception as exc:
            _logger.warning(
                "Round trip failed: %s",
                exc,
                extra={"batch_size": len(batch), "error_type": type(exc).__name__},
            )
            error = TransportError(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
            self._fail_all(batch, error)
            return

        if wire_batch_logger.isEnabledFor(logging.DEBUG):
            wire_batch_logger.debug("Reply: %s", fmt_payload(reply))

        if len(batch) == 1:
            self._settle(batch[0], reply)
            return
        if not isinstance(reply, list) or len(reply) != len(batch):
            received = len(reply) if isinstance(reply, list) else type(reply).__name__
            self._fail_all(batch, BatchMismatchError(f"Expected {len(batch)} responses, got {received}"))
            return
        for pending, response in zip(batch, reply, strict=True):
            self._settle(pending, response)

    @staticmethod
    def _settle(pending: PendingCall, response: Any) -> None:
        if pending.future.done():
            return
        try:
            result = _check_response(pending.request, response)
        except (RequesterError, RpcError) as exc:
            pending.future.set_exception(exc)
        else:
            pending.future.set_result(result)

    @staticmethod
    def _fail_all(batch: list[PendingCall], error: BaseException) -> None:
        for pending in batch:
            if not pending.future.done():
                pending.future.set_exception(error)


class LocalRoundTrip:
    """In-process round trip that feeds payloads straight to the envelope codec.

    Responses are JSON-encoded and decoded again so callers observe exactly
    what a network transport would deliver.
    """

    __slots__ = ("_context_factory", "_error_handler", "_root", "_server_info")

    def __init__(
        self,
        root: Node,
        context_factory: Callable[[], Any] | None = None,
        *,
        error_handler: ErrorHandler | None = None,
        server_info: ServerInfo = _DEFAULT_SERVER_INFO,
    ) -> None:
        """Initialize with the tree to serve and a per-round-trip context factory."""
        self._root = root
        self._context_factory = context_factory
        self._error_handler = error_handler
        self._server_info = server_info

    async def __call__(self, payload: Any) -> Any:
        """Dispatch *payload* locally and return the decoded reply."""
        context = await _resolve(self._context_factory()) if self._context_factory is not None else None
        parsed = parse_request(json.loads(json.dumps(payload)))
        response = await call(
            self._root,
            context,
            parsed,
            error_handler=self._error_handler,
            server_info=self._server_info,
        )
        return json.loads(encode(response))
