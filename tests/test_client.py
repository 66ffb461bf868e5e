# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Tests for the path-addressed client and in-process connections."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from rpctree.rpc import (
    MethodNotFoundError,
    Node,
    NotPlainObjectError,
    Pipelined,
    PipeliningNotSupportedError,
    Requester,
    RequesterConfig,
    RpcClient,
    ServerInfo,
    connect_local,
    pipeline,
    purify,
)


async def _unused_round_trip(payload: Any) -> Any:
    raise AssertionError("round trip should not run")


class TestPurify:
    """Argument checks before anything is queued."""

    def test_plain_values_pass(self) -> None:
        """JSON-compatible values are returned as plain data."""
        value = {"a": [1, 2.5, "x", None, True], "b": {"c": []}}
        assert purify(value) == value

    def test_tuples_become_lists(self) -> None:
        """Tuples are converted to lists."""
        assert purify((1, (2, 3))) == [1, [2, 3]]

    def test_object_rejected_with_path(self) -> None:
        """A non-plain value names its location."""
        with pytest.raises(NotPlainObjectError) as exc_info:
            purify([1, {"when": object()}])
        assert exc_info.value.path == [1, "when"]
        assert str(exc_info.value) == 'Object at "1.when" is not a plain object. Check the parameters.'

    def test_non_string_key_rejected(self) -> None:
        """Mappings must have string keys."""
        with pytest.raises(NotPlainObjectError):
            purify({1: "one"})

    def test_not_plain_object_is_type_error(self) -> None:
        """NotPlainObjectError can be caught as TypeError."""
        with pytest.raises(TypeError):
            purify({1, 2})

    def test_pipelined_rejected_by_default(self) -> None:
        """Pipelined markers are rejected unless allowed."""
        loop = asyncio.new_event_loop()
        try:
            marker = pipeline(loop.create_future())
            assert isinstance(marker, Pipelined)
            with pytest.raises(PipeliningNotSupportedError):
                purify([marker])
            assert purify([marker], allow_pipelined=True) == [marker]
        finally:
            loop.close()


class TestRpcClient:
    """Path handling and argument checks on the client facade."""

    def test_route_prefixes_path(self) -> None:
        """Sub-clients accumulate a path prefix and share the requester."""
        requester = Requester(_unused_round_trip)
        client = RpcClient(requester)
        agent = client.route("agent").route("v1")
        assert agent.path == ("agent", "v1")
        assert agent.requester is requester
        assert repr(agent) == "RpcClient(path='agent.v1')"

    @pytest.mark.parametrize("segment", ["", "a.b", "constructor", "__init__"])
    def test_route_rejects_illegal_segments(self, segment: str) -> None:
        """Route segments follow router key rules."""
        with pytest.raises(ValueError):
            RpcClient(Requester(_unused_round_trip)).route(segment)

    @pytest.mark.parametrize("method", ["", "a..b", "prototype", "x.__dict__"])
    def test_call_rejects_illegal_method(self, method: str) -> None:
        """Illegal method paths raise before anything is queued."""
        with pytest.raises(ValueError):
            RpcClient(Requester(_unused_round_trip)).call(method)

    def test_pipelined_argument_rejected(self) -> None:
        """Pipelined arguments need a pipelining requester."""

        async def run() -> None:
            client = RpcClient(Requester(_unused_round_trip))
            pending: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            with pytest.raises(PipeliningNotSupportedError):
                client.call("hello", pipeline(pending))
            assert client.requester.pending == 0
            pending.cancel()

        asyncio.run(run())

    def test_non_plain_argument_rejected(self) -> None:
        """A non-plain argument raises synchronously and queues nothing."""
        client = RpcClient(Requester(_unused_round_trip))
        with pytest.raises(NotPlainObjectError, match='Object at "0"'):
            client.call("hello", object())


class TestConnectLocal:
    """End-to-end calls through the in-process transport."""

    def test_hello(self, root: Node) -> None:
        """A call returns the endpoint's result."""

        async def run() -> Any:
            async with connect_local(root) as client:
                return await client.call("hello", "world")

        assert asyncio.run(run()) == "Hello, world!"

    def test_routed_calls(self, root: Node) -> None:
        """Routed sub-clients address nested endpoints."""

        async def run() -> list[Any]:
            async with connect_local(root, config=RequesterConfig(max_batch_size=3, max_batch_wait=0.01)) as client:
                agent = client.route("agent")
                return await asyncio.gather(
                    client.call("math.add", 2, 2),
                    agent.call("whoami"),
                    client.route("math").call("add", 1, 2),
                )

        assert asyncio.run(run()) == [4, "agent-007", 3]

    def test_context_factory(self, root: Node) -> None:
        """The context factory supplies the root context per round trip."""

        async def run() -> Any:
            async with connect_local(root, lambda: {"user": "alice"}) as client:
                return await client.call("whoami")

        assert asyncio.run(run()) == "alice"

    def test_values_round_trip(self, root: Node) -> None:
        """Arguments come back structurally equal through encode and decode."""
        value = {"nested": [1, 2.5, {"deep": [None, True, "text"]}], "empty": {}}

        async def run() -> Any:
            async with connect_local(root) as client:
                return await client.call("echo", value, [1, 2], "x")

        assert asyncio.run(run()) == [value, [1, 2], "x"]

    def test_remote_error(self, root: Node) -> None:
        """Error envelopes surface as RpcError subclasses."""

        async def run() -> None:
            async with connect_local(root) as client:
                with pytest.raises(MethodNotFoundError):
                    await client.call("missing")

        asyncio.run(run())

    def test_server_info(self, root: Node) -> None:
        """server_info queries the ``rpc.server`` method regardless of prefix."""

        async def run() -> Any:
            async with connect_local(root, server_info=ServerInfo(name="local")) as client:
                return await client.route("agent").server_info()

        assert asyncio.run(run()) == {"name": "local", "supportedExtensions": []}

    def test_exit_flushes_pending(self, root: Node) -> None:
        """Leaving the block sends calls still waiting in the queue."""

        async def run() -> asyncio.Future[Any]:
            async with connect_local(root, config=RequesterConfig(max_batch_size=5, max_batch_wait=60)) as client:
                future = client.call("hello", "bye")
            return future

        future = asyncio.run(run())
        assert future.result() == "Hello, bye!"
