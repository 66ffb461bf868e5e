# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Command-line interface for rpctree services.

Provides ``call`` and ``info`` commands for invoking procedures on any
rpctree HTTP endpoint, and ``serve`` for exposing a procedure tree with
uvicorn.

Usage::

    rpctree --url http://localhost:8000/ call hello world
    rpctree call math.add 1 2
    rpctree --url http://localhost:8000/ info
    rpctree serve myapp.api:root --port 8000

"""

from __future__ import annotations

import asyncio
import importlib
import json
import sys
from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any

import httpx
import typer

from rpctree.http import http_connect, make_asgi_app
from rpctree.logging_utils import configure_logging
from rpctree.rpc import ClientError, Node, RequesterConfig, RpcError, as_node

# ---------------------------------------------------------------------------
# Option enums
# ---------------------------------------------------------------------------


class LogFormat(StrEnum):
    """Log output format for CLI commands."""

    text = "text"
    json = "json"


class LogLevel(StrEnum):
    """Log level for the ``rpctree`` logger hierarchy."""

    debug = "DEBUG"
    info = "INFO"
    warning = "WARNING"
    error = "ERROR"


# ---------------------------------------------------------------------------
# CLI config
# ---------------------------------------------------------------------------


@dataclass
class _CliConfig:
    """Holds resolved CLI options."""

    url: str = "http://127.0.0.1:8000/"
    timeout: float = 10.0


app = typer.Typer(
    name="rpctree",
    help="CLI for rpctree JSON-RPC services.",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def _main(
    ctx: typer.Context,
    url: Annotated[str, typer.Option("--url", "-u", help="Endpoint URL")] = "http://127.0.0.1:8000/",
    timeout: Annotated[float, typer.Option("--timeout", "-t", help="Round-trip timeout in seconds")] = 10.0,
    log_level: Annotated[LogLevel, typer.Option("--log-level", help="Log level")] = LogLevel.warning,
    log_format: Annotated[LogFormat, typer.Option("--log-format", help="Log output format")] = LogFormat.text,
) -> None:
    """Configure endpoint, timeout, and logging options."""
    if timeout <= 0:
        raise typer.BadParameter("--timeout must be positive")
    configure_logging(log_level.value, json_output=log_format is LogFormat.json)
    ctx.obj = _CliConfig(url=url, timeout=timeout)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_arg(raw: str) -> Any:
    """Decode a positional argument as JSON, or keep it as a plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _print_json(data: object) -> None:
    """Print JSON to stdout, indented when stdout is a terminal."""
    if sys.stdout.isatty():
        typer.echo(json.dumps(data, indent=2, default=str))
    else:
        typer.echo(json.dumps(data, default=str))


def _emit_rpc_error(e: RpcError) -> None:
    """Write an RpcError to stderr as ``code: message`` plus any data."""
    typer.echo(f"{e.code}: {e.message}", err=True)
    if e.data is not None:
        typer.echo(json.dumps(e.data, default=str), err=True)


def _http_client() -> httpx.AsyncClient:
    """Create the httpx client used by ``call`` and ``info``."""
    return httpx.AsyncClient(follow_redirects=True)


async def _invoke(config: _CliConfig, method: str | None, args: list[Any]) -> Any:
    """Call *method* (or the ``rpc.server`` method when ``None``) and return the result."""
    async with (
        _http_client() as client,
        http_connect(config.url, client=client, config=RequesterConfig(timeout=config.timeout)) as rpc,
    ):
        if method is None:
            return await rpc.server_info()
        return await rpc.call(method, *args)


def _run(config: _CliConfig, method: str | None, args: list[Any]) -> None:
    """Run one call and print the result, mapping failures to exit code 1."""
    try:
        result = asyncio.run(_invoke(config, method, args))
    except RpcError as e:
        _emit_rpc_error(e)
        raise typer.Exit(1) from None
    except (ClientError, ValueError, httpx.HTTPError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    _print_json(result)


def _load_target(target: str) -> Node:
    """Import ``module:attr`` and return it as a procedure tree node."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"expected MODULE:ATTR, got {target!r}")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"cannot import {module_name!r}: {e}") from e
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise typer.BadParameter(f"{module_name!r} has no attribute {attr!r}") from e
    try:
        return as_node(obj)
    except TypeError as e:
        raise typer.BadParameter(str(e)) from e


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def call(
    ctx: typer.Context,
    method: Annotated[str, typer.Argument(help="Dotted method path, e.g. agent.hello")],
    args: Annotated[list[str] | None, typer.Argument(help="Positional params, parsed as JSON")] = None,
) -> None:
    """Call a procedure and print its JSON result."""
    config: _CliConfig = ctx.obj
    _run(config, method, [_parse_arg(a) for a in args or []])


@app.command()
def info(ctx: typer.Context) -> None:
    """Print the server's ``rpc.server`` information."""
    config: _CliConfig = ctx.obj
    _run(config, None, [])


@app.command()
def serve(
    target: Annotated[str, typer.Argument(help="Procedure tree to serve, as MODULE:ATTR")],
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
    path: Annotated[str, typer.Option("--path", help="Route accepting POST requests")] = "/",
    name: Annotated[str, typer.Option("--name", help="Server name reported by rpc.server")] = "rpctree",
) -> None:
    """Serve a procedure tree over HTTP with uvicorn."""
    import uvicorn

    root = _load_target(target)
    try:
        asgi_app = make_asgi_app(root, path=path, server_name=name)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    uvicorn.run(asgi_app, host=host, port=port, log_config=None)
