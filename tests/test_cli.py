# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Tests for the rpctree CLI tool."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import uvicorn
from typer.testing import CliRunner

import rpctree.cli
from rpctree.cli import _parse_arg, app
from rpctree.http import make_test_client
from rpctree.logging_utils import RpcTreeJsonFormatter
from rpctree.rpc import Node

if TYPE_CHECKING:
    from collections.abc import Iterator

runner = CliRunner()

_URL = ["--url", "http://test/"]


@pytest.fixture(autouse=True)
def _reset_rpctree_logging() -> Iterator[None]:
    """Remove handlers installed by the CLI callback after each test."""
    logger = logging.getLogger("rpctree")
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if getattr(handler, "_rpctree_cli", False):
            logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def in_process(root: Node, monkeypatch: pytest.MonkeyPatch) -> None:
    """Route CLI HTTP calls to the fixture tree in-process."""
    monkeypatch.setattr(rpctree.cli, "_http_client", lambda: make_test_client(root))


# ---------------------------------------------------------------------------
# Tests: argument parsing
# ---------------------------------------------------------------------------


class TestParseArg:
    """Positional argument decoding."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1", 1),
            ("2.5", 2.5),
            ("true", True),
            ("null", None),
            ('{"a": [1]}', {"a": [1]}),
            ('"quoted"', "quoted"),
            ("world", "world"),
        ],
    )
    def test_json_or_string(self, raw: str, expected: Any) -> None:
        """Valid JSON is decoded; anything else stays a string."""
        assert _parse_arg(raw) == expected


# ---------------------------------------------------------------------------
# Tests: call and info
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("in_process")
class TestCall:
    """The ``call`` command."""

    def test_string_argument(self) -> None:
        """A bare word is sent as a string and the result printed as JSON."""
        result = runner.invoke(app, [*_URL, "call", "hello", "world"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == "Hello, world!"

    def test_numeric_arguments(self) -> None:
        """JSON arguments reach nested endpoints decoded."""
        result = runner.invoke(app, [*_URL, "call", "math.add", "1", "2"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == 3

    def test_structured_result(self) -> None:
        """Structured results print as JSON."""
        result = runner.invoke(app, [*_URL, "call", "echo", '{"k": [1, 2]}', "x"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [{"k": [1, 2]}, "x"]

    def test_method_not_found(self) -> None:
        """Remote errors print ``code: message`` and exit 1."""
        result = runner.invoke(app, [*_URL, "call", "missing"])
        assert result.exit_code == 1
        assert "-32601: Method not found" in result.output

    def test_error_data_printed(self) -> None:
        """Error data is printed after the message."""
        result = runner.invoke(app, [*_URL, "call", "deny"])
        assert result.exit_code == 1
        assert "-32000: Denied" in result.output
        assert '{"reason": "test"}' in result.output

    def test_illegal_method(self) -> None:
        """An illegal method path fails before any request."""
        result = runner.invoke(app, [*_URL, "call", "a..b"])
        assert result.exit_code == 1
        assert "Error:" in result.output


@pytest.mark.usefixtures("in_process")
class TestInfo:
    """The ``info`` command."""

    def test_server_info(self) -> None:
        """``info`` prints the ``rpc.server`` method result."""
        result = runner.invoke(app, [*_URL, "info"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"name": "rpctree", "supportedExtensions": []}


class TestGlobalOptions:
    """Options handled by the callback."""

    def test_non_positive_timeout(self) -> None:
        """A non-positive timeout is a usage error."""
        result = runner.invoke(app, ["--timeout", "0", "info"])
        assert result.exit_code == 2

    @pytest.mark.usefixtures("in_process")
    def test_json_log_format(self) -> None:
        """``--log-format json`` installs the JSON formatter."""
        result = runner.invoke(app, [*_URL, "--log-format", "json", "--log-level", "DEBUG", "info"])
        assert result.exit_code == 0, result.output
        logger = logging.getLogger("rpctree")
        installed = [h for h in logger.handlers if getattr(h, "_rpctree_cli", False)]
        assert len(installed) == 1
        assert isinstance(installed[0].formatter, RpcTreeJsonFormatter)
        assert logger.level == logging.DEBUG


# ---------------------------------------------------------------------------
# Tests: serve
# ---------------------------------------------------------------------------


class TestServe:
    """The ``serve`` command."""

    def test_serve_runs_uvicorn(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """The target is loaded and handed to uvicorn with the given bind."""
        (tmp_path / "rpctree_cli_target.py").write_text(
            "def ping(ctx):\n    return 'pong'\n\nroot = {'ping': ping}\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        calls: list[tuple[Any, dict[str, Any]]] = []
        monkeypatch.setattr(uvicorn, "run", lambda asgi_app, **kwargs: calls.append((asgi_app, kwargs)))

        result = runner.invoke(app, ["serve", "rpctree_cli_target:root", "--host", "0.0.0.0", "--port", "9001"])
        assert result.exit_code == 0, result.output
        assert len(calls) == 1
        asgi_app, kwargs = calls[0]
        assert callable(asgi_app)
        assert kwargs == {"host": "0.0.0.0", "port": 9001, "log_config": None}

    @pytest.mark.parametrize("target", ["no_colon", "rpctree_no_such_module_xyz:root", "json:no_such_attr"])
    def test_bad_target(self, target: str, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unloadable targets are usage errors."""
        monkeypatch.setattr(uvicorn, "run", lambda *a, **kw: pytest.fail("uvicorn.run called"))
        result = runner.invoke(app, ["serve", target])
        assert result.exit_code == 2

    def test_bad_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A relative ``--path`` is a usage error."""
        monkeypatch.setattr(uvicorn, "run", lambda *a, **kw: pytest.fail("uvicorn.run called"))
        result = runner.invoke(app, ["serve", "json:dumps", "--path", "rpc"])
        assert result.exit_code == 2
