# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Constants, error taxonomy, and request correlation for the RPC framework."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any, Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

JSONRPC_VERSION: Final = "2.0"
PATH_SEPARATOR: Final = "."
SERVER_INFO_METHOD: Final = "rpc.server"

PARSE_ERROR: Final = -32700
INVALID_REQUEST: Final = -32600
METHOD_NOT_FOUND: Final = -32601
INVALID_PARAMS: Final = -32602
INTERNAL_ERROR: Final = -32603

RESERVED_NAMES: Final[frozenset[str]] = frozenset({"constructor", "prototype", "__proto__"})
"""Path segments that can never name a route, regardless of the tree."""

type JsonValue = None | bool | int | float | str | list[JsonValue] | dict[str, JsonValue]
type RequestId = str | int | float | None

_logger = logging.getLogger("rpctree.rpc")
_access_logger = logging.getLogger("rpctree.access")


def check_path_segment(segment: object) -> str | None:
    """Return a description of why *segment* is not a legal path segment, or ``None``."""
    if not isinstance(segment, str):
        return f"path segment must be a string, got {type(segment).__name__}"
    if not segment:
        return "path segment must not be empty"
    if PATH_SEPARATOR in segment:
        return f"path segment {segment!r} must not contain {PATH_SEPARATOR!r}"
    if segment in RESERVED_NAMES or (segment.startswith("__") and segment.endswith("__")):
        return f"path segment {segment!r} is a reserved name"
    return None


# ---------------------------------------------------------------------------
# Per-request correlation ID
# ---------------------------------------------------------------------------


def _generate_request_id() -> str:
    """Generate a 16-char hex request ID for correlation."""
    return uuid.uuid4().hex[:16]


_current_request_id: ContextVar[str] = ContextVar("rpctree_request_id", default="")


# ---------------------------------------------------------------------------
# Server-side error taxonomy
# ---------------------------------------------------------------------------


class RpcError(Exception):
    """A classified error carried in a JSON-RPC error envelope.

    Raise it (or a subclass) from an endpoint, validator, or context
    transformer to report a specific code, message, and optional data to the
    caller.  On the client side, error envelopes are raised as instances of
    this class (or of the subclass matching a reserved code).

    Attributes:
        code: Integer error code.  Codes -32768 to -32000 are reserved;
            -32099 to -32000 are conventionally used for application errors.
        message: Short human-readable description.
        data: Optional JSON value with additional detail.
        original_error: The unclassified exception this error wraps.  Kept
            in-process for diagnostics and never serialized.

    """

    default_code: int = INTERNAL_ERROR
    default_message: str = "Internal error"

    def __init__(
        self,
        code: int | None = None,
        message: str | None = None,
        data: Any = None,
        original_error: BaseException | None = None,
    ) -> None:
        """Initialize with code, message, optional data, and optional cause."""
        self.code = self.default_code if code is None else code
        self.message = self.default_message if message is None else message
        self.data = data
        self.original_error = original_error
        super().__init__(self.message)

    def __repr__(self) -> str:
        """Return a representation showing the code and message."""
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form of the error object (without the original cause)."""
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> RpcError:
        """Rebuild an error from its wire form, choosing the subclass by code."""
        code = obj.get("code")
        message = obj.get("message")
        if not isinstance(code, int) or isinstance(code, bool):
            code = INTERNAL_ERROR
        if not isinstance(message, str):
            message = str(message)
        error_cls = _ERRORS_BY_CODE.get(code, RpcError)
        return error_cls(code, message, obj.get("data"))


class ParseError(RpcError):
    """The payload could not be decoded as JSON."""

    default_code = PARSE_ERROR
    default_message = "Parse error"


class InvalidRequestError(RpcError):
    """The payload is JSON but not a well-formed request envelope."""

    default_code = INVALID_REQUEST
    default_message = "Invalid Request"


class MethodNotFoundError(RpcError):
    """The method path does not resolve to an endpoint."""

    default_code = METHOD_NOT_FOUND
    default_message = "Method not found"


class InvalidParamsError(RpcError):
    """The endpoint's validator rejected the arguments."""

    default_code = INVALID_PARAMS
    default_message = "Invalid params"


class InternalError(RpcError):
    """An unclassified failure inside a context transformer or endpoint."""

    default_code = INTERNAL_ERROR
    default_message = "Internal error"


_ERRORS_BY_CODE: Final[Mapping[int, type[RpcError]]] = {
    PARSE_ERROR: ParseError,
    INVALID_REQUEST: InvalidRequestError,
    METHOD_NOT_FOUND: MethodNotFoundError,
    INVALID_PARAMS: InvalidParamsError,
    INTERNAL_ERROR: InternalError,
}


# ---------------------------------------------------------------------------
# Client-side error taxonomy
# ---------------------------------------------------------------------------


class ClientError(Exception):
    """Base class for failures detected locally by the client transport."""


class RequesterError(ClientError):
    """A response did not match its request (shape, protocol version, or id)."""


class BatchMismatchError(ClientError):
    """A batch reply was not an array with one response per request."""


class TransportError(ClientError):
    """The round trip itself failed (network error, non-JSON reply).

    Attributes:
        status_code: HTTP status of the reply, when one was received.

    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize with a message and the optional HTTP status."""
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(TransportError):
    """The round trip exceeded its deadline."""


class NotPlainObjectError(ClientError, TypeError):
    """A call argument is not a plain JSON value."""

    def __init__(self, path: list[str | int]) -> None:
        """Initialize with the location of the offending value."""
        self.path = path
        location = ".".join(str(p) for p in path)
        super().__init__(f'Object at "{location}" is not a plain object. Check the parameters.')


class PipeliningNotSupportedError(ClientError):
    """A pipelined argument was passed to a requester that cannot pipeline."""

    def __init__(self) -> None:
        """Initialize with a fixed message."""
        super().__init__("Pipelining is not supported by the requester")
