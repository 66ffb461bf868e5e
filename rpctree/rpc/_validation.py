# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Argument validators backed by pydantic ``TypeAdapter``."""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError

from rpctree.rpc._common import InvalidParamsError
from rpctree.rpc._types import Validator


def pydantic_validator(*types: Any) -> Validator:
    """Return a validator checking each positional argument against a type.

    The returned callable has the validator signature ``(ctx, *args)``.  It
    raises :class:`InvalidParamsError` when the argument count differs from
    ``len(types)`` or when an argument fails validation; in the latter case
    ``data`` carries the argument index and pydantic's error list.

    Validation is strict about shape but does not convert values: handlers
    receive the arguments exactly as decoded from the request.
    """
    adapters = [TypeAdapter(t) for t in types]

    def validate(ctx: Any, *args: Any) -> None:
        if len(args) != len(adapters):
            raise InvalidParamsError(
                message="Invalid number of arguments",
                data={"expected": len(adapters), "received": len(args)},
            )
        for index, (adapter, value) in enumerate(zip(adapters, args, strict=True)):
            try:
                adapter.validate_python(value, strict=True)
            except ValidationError as exc:
                errors = exc.errors(include_url=False, include_context=False, include_input=False)
                first = errors[0]["msg"] if errors else str(exc)
                raise InvalidParamsError(
                    message=f"Type error at argument {index}: {first}",
                    data={"argument": index, "errors": errors},
                    original_error=exc,
                ) from exc

    return validate
