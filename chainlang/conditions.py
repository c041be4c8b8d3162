from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .results import CommandResult

SUCCESS_MARKERS = ("success", "complete", "passed")

_MISSING = object()


def get_field(value: Any, name: str, default: Any = _MISSING) -> Any:
    """Read ``name`` from a mapping key or an attribute, whichever exists."""
    if isinstance(value, Mapping):
        return value.get(name, default)
    return getattr(value, name, default)


def evaluate_condition(result: Any) -> bool:
    """Decide which branch of a conditional runs.

    A command result is judged by what the handler returned. Then, in order:
    a ``success`` field wins; a non-None ``error`` field means false; a boolean
    ``output`` is used as is and a string ``output`` is true only when it
    mentions success, complete or passed. Anything else falls back to plain
    truthiness.
    """
    if isinstance(result, CommandResult):
        return _judge(result.output)
    return _judge(result)


def _judge(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return any(marker in value for marker in SUCCESS_MARKERS)
    if value is None or isinstance(value, (int, float, list, tuple)):
        return bool(value)

    success = get_field(value, "success")
    if success is not _MISSING:
        return bool(success)
    error = get_field(value, "error")
    # ``error: None`` is the usual Python spelling of "no error".
    if error is not _MISSING and error is not None:
        return False
    output = get_field(value, "output")
    if isinstance(output, bool):
        return output
    if isinstance(output, str):
        return any(marker in output for marker in SUCCESS_MARKERS)
    return bool(value)
