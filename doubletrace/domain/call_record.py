"""Immutable log entry for one intercepted invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CallRecord:
    """A single received message.

    Attributes:
        message: Name of the message that was sent.
        args: Positional arguments, as received.
        kwargs: Keyword arguments, as received.
        position: Ordering Ledger position stamped when the call arrived.
        return_value: Value handed back to the caller (None if it raised).
        exception: Exception raised to the caller, if any.
    """

    message: str
    args: tuple[Any, ...]
    kwargs: dict[str, Any] = field(default_factory=dict)
    position: int = 0
    return_value: Any = None
    exception: BaseException | None = None

    @property
    def raised(self) -> bool:
        return self.exception is not None

    def describe_args(self) -> str:
        return format_args(self.args, self.kwargs)


def format_args(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """Render an argument list the way it would appear at a call site."""
    parts = [repr(a) for a in args]
    parts.extend(f"{k}={v!r}" for k, v in kwargs.items())
    return "(" + ", ".join(parts) + ")"
