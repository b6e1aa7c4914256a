"""Stubs (passive allowances) and mock expectations (strict, verified).

Only mock expectations take part in ``Proxy.verify()``. Stubs answer calls
but are never required to be called.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from doubletrace.domain.arguments import ANY_ARGS, ArgumentListMatcher
from doubletrace.domain.constraints import Constraint, once
from doubletrace.errors import UnmetExpectationError

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class MessageStub:
    """Allows a message and answers it.

    Attributes:
        message: Message name.
        args_matcher: Argument lists this stub answers.
        return_value: Returned when no implementation is given.
        implementation: Called with the received arguments; its result is
            returned instead of return_value.
    """

    message: str
    args_matcher: ArgumentListMatcher = ANY_ARGS
    return_value: Any = None
    implementation: Callable[..., Any] | None = None

    def matches(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        return self.args_matcher.matches(args, kwargs)

    def invoke(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if self.implementation is not None:
            return self.implementation(*args, **kwargs)
        return self.return_value


@dataclass
class MessageExpectation(MessageStub):
    """A message that must be received, checked by ``verify``.

    Attributes:
        constraint: Required number of invocations.
        ordered: Whether the expectation takes part in cross-object ordering.
        actual_count: Invocations so far.
    """

    constraint: Constraint = field(default_factory=once)
    ordered: bool = False
    actual_count: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def increase_actual_count(self) -> int:
        with self._lock:
            self.actual_count += 1
            return self.actual_count

    def verify(self, target: str) -> None:
        if not self.constraint.satisfied_by(self.actual_count):
            raise UnmetExpectationError(
                target,
                self.message,
                self.constraint,
                self.actual_count,
                self.args_matcher.describe(),
            )


@dataclass
class MethodDouble:
    """Per-message interception state held by a proxy."""

    message: str
    stubs: list[MessageStub] = field(default_factory=list)
    expectations: list[MessageExpectation] = field(default_factory=list)

    @property
    def mocked(self) -> bool:
        return bool(self.expectations)

    @property
    def stubbed(self) -> bool:
        return bool(self.stubs)

    def find_expectation(
        self, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> MessageExpectation | None:
        # Most recently declared wins.
        for expectation in reversed(self.expectations):
            if expectation.matches(args, kwargs):
                return expectation
        return None

    def find_stub(
        self, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> MessageStub | None:
        for stub in reversed(self.stubs):
            if stub.matches(args, kwargs):
                return stub
        return None

    def verify(self, target: str) -> list[UnmetExpectationError]:
        failures: list[UnmetExpectationError] = []
        for expectation in self.expectations:
            try:
                expectation.verify(target)
            except UnmetExpectationError as e:
                failures.append(e)
        return failures
