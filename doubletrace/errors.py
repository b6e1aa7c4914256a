"""Exception hierarchy for doubletrace.

Two families:
- Usage and lifecycle errors (DoubleError subclasses) signal that the
  library was driven incorrectly.
- Verification failures (ExpectationFailure subclasses) also derive from
  AssertionError so test runners report them as failed assertions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from doubletrace.domain.constraints import Constraint


class DoubleError(Exception):
    """Base exception for all doubletrace errors."""


class LifecycleError(DoubleError):
    """Raised when a registry operation is attempted outside an open scope."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "The use of doubles or partial doubles outside of the "
            "per-test lifecycle is not supported."
        )


class UsageError(DoubleError):
    """Raised when an assertion is declared in a contradictory way."""


class InterfaceError(DoubleError):
    """Raised by verifying proxies when a message is not part of the target's interface.

    Attributes:
        message: The message name that failed verification.
        reason: Human-readable explanation (missing method, arity mismatch).
    """

    def __init__(self, message: str, reason: str) -> None:
        self.message = message
        self.reason = reason
        super().__init__(reason)


class ExpectationFailure(DoubleError, AssertionError):
    """Base class for failures raised while verifying recorded calls."""


class NotStubbedError(ExpectationFailure):
    def __init__(self, target: str, message: str) -> None:
        self.target = target
        self.message = message
        super().__init__(
            f"{target} expected to have received {message}, but that object "
            "is not a spy or method has not been stubbed."
        )


class MockedInsteadOfStubbedError(ExpectationFailure):
    def __init__(self, target: str, message: str) -> None:
        self.target = target
        self.message = message
        super().__init__(
            f"{target} expected to have received {message}, but that method "
            "has been mocked instead of stubbed or spied."
        )


def pluralize(count: int) -> str:
    """Render a call count as "1 time" or "N times"."""
    return f"{count} time" if count == 1 else f"{count} times"


class CountMismatchError(ExpectationFailure):
    """Raised when the number of selected calls violates a Constraint.

    Attributes:
        target: Description of the receiving object.
        message: The message name.
        expected: The Constraint that was declared.
        actual: Number of calls that matched.
        args_description: Rendering of the expected argument list.
        received_args: Argument lists actually received when none matched the
            expected ones (empty when the arguments were not the problem).
    """

    def __init__(
        self,
        target: str,
        message: str,
        expected: Constraint,
        actual: int,
        args_description: str = "(*(any args))",
        received_args: Sequence[str] = (),
    ) -> None:
        self.target = target
        self.message = message
        self.expected = expected
        self.actual = actual
        self.args_description = args_description
        self.received_args = tuple(received_args)
        super().__init__(self._render())

    def _render(self) -> str:
        if self.received_args:
            lines = [
                f"{self.target} received {self.message!r} with unexpected arguments",
                f"  expected: {self.args_description} {self.expected.describe()}",
            ]
            lines.extend(f"       got: {args}" for args in self.received_args)
            return "\n".join(lines)
        return (
            f"{self.target}.{self.message}{self.args_description}\n"
            f"    expected: {self.expected.describe()}\n"
            f"    received: {pluralize(self.actual)}"
        )


class OutOfOrderError(ExpectationFailure):
    def __init__(self, target: str, message: str) -> None:
        self.target = target
        self.message = message
        super().__init__(f"{target} received {message!r} out of order")


class UnexpectedMessageError(ExpectationFailure):
    """Raised when a double receives a message nothing allowed or expected."""

    def __init__(self, target: str, message: str, args_description: str = "") -> None:
        self.target = target
        self.message = message
        if args_description:
            text = (
                f"{target} received {message!r} with unexpected arguments "
                f"{args_description}"
            )
        else:
            text = f"{target} received unexpected message {message!r}"
        super().__init__(text)


class UnmetExpectationError(ExpectationFailure):
    """Raised at verification time for mocked expectations that were not met.

    Attributes:
        target: Description of the receiving object.
        message: The message name.
        expected: The declared Constraint.
        actual: How many times the expectation was invoked.
    """

    def __init__(
        self,
        target: str,
        message: str,
        expected: Constraint,
        actual: int,
        args_description: str = "(*(any args))",
    ) -> None:
        self.target = target
        self.message = message
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{target}.{message}{args_description}\n"
            f"    expected: {expected.describe()}\n"
            f"    received: {pluralize(actual)}"
        )


class UnmetExpectationsError(UnmetExpectationError):
    """Aggregate of several UnmetExpectationError raised by one verify pass."""

    def __init__(self, failures: Sequence[UnmetExpectationError]) -> None:
        self.failures = list(failures)
        first = self.failures[0]
        self.target = first.target
        self.message = first.message
        self.expected = first.expected
        self.actual = first.actual
        summary = f"{len(self.failures)} expectations were not met:\n\n"
        AssertionError.__init__(
            self, summary + "\n\n".join(str(f) for f in self.failures)
        )
