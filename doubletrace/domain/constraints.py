"""Call-count constraints.

A Constraint is a predicate over an observed call count. Positive
expectations default to exactly(1); negative ones to exactly(0).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from doubletrace.errors import UsageError, pluralize


class ConstraintKind(Enum):
    """How the expected count is compared against the actual one."""

    EXACTLY = "exactly"
    AT_LEAST = "at_least"
    AT_MOST = "at_most"


@dataclass(frozen=True)
class Constraint:
    """Expected call count.

    Attributes:
        kind: Comparison applied to the actual count.
        count: The expected bound.
    """

    kind: ConstraintKind
    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise UsageError(f"call count must be >= 0, got {self.count}")

    def satisfied_by(self, actual: int) -> bool:
        if self.kind is ConstraintKind.EXACTLY:
            return actual == self.count
        if self.kind is ConstraintKind.AT_LEAST:
            return actual >= self.count
        return actual <= self.count

    def describe(self) -> str:
        """Render as it appears in failure messages, e.g. "at least 2 times"."""
        if self.kind is ConstraintKind.EXACTLY:
            return pluralize(self.count)
        prefix = "at least" if self.kind is ConstraintKind.AT_LEAST else "at most"
        return f"{prefix} {pluralize(self.count)}"


def exactly(n: int) -> Constraint:
    return Constraint(ConstraintKind.EXACTLY, n)


def at_least(n: int) -> Constraint:
    return Constraint(ConstraintKind.AT_LEAST, n)


def at_most(n: int) -> Constraint:
    return Constraint(ConstraintKind.AT_MOST, n)


def once() -> Constraint:
    return exactly(1)


def twice() -> Constraint:
    return exactly(2)


def thrice() -> Constraint:
    return exactly(3)


def never() -> Constraint:
    return exactly(0)
