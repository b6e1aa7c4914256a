"""Ordering Ledger shared by every proxy in one scope.

The ledger does three things:
- hands out call positions from a single monotonic, gap-free counter;
- remembers the position consumed by the last ordered received-call
  assertion, so the next one must reference a later call;
- tracks ordered mock expectations in declaration order and checks that they
  are invoked in that order.
"""

from __future__ import annotations

import itertools
import threading
from typing import TYPE_CHECKING, Protocol

from doubletrace.errors import OutOfOrderError

if TYPE_CHECKING:
    from collections.abc import Iterable


class OrderedExpectation(Protocol):
    """What the ledger needs from an ordered mock expectation."""

    @property
    def message(self) -> str: ...

    @property
    def ordered(self) -> bool: ...


class OrderingLedger:
    """Monotonic call positions plus the ordered-assertion cursor."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._last_position = 0
        self._consumed_position = 0
        self._expectations: list[OrderedExpectation] = []
        self._index = 0

    def next_position(self) -> int:
        """Assign the next ledger position (thread-safe)."""
        with self._lock:
            self._last_position = next(self._counter)
            return self._last_position

    @property
    def last_position(self) -> int:
        return self._last_position

    @property
    def consumed_position(self) -> int:
        return self._consumed_position

    def consume(self, target: str, message: str, positions: Iterable[int]) -> int:
        """Consume the earliest of ``positions`` that follows the previous ordered one.

        Args:
            target: Description of the receiver, for the error message.
            message: Message the ordered assertion is about.
            positions: Ledger positions of the calls the assertion selected.

        Returns:
            The consumed position (unchanged cursor when nothing was selected).

        Raises:
            OutOfOrderError: If every selected call precedes the cursor.
        """
        with self._lock:
            candidates = list(positions)
            if not candidates:
                return self._consumed_position
            later = [p for p in candidates if p > self._consumed_position]
            if not later:
                raise OutOfOrderError(target, message)
            self._consumed_position = min(later)
            return self._consumed_position

    def register(self, expectation: OrderedExpectation) -> None:
        with self._lock:
            self._expectations.append(expectation)

    def handle_order_constraint(self, expectation: OrderedExpectation, target: str) -> None:
        """Check an ordered mock expectation as it is invoked.

        It must be the next outstanding ordered expectation; once consumed it
        may be invoked again freely.
        """
        if not expectation.ordered:
            return
        with self._lock:
            remaining = self._expectations[self._index :]
            if not any(e is expectation for e in remaining):
                return
            for offset, candidate in enumerate(remaining):
                if candidate.ordered:
                    if candidate is expectation:
                        self._index += offset + 1
                        return
                    break
        raise OutOfOrderError(target, expectation.message)

    def clear(self) -> None:
        """Forget ordered expectations and the assertion cursor.

        Positions keep increasing so that records captured before a reset
        never compare equal to ones captured after it.
        """
        with self._lock:
            self._expectations.clear()
            self._index = 0
            self._consumed_position = 0
