"""Unit tests for doubletrace.domain.ordering.OrderingLedger."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from doubletrace.domain.ordering import OrderingLedger
from doubletrace.errors import OutOfOrderError


@dataclass
class _Expectation:
    message: str
    ordered: bool = True


class TestPositions:
    """Tests for position stamping."""

    def test_positions_start_at_one_and_are_gap_free(self) -> None:
        ledger = OrderingLedger()
        assert [ledger.next_position() for _ in range(4)] == [1, 2, 3, 4]
        assert ledger.last_position == 4

    def test_clear_does_not_rewind_positions(self) -> None:
        ledger = OrderingLedger()
        ledger.next_position()
        ledger.next_position()
        ledger.clear()
        assert ledger.next_position() == 3


class TestConsume:
    """Tests for the ordered-assertion cursor."""

    def test_consumes_earliest_position_after_cursor(self) -> None:
        ledger = OrderingLedger()
        assert ledger.consume("dbl", "foo", [2, 5]) == 2
        assert ledger.consume("dbl", "bar", [1, 4, 6]) == 4
        assert ledger.consumed_position == 4

    def test_raises_when_every_position_precedes_cursor(self) -> None:
        ledger = OrderingLedger()
        ledger.consume("dbl", "foo", [3])
        with pytest.raises(OutOfOrderError) as exc_info:
            ledger.consume("dbl", "bar", [1, 2])
        assert exc_info.value.message == "bar"
        assert "dbl received 'bar' out of order" in str(exc_info.value)

    def test_equal_position_is_not_later(self) -> None:
        ledger = OrderingLedger()
        ledger.consume("dbl", "foo", [3])
        with pytest.raises(OutOfOrderError):
            ledger.consume("dbl", "foo", [3])

    def test_empty_selection_leaves_cursor(self) -> None:
        ledger = OrderingLedger()
        ledger.consume("dbl", "foo", [2])
        assert ledger.consume("dbl", "bar", []) == 2

    def test_clear_resets_cursor(self) -> None:
        ledger = OrderingLedger()
        ledger.consume("dbl", "foo", [5])
        ledger.clear()
        assert ledger.consume("dbl", "foo", [1]) == 1


class TestOrderedExpectations:
    """Tests for ordered mock expectations."""

    def test_in_declaration_order_passes(self) -> None:
        ledger = OrderingLedger()
        first, second = _Expectation("one"), _Expectation("two")
        ledger.register(first)
        ledger.register(second)
        ledger.handle_order_constraint(first, "dbl")
        ledger.handle_order_constraint(second, "dbl")

    def test_out_of_declaration_order_raises(self) -> None:
        ledger = OrderingLedger()
        first, second = _Expectation("one"), _Expectation("two")
        ledger.register(first)
        ledger.register(second)
        with pytest.raises(OutOfOrderError, match="'two' out of order"):
            ledger.handle_order_constraint(second, "dbl")

    def test_consumed_expectation_may_repeat_after_later_one(self) -> None:
        ledger = OrderingLedger()
        first, second = _Expectation("one"), _Expectation("two")
        ledger.register(first)
        ledger.register(second)
        ledger.handle_order_constraint(first, "dbl")
        ledger.handle_order_constraint(second, "dbl")
        ledger.handle_order_constraint(first, "dbl")

    def test_unordered_expectation_is_ignored(self) -> None:
        ledger = OrderingLedger()
        ledger.register(_Expectation("one"))
        ledger.handle_order_constraint(_Expectation("free", ordered=False), "dbl")
