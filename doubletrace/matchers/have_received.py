"""Received-call assertions (spies).

HaveReceived checks, after the code under test ran, that a stubbed message
was received with the declared arguments, the declared number of times, and
(optionally) after the previous ordered assertion in the same scope.

Example:
    proxy = space.proxy_for(mailer)
    proxy.add_stub("deliver")
    mailer.deliver("hi")
    HaveReceived("deliver").with_args("hi").once().evaluate(mailer, space)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from doubletrace.domain import constraints
from doubletrace.domain.arguments import ANY_ARGS, ArgumentListMatcher
from doubletrace.errors import CountMismatchError, NotStubbedError, UsageError

if TYPE_CHECKING:
    from collections.abc import Callable

    from doubletrace.domain.call_record import CallRecord
    from doubletrace.domain.constraints import Constraint
    from doubletrace.proxy import Proxy
    from doubletrace.space import Space

logger = logging.getLogger(__name__)


class HaveReceived:
    """Chainable assertion over the calls a proxy recorded.

    Args:
        message: The message that should have been received.
        block: Called with the arguments of every selected call once the
            count and ordering checks passed. Takes precedence over a block
            passed to ``evaluate``.

    Attributes:
        selected_calls: Calls chosen by the last evaluation, copied out of the
            proxy so they survive teardown.
    """

    def __init__(
        self, message: str, block: Callable[..., Any] | None = None
    ) -> None:
        self.message = message
        self._block = block
        self._args_matcher: ArgumentListMatcher = ANY_ARGS
        self._constraint: Constraint | None = None
        # Names of explicitly chained count methods, for the negated usage check.
        self._constraint_names: list[str] = []
        self._ordered = False
        self.selected_calls: tuple[CallRecord, ...] = ()

    # ------------------------------------------------------------------
    # Chaining
    # ------------------------------------------------------------------

    def with_args(self, *args: Any, **kwargs: Any) -> HaveReceived:
        self._args_matcher = ArgumentListMatcher(*args, **kwargs)
        return self

    def exactly(self, n: int) -> HaveReceived:
        return self._constrain("exactly", constraints.exactly(n))

    def at_least(self, n: int) -> HaveReceived:
        return self._constrain("at_least", constraints.at_least(n))

    def at_most(self, n: int) -> HaveReceived:
        return self._constrain("at_most", constraints.at_most(n))

    def once(self) -> HaveReceived:
        return self._constrain("once", constraints.once())

    def twice(self) -> HaveReceived:
        return self._constrain("twice", constraints.twice())

    def thrice(self) -> HaveReceived:
        return self._constrain("thrice", constraints.thrice())

    def times(self) -> HaveReceived:
        """Readability sugar: ``.exactly(3).times()``."""
        self._constraint_names.append("times")
        return self

    def ordered(self) -> HaveReceived:
        self._ordered = True
        return self

    def _constrain(self, name: str, constraint: Constraint) -> HaveReceived:
        self._constraint_names.append(name)
        self._constraint = constraint
        return self

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(
        self,
        subject: object,
        space: Space,
        block: Callable[..., Any] | None = None,
    ) -> None:
        """Assert that ``subject`` received the message as declared.

        Raises:
            NotStubbedError: ``subject`` has no proxy or the message was never
                stubbed on it.
            MockedInsteadOfStubbedError: The message carries a mock
                expectation.
            CountMismatchError: The number of selected calls violates the
                constraint (default exactly once).
            OutOfOrderError: ``ordered()`` was chained and no selected call
                follows the previous ordered assertion.
        """
        constraint = self._constraint or constraints.once()
        proxy = self._resolve(subject, space)
        self._check_count(proxy, constraint)
        if self._ordered:
            proxy.ordering_ledger.consume(
                proxy.describe_target(),
                self.message,
                (record.position for record in self.selected_calls),
            )
        callback = self._block or block
        if callback is not None:
            for record in self.selected_calls:
                callback(*record.args, **record.kwargs)

    def evaluate_negated(self, subject: object, space: Space) -> None:
        """Assert that ``subject`` never received the message as declared.

        Raises:
            UsageError: A count constraint was chained.
            NotStubbedError: See ``evaluate``.
            MockedInsteadOfStubbedError: See ``evaluate``.
            CountMismatchError: A matching call was received.
        """
        if self._constraint_names:
            raise UsageError(f"can't use {self._constraint_names[0]} when negative")
        proxy = self._resolve(subject, space)
        self._check_count(proxy, constraints.never())

    def description(self) -> str:
        """Human-readable summary, independent of any proxy or scope."""
        constraint = self._constraint or constraints.once()
        return (
            f"have received {self.message}{self._args_matcher.describe()} "
            f"{constraint.describe()}"
        )

    def _resolve(self, subject: object, space: Space) -> Proxy:
        if not space.registered(subject):
            raise NotStubbedError(repr(subject), self.message)
        proxy = space.proxy_for(subject)
        proxy.ensure_can_replay(self.message)
        return proxy

    def _check_count(self, proxy: Proxy, constraint: Constraint) -> None:
        self.selected_calls = proxy.calls_matching(self.message, self._args_matcher)
        actual = len(self.selected_calls)
        if constraint.satisfied_by(actual):
            return
        received_args: list[str] = []
        if not self._args_matcher.matches_any and actual == 0:
            received_args = [
                record.describe_args() for record in proxy.calls_matching(self.message)
            ]
        logger.debug(
            "%s.%s: expected %s, received %d",
            proxy.describe_target(),
            self.message,
            constraint.describe(),
            actual,
        )
        raise CountMismatchError(
            proxy.describe_target(),
            self.message,
            constraint,
            actual,
            self._args_matcher.describe(),
            received_args,
        )


def have_received(message: str, block: Callable[..., Any] | None = None) -> HaveReceived:
    return HaveReceived(message, block)
