"""Per-object interception state.

A proxy owns everything the registry knows about one target: the messages
it intercepts (with their stubs and mock expectations), the calls it has
received, and a reference to the scope's Ordering Ledger. Variants differ
only in how interceptions are installed and what the target looks like:

- Proxy: base behaviour, also used for pure test doubles.
- TestDoubleProxy: target is a TestDouble, which dispatches by itself.
- NilProxy: target is None, which cannot be patched.
- PartialDoubleProxy: real instance; messages redefined on the instance.
- PartialClassDoubleProxy: class object; messages redefined on the class.

Verifying variants live in doubletrace.verifying.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from doubletrace.domain.arguments import ANY_ARGS, ArgumentListMatcher
from doubletrace.domain.call_record import CallRecord, format_args
from doubletrace.domain.constraints import Constraint, once
from doubletrace.errors import (
    InterfaceError,
    MockedInsteadOfStubbedError,
    NotStubbedError,
    UnexpectedMessageError,
    UnmetExpectationError,
    UnmetExpectationsError,
)
from doubletrace.expectations import MessageExpectation, MessageStub, MethodDouble
from doubletrace.infra.redefinition import (
    ClassRedefiner,
    InstanceRedefiner,
    MethodRedefiner,
    NullRedefiner,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from doubletrace.config import DoubleConfig
    from doubletrace.domain.ordering import OrderingLedger
    from doubletrace.space import Space
    from doubletrace.test_double import TestDouble

logger = logging.getLogger(__name__)


class Proxy:
    """Interception and recording for a single target object."""

    def __init__(
        self,
        target: object,
        ledger: OrderingLedger,
        redefiner: MethodRedefiner | None = None,
    ) -> None:
        self.target = target
        self._ledger = ledger
        self._redefiner = redefiner or NullRedefiner()
        self._method_doubles: dict[str, MethodDouble] = {}
        self._records: list[CallRecord] = []
        self._lock = threading.Lock()
        # Serializes redefining methods on the target.
        self._install_lock = threading.Lock()

    @property
    def ordering_ledger(self) -> OrderingLedger:
        return self._ledger

    @property
    def null_object(self) -> bool:
        return False

    def describe_target(self) -> str:
        return repr(self.target)

    # ------------------------------------------------------------------
    # Interception
    # ------------------------------------------------------------------

    def has_interception(self, message: str) -> bool:
        return message in self._method_doubles

    def installed_messages(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._method_doubles)

    def method_double_if_exists(self, message: str) -> MethodDouble | None:
        return self._method_doubles.get(message)

    def install_interception(self, message: str) -> MethodDouble:
        """Start routing ``message`` on the target into this proxy.

        Idempotent: installing an already-installed message returns its
        existing MethodDouble.

        Raises:
            InterfaceError: If the target cannot be redefined, or (verifying
                variants) the message is not part of its interface.
        """
        with self._install_lock:
            existing = self._method_doubles.get(message)
            if existing is not None:
                return existing
            self._check_message(message)
            self._redefiner.install(message, self._interceptor_for(message))
            with self._lock:
                method_double = self._method_doubles.setdefault(
                    message, MethodDouble(message)
                )
        logger.debug("Intercepting %s on %s", message, self.describe_target())
        return method_double

    def uninstall_interception(self, message: str) -> None:
        with self._install_lock:
            with self._lock:
                method_double = self._method_doubles.pop(message, None)
            if method_double is None:
                return
            self._redefiner.uninstall(message)
        logger.debug("Stopped intercepting %s on %s", message, self.describe_target())

    def _interceptor_for(self, message: str) -> Callable[..., Any]:
        def intercepted(*args: Any, **kwargs: Any) -> Any:
            return self.message_received(message, *args, **kwargs)

        intercepted.__name__ = message
        intercepted.__qualname__ = message
        return intercepted

    # Hooks overridden by verifying variants.
    def _check_message(self, message: str) -> None:
        pass

    def _check_declared_args(self, message: str, args: ArgumentListMatcher) -> None:
        pass

    def _check_call(
        self, message: str, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        pass

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def add_stub(
        self,
        message: str,
        *,
        args: ArgumentListMatcher = ANY_ARGS,
        return_value: Any = None,
        implementation: Callable[..., Any] | None = None,
    ) -> MessageStub:
        """Allow ``message`` without requiring it (a passive stub)."""
        self._check_declared_args(message, args)
        method_double = self.install_interception(message)
        stub = MessageStub(
            message,
            args_matcher=args,
            return_value=return_value,
            implementation=implementation,
        )
        with self._lock:
            method_double.stubs.append(stub)
        return stub

    def add_message_expectation(
        self,
        message: str,
        *,
        args: ArgumentListMatcher = ANY_ARGS,
        constraint: Constraint | None = None,
        ordered: bool = False,
        return_value: Any = None,
        implementation: Callable[..., Any] | None = None,
    ) -> MessageExpectation:
        """Require ``message`` (a mocked expectation, checked by ``verify``)."""
        self._check_declared_args(message, args)
        method_double = self.install_interception(message)
        expectation = MessageExpectation(
            message,
            args_matcher=args,
            return_value=return_value,
            implementation=implementation,
            constraint=constraint or once(),
            ordered=ordered,
        )
        with self._lock:
            method_double.expectations.append(expectation)
        if ordered:
            self._ledger.register(expectation)
        return expectation

    def remove_stub(self, message: str) -> None:
        method_double = self._method_doubles.get(message)
        if method_double is None:
            return
        with self._lock:
            method_double.stubs.clear()
            keep = method_double.mocked
        if not keep:
            self.uninstall_interception(message)

    # ------------------------------------------------------------------
    # Recording and dispatch
    # ------------------------------------------------------------------

    def record_call(
        self,
        message: str,
        args: tuple[Any, ...] = (),
        kwargs: dict[str, Any] | None = None,
        *,
        return_value: Any = None,
        exception: BaseException | None = None,
    ) -> int:
        """Append a Call Record stamped with the next ledger position.

        Returns:
            The ledger position assigned to the record.
        """
        position = self._ledger.next_position()
        self._append(
            CallRecord(message, tuple(args), dict(kwargs or {}), position, return_value, exception)
        )
        return position

    def _append(self, record: CallRecord) -> None:
        with self._lock:
            self._records.append(record)

    def message_received(self, message: str, /, *args: Any, **kwargs: Any) -> Any:
        """Entry point for every intercepted invocation."""
        position = self._ledger.next_position()
        try:
            result = self._dispatch(message, args, kwargs)
        except Exception as e:
            self._append(CallRecord(message, args, kwargs, position, exception=e))
            raise
        self._append(CallRecord(message, args, kwargs, position, return_value=result))
        return result

    def _dispatch(
        self, message: str, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        self._check_call(message, args, kwargs)
        method_double = self._method_doubles.get(message)
        if method_double is not None:
            expectation = method_double.find_expectation(args, kwargs)
            if expectation is not None:
                expectation.increase_actual_count()
                self._ledger.handle_order_constraint(expectation, self.describe_target())
                return expectation.invoke(args, kwargs)
            stub = method_double.find_stub(args, kwargs)
            if stub is not None:
                return stub.invoke(args, kwargs)
        return self._handle_unmatched(message, args, kwargs, method_double)

    def _handle_unmatched(
        self,
        message: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        method_double: MethodDouble | None,
    ) -> Any:
        args_description = format_args(args, kwargs) if method_double else ""
        raise UnexpectedMessageError(self.describe_target(), message, args_description)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def calls_matching(
        self, message: str, args_matcher: ArgumentListMatcher | None = None
    ) -> tuple[CallRecord, ...]:
        """Received calls of ``message`` (optionally filtered), in ledger order."""
        with self._lock:
            selected = [
                r
                for r in self._records
                if r.message == message
                and (args_matcher is None or args_matcher.matches(r.args, r.kwargs))
            ]
        return tuple(sorted(selected, key=lambda r: r.position))

    def messages_received(self) -> tuple[CallRecord, ...]:
        with self._lock:
            records = list(self._records)
        return tuple(sorted(records, key=lambda r: r.position))

    def ensure_can_replay(self, message: str) -> None:
        """Check that received calls of ``message`` may be asserted on.

        Raises:
            NotStubbedError: The message was never stubbed (and the target is
                not a null object).
            MockedInsteadOfStubbedError: The message carries a mock expectation.
        """
        method_double = self._method_doubles.get(message)
        if method_double is None and not self.null_object:
            raise NotStubbedError(self.describe_target(), message)
        if method_double is not None and method_double.mocked:
            raise MockedInsteadOfStubbedError(self.describe_target(), message)
        if method_double is not None and not method_double.stubbed and not self.null_object:
            raise NotStubbedError(self.describe_target(), message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def verify(self) -> None:
        """Check every mocked expectation.

        Raises:
            UnmetExpectationError: One expectation was not met.
            UnmetExpectationsError: Several expectations were not met.
        """
        with self._lock:
            method_doubles = list(self._method_doubles.values())
        failures: list[UnmetExpectationError] = []
        for method_double in method_doubles:
            failures.extend(method_double.verify(self.describe_target()))
        if len(failures) == 1:
            raise failures[0]
        if failures:
            raise UnmetExpectationsError(failures)

    def reset(self) -> None:
        """Uninstall every interception and forget stubs, expectations and calls.

        The proxy stays usable; it can be stubbed again afterwards.
        """
        for message in self.installed_messages():
            self.uninstall_interception(message)
        with self._lock:
            self._records.clear()
        logger.debug("Reset proxy for %s", self.describe_target())


class TestDoubleProxy(Proxy):
    """Proxy for a pure TestDouble, which routes calls itself."""

    __test__ = False

    def __init__(self, double: TestDouble, ledger: OrderingLedger) -> None:
        super().__init__(double, ledger, NullRedefiner())

    @property
    def null_object(self) -> bool:
        return self.target._is_null_object()  # type: ignore[attr-defined]

    def _handle_unmatched(
        self,
        message: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        method_double: MethodDouble | None,
    ) -> Any:
        if self.null_object:
            return self.target
        return super()._handle_unmatched(message, args, kwargs, method_double)


class NilProxy(Proxy):
    """Proxy for None.

    None cannot be patched, so interceptions are bookkeeping only; calls must
    be delivered through ``message_received``. Placing stubs or expectations
    on None is usually a mistake and is reported according to
    ``allow_message_expectations_on_nil``.
    """

    def __init__(self, ledger: OrderingLedger, config: DoubleConfig) -> None:
        super().__init__(None, ledger, NullRedefiner())
        self._allow = config.allow_message_expectations_on_nil

    def describe_target(self) -> str:
        return "None"

    def _check_message(self, message: str) -> None:
        if self._allow is False:
            raise InterfaceError(
                message,
                f"An expectation of {message!r} was set on None, which is not "
                "allowed (allow_message_expectations_on_nil is False)",
            )
        if self._allow is None:
            logger.warning(
                "An expectation of %r was set on None. Set "
                "allow_message_expectations_on_nil to True to silence this "
                "warning, or to False to turn it into an error.",
                message,
            )


class PartialDoubleProxy(Proxy):
    """Proxy for a real instance with selectively redefined messages."""

    def __init__(self, target: object, ledger: OrderingLedger) -> None:
        super().__init__(target, ledger, InstanceRedefiner(target))


class PartialClassDoubleProxy(Proxy):
    """Proxy for a class object.

    Holds the owning space so that, when a subclass is doubled after its
    superclass, the undoubled method is looked up behind the
    superclass's interception rather than on top of it.
    """

    def __init__(self, space: Space, target: type, ledger: OrderingLedger) -> None:
        super().__init__(target, ledger, ClassRedefiner(target))
        self._space = space

    def describe_target(self) -> str:
        return self.target.__name__  # type: ignore[attr-defined]

    def original_method_for(self, message: str) -> Any:
        """The raw class attribute ``message`` resolves to without any doubles."""
        original = self._redefiner.original_for(message)
        if original is not None:
            return original
        for base in self.target.__mro__[1:]:  # type: ignore[attr-defined]
            if self._space.registered(base):
                superclass_proxy = self._space.proxy_for(base)
                if isinstance(superclass_proxy, PartialClassDoubleProxy):
                    original = superclass_proxy.original_method_for(message)
                    if original is not None:
                        return original
                    continue
            original = base.__dict__.get(message)
            if original is not None:
                return original
        return None
