"""Verifying proxy variants.

A verifying proxy refuses to intercept messages the real target does not
implement, and checks argument lists (declared ones at stub time, received
ones at call time) against the real signature.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from doubletrace.errors import InterfaceError
from doubletrace.proxy import PartialClassDoubleProxy, PartialDoubleProxy, TestDoubleProxy

if TYPE_CHECKING:
    from doubletrace.domain.arguments import ArgumentListMatcher
    from doubletrace.domain.ordering import OrderingLedger
    from doubletrace.space import Space
    from doubletrace.test_double import TestDouble

_UNKNOWN = object()


def signature_of_class_attribute(message: str, raw: Any) -> inspect.Signature | None:
    """Signature of a raw class attribute as seen by callers of an instance.

    Plain functions and classmethods lose their first parameter. Returns None
    when the callable has no introspectable signature (many builtins).

    Raises:
        InterfaceError: If the attribute is not callable.
    """
    drop_first = False
    if isinstance(raw, staticmethod):
        func = raw.__func__
    elif isinstance(raw, classmethod):
        func, drop_first = raw.__func__, True
    elif inspect.isfunction(raw):
        func, drop_first = raw, True
    elif callable(raw):
        func = raw
    else:
        raise InterfaceError(message, f"{message!r} is not a method (got {raw!r})")
    return _signature(func, drop_first)


def signature_of_bound(message: str, bound: Any) -> inspect.Signature | None:
    if not callable(bound):
        raise InterfaceError(message, f"{message!r} is not a method (got {bound!r})")
    return _signature(bound, False)


def _signature(func: Any, drop_first: bool) -> inspect.Signature | None:
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    if drop_first:
        params = list(sig.parameters.values())[1:]
        sig = sig.replace(parameters=params)
    return sig


def check_arity(
    message: str,
    sig: inspect.Signature | None,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> None:
    if sig is None:
        return
    try:
        sig.bind(*args, **kwargs)
    except TypeError as e:
        raise InterfaceError(
            message, f"Wrong number of arguments for {message!r}{sig}: {e}"
        ) from e


class _VerifyingMixin:
    """Shared hooks; subclasses implement ``_signature_for``."""

    _signatures: dict[str, inspect.Signature | None]

    def _signature_for(self, message: str) -> inspect.Signature | None:
        raise NotImplementedError

    def _cached_signature(self, message: str) -> inspect.Signature | None:
        sig = self._signatures.get(message, _UNKNOWN)
        if sig is _UNKNOWN:
            sig = self._signature_for(message)
            self._signatures[message] = sig
        return sig  # type: ignore[return-value]

    def _check_message(self, message: str) -> None:
        self._cached_signature(message)

    def _check_declared_args(self, message: str, args: ArgumentListMatcher) -> None:
        if args.matches_any:
            return
        check_arity(
            message,
            self._cached_signature(message),
            args.expected_args,
            args.expected_kwargs,
        )

    def _check_call(
        self, message: str, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        check_arity(message, self._cached_signature(message), args, kwargs)


class VerifyingTestDoubleProxy(_VerifyingMixin, TestDoubleProxy):
    """Pure double constrained to the instance interface of ``spec``."""

    def __init__(self, double: TestDouble, ledger: OrderingLedger, spec: type) -> None:
        super().__init__(double, ledger)
        self.spec = spec
        self._signatures = {}

    def _signature_for(self, message: str) -> inspect.Signature | None:
        raw = inspect.getattr_static(self.spec, message, _UNKNOWN)
        if raw is _UNKNOWN:
            raise InterfaceError(
                message,
                f"the {self.spec.__name__} class does not implement the "
                f"instance method: {message}",
            )
        return signature_of_class_attribute(message, raw)

    def _check_call(
        self, message: str, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        # Null objects answer anything; only intercepted messages are checked.
        if self.has_interception(message):
            super()._check_call(message, args, kwargs)


class VerifyingPartialDoubleProxy(_VerifyingMixin, PartialDoubleProxy):
    """Partial double on an instance, verified against the instance itself."""

    def __init__(self, target: object, ledger: OrderingLedger) -> None:
        super().__init__(target, ledger)
        self._signatures = {}

    def _signature_for(self, message: str) -> inspect.Signature | None:
        original = self._redefiner.original_for(message)
        if original is None:
            raise InterfaceError(
                message, f"{self.describe_target()} does not implement: {message}"
            )
        return signature_of_bound(message, original)


class VerifyingPartialClassDoubleProxy(_VerifyingMixin, PartialClassDoubleProxy):
    """Partial double on a class, verified against the undoubled class."""

    def __init__(self, space: Space, target: type, ledger: OrderingLedger) -> None:
        super().__init__(space, target, ledger)
        self._signatures = {}

    def _signature_for(self, message: str) -> inspect.Signature | None:
        original = self.original_method_for(message)
        if original is None:
            raise InterfaceError(
                message, f"{self.describe_target()} does not implement: {message}"
            )
        return signature_of_class_attribute(message, original)
