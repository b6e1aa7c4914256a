"""Registry mapping objects to proxies, scoped per test.

- RootSpace is the sentinel that exists before any test starts. It refuses
  every operation except new_scope() (and a no-op reset_all()).
- Space is one test's registry: proxies, any-instance recorders, constant
  mutators, and the Ordering Ledger shared by every proxy it creates.
- NestedSpace layers a scope over a parent. Lookups fall through to the
  ancestors; new entries are created locally, so resetting a child never
  touches its ancestors' proxies.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, NoReturn, Protocol, runtime_checkable

from doubletrace.any_instance import AnyInstanceProxy, AnyInstanceRecorder
from doubletrace.config import DoubleConfig, VerificationMode
from doubletrace.domain.identity import id_for
from doubletrace.domain.ordering import OrderingLedger
from doubletrace.errors import (
    LifecycleError,
    UnmetExpectationError,
    UnmetExpectationsError,
)
from doubletrace.proxy import (
    NilProxy,
    PartialClassDoubleProxy,
    PartialDoubleProxy,
    Proxy,
)
from doubletrace.test_double import TestDouble
from doubletrace.verifying import (
    VerifyingPartialClassDoubleProxy,
    VerifyingPartialDoubleProxy,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

    from doubletrace.any_instance import AnyInstanceRecorderProtocol

logger = logging.getLogger(__name__)


@runtime_checkable
class ConstantMutator(Protocol):
    """A registered constant redefinition, undone at teardown."""

    @property
    def full_constant_name(self) -> str: ...

    def idempotently_reset(self) -> None: ...


class RootSpace:
    """Space in effect outside of any test."""

    def __init__(self, config: DoubleConfig | None = None) -> None:
        self.config = config or DoubleConfig()

    def proxy_for(self, obj: object) -> NoReturn:
        self._raise_lifecycle_error()

    ensure_registered = proxy_for

    def registered(self, obj: object) -> NoReturn:
        self._raise_lifecycle_error()

    def any_instance_recorder_for(self, klass: type, only_return_existing: bool = False) -> NoReturn:
        self._raise_lifecycle_error()

    def any_instance_proxy_for(self, klass: type) -> NoReturn:
        self._raise_lifecycle_error()

    def any_instance_recorders_from_ancestry_of(self, obj: object) -> NoReturn:
        self._raise_lifecycle_error()

    def register_constant_mutator(self, mutator: ConstantMutator) -> NoReturn:
        self._raise_lifecycle_error()

    def constant_mutator_for(self, name: str) -> NoReturn:
        self._raise_lifecycle_error()

    def verify_all(self) -> NoReturn:
        self._raise_lifecycle_error()

    def reset_all(self) -> None:
        pass

    def new_scope(self) -> Space:
        return Space(self.config)

    def _raise_lifecycle_error(self) -> NoReturn:
        raise LifecycleError()


class Space:
    """One test's registry of proxies.

    Attributes:
        config: Settings used when choosing proxy variants.
        proxies: Locally owned proxies keyed by object identity.
        any_instance_recorders: Locally owned recorders keyed by class identity.
        ordering_ledger: Shared by every proxy created in this space.
        proxy_lock: Serializes proxy lookup and creation.
        any_instance_lock: Serializes recorder lookup and creation.
    """

    def __init__(
        self,
        config: DoubleConfig | None = None,
        recorder_factory: Callable[[type], AnyInstanceRecorderProtocol] = AnyInstanceRecorder,
    ) -> None:
        self.config = config or DoubleConfig()
        self.proxies: dict[Hashable, Proxy] = {}
        self.any_instance_recorders: dict[Hashable, AnyInstanceRecorderProtocol] = {}
        self._constant_mutators: list[ConstantMutator] = []
        self.ordering_ledger = OrderingLedger()
        self.proxy_lock = threading.Lock()
        self.any_instance_lock = threading.Lock()
        self._recorder_factory = recorder_factory

    def new_scope(self) -> NestedSpace:
        return NestedSpace(self)

    # ------------------------------------------------------------------
    # Proxies
    # ------------------------------------------------------------------

    def proxy_for(self, obj: object) -> Proxy:
        """Return the proxy for ``obj``, creating it on first use.

        Thread-safe: concurrent callers for the same new object get the same
        proxy.
        """
        with self.proxy_lock:
            key = id_for(obj)
            proxy = self._find_proxy(key)
            if proxy is None:
                proxy = self._proxy_not_found_for(key, obj)
            return proxy

    ensure_registered = proxy_for

    def registered(self, obj: object) -> bool:
        return id_for(obj) in self.proxies

    def proxies_of(self, klass: type) -> list[Proxy]:
        return [p for p in self.proxies.values() if isinstance(p.target, klass)]

    def _find_proxy(self, key: Hashable) -> Proxy | None:
        return self.proxies.get(key)

    def _proxy_not_found_for(self, key: Hashable, obj: object) -> Proxy:
        proxy = self._build_proxy(obj)
        self.proxies[key] = proxy
        logger.debug("Created %s for %r", type(proxy).__name__, obj)
        return proxy

    def _build_proxy(self, obj: object) -> Proxy:
        verify = self.config.verify_partial_doubles
        if obj is None:
            return NilProxy(self.ordering_ledger, self.config)
        if isinstance(obj, TestDouble):
            return obj._build_proxy(self.ordering_ledger)
        if isinstance(obj, type):
            if verify:
                return VerifyingPartialClassDoubleProxy(self, obj, self.ordering_ledger)
            return PartialClassDoubleProxy(self, obj, self.ordering_ledger)
        if verify:
            return VerifyingPartialDoubleProxy(obj, self.ordering_ledger)
        return PartialDoubleProxy(obj, self.ordering_ledger)

    # ------------------------------------------------------------------
    # Any-instance recorders
    # ------------------------------------------------------------------

    def any_instance_recorder_for(
        self, klass: type, only_return_existing: bool = False
    ) -> AnyInstanceRecorderProtocol | None:
        with self.any_instance_lock:
            key = id_for(klass)
            recorder = self._find_any_instance_recorder(key)
            if recorder is None:
                if only_return_existing:
                    return None
                recorder = self._any_instance_recorder_not_found_for(key, klass)
            return recorder

    def _any_instance_recorder_not_found_for(
        self, key: Hashable, klass: type
    ) -> AnyInstanceRecorderProtocol:
        recorder = self._recorder_factory(klass)
        self.any_instance_recorders[key] = recorder
        return recorder

    def any_instance_proxy_for(self, klass: type) -> AnyInstanceProxy:
        recorder = self.any_instance_recorder_for(klass)
        assert recorder is not None
        return AnyInstanceProxy(recorder, self.proxies_of(klass))

    def any_instance_recorders_from_ancestry_of(
        self, obj: object
    ) -> list[AnyInstanceRecorderProtocol]:
        # any_instance is rarely used, so skip the MRO walk when possible.
        if not self._has_any_instance_recorders():
            return []
        recorders = []
        for klass in type(obj).__mro__:
            recorder = self._find_any_instance_recorder(id_for(klass))
            if recorder is not None:
                recorders.append(recorder)
        return recorders

    def _has_any_instance_recorders(self) -> bool:
        return bool(self.any_instance_recorders)

    def _find_any_instance_recorder(
        self, key: Hashable
    ) -> AnyInstanceRecorderProtocol | None:
        return self.any_instance_recorders.get(key)

    # ------------------------------------------------------------------
    # Constant mutators
    # ------------------------------------------------------------------

    def register_constant_mutator(self, mutator: ConstantMutator) -> None:
        self._constant_mutators.append(mutator)

    def constant_mutator_for(self, name: str) -> ConstantMutator | None:
        for mutator in self._constant_mutators:
            if mutator.full_constant_name == name:
                return mutator
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def verify_all(self) -> None:
        """Verify every local proxy and any-instance recorder.

        Every proxy is verified before anything is raised. With
        VerificationMode.AGGREGATE a single failure is raised as-is and
        several are raised together as UnmetExpectationsError; with
        VerificationMode.FAIL_FAST the first failure is raised.
        """
        failures: list[UnmetExpectationError] = []
        others: list[Exception] = []
        verifiables: list[Any] = [*self.proxies.values(), *self.any_instance_recorders.values()]
        for verifiable in verifiables:
            try:
                verifiable.verify()
            except UnmetExpectationsError as e:
                failures.extend(e.failures)
            except UnmetExpectationError as e:
                failures.append(e)
            except Exception as e:
                others.append(e)

        if others:
            error = others[0]
            for dropped in [*others[1:], *failures]:
                logger.warning("verify_all: also failed: %s", dropped)
                error.add_note(f"Also failed: {dropped}")
            raise error
        if not failures:
            return
        logger.debug("verify_all: %d unmet expectation(s)", len(failures))
        if len(failures) == 1 or self.config.verification_mode is VerificationMode.FAIL_FAST:
            raise failures[0]
        raise UnmetExpectationsError(failures)

    def reset_all(self) -> None:
        """Tear down every local proxy, constant mutator and recorder.

        Idempotent. Every proxy, mutator and recorder is reset even if one of
        them fails, and the ledger is always cleared; the first failure is
        re-raised afterwards.
        """
        errors: list[Exception] = []
        for proxy in list(self.proxies.values()):
            try:
                proxy.reset()
            except Exception as e:
                logger.warning("Failed to reset %s: %s", proxy.describe_target(), e)
                errors.append(e)
        for mutator in reversed(self._constant_mutators):
            try:
                mutator.idempotently_reset()
            except Exception as e:
                logger.warning(
                    "Failed to reset constant %s: %s", mutator.full_constant_name, e
                )
                errors.append(e)
        for recorder in list(self.any_instance_recorders.values()):
            try:
                recorder.stop_all_observation()
            except Exception as e:
                logger.warning("Failed to stop any-instance recorder: %s", e)
                errors.append(e)
        self.any_instance_recorders.clear()
        self.ordering_ledger.clear()
        logger.debug("Reset space with %d proxies", len(self.proxies))
        if errors:
            raise errors[0]


class NestedSpace(Space):
    """A scope layered over ``parent``.

    Reads fall through to every ancestor. Writes stay local, and an ancestor's
    proxy is reused rather than shadowed.
    """

    def __init__(self, parent: Space) -> None:
        super().__init__(parent.config, parent._recorder_factory)
        self._parent = parent

    @property
    def parent(self) -> Space:
        return self._parent

    def registered(self, obj: object) -> bool:
        return super().registered(obj) or self._parent.registered(obj)

    def proxies_of(self, klass: type) -> list[Proxy]:
        return super().proxies_of(klass) + self._parent.proxies_of(klass)

    def constant_mutator_for(self, name: str) -> ConstantMutator | None:
        return super().constant_mutator_for(name) or self._parent.constant_mutator_for(name)

    def _find_proxy(self, key: Hashable) -> Proxy | None:
        return self.proxies.get(key) or self._parent._find_proxy(key)

    def _has_any_instance_recorders(self) -> bool:
        return super()._has_any_instance_recorders() or self._parent._has_any_instance_recorders()

    def _find_any_instance_recorder(
        self, key: Hashable
    ) -> AnyInstanceRecorderProtocol | None:
        return self.any_instance_recorders.get(key) or self._parent._find_any_instance_recorder(key)
