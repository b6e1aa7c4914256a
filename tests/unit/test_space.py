"""Unit tests for doubletrace.space."""

from __future__ import annotations

import pytest

from doubletrace.any_instance import AnyInstanceProxy, AnyInstanceRecorder
from doubletrace.config import DoubleConfig, VerificationMode
from doubletrace.errors import (
    LifecycleError,
    UnmetExpectationError,
    UnmetExpectationsError,
)
from doubletrace.proxy import (
    NilProxy,
    PartialClassDoubleProxy,
    PartialDoubleProxy,
    TestDoubleProxy,
)
from doubletrace.space import ConstantMutator, NestedSpace, RootSpace, Space
from doubletrace.test_double import TestDouble
from tests.fakes import (
    Collaborator,
    FakeAnyInstanceRecorder,
    FakeConstantMutator,
    Greeter,
)


class TestRootSpace:
    """Tests for the sentinel space outside any test."""

    @pytest.mark.parametrize(
        ("operation", "args"),
        [
            ("proxy_for", (object(),)),
            ("ensure_registered", (object(),)),
            ("registered", (object(),)),
            ("any_instance_recorder_for", (Collaborator,)),
            ("any_instance_proxy_for", (Collaborator,)),
            ("any_instance_recorders_from_ancestry_of", (object(),)),
            ("register_constant_mutator", (FakeConstantMutator("X"),)),
            ("constant_mutator_for", ("X",)),
            ("verify_all", ()),
        ],
    )
    def test_operations_raise_lifecycle_error(
        self, operation: str, args: tuple[object, ...]
    ) -> None:
        with pytest.raises(LifecycleError, match="outside of the per-test lifecycle"):
            getattr(RootSpace(), operation)(*args)

    def test_reset_all_is_noop(self) -> None:
        RootSpace().reset_all()

    def test_new_scope_is_plain_space(self) -> None:
        config = DoubleConfig(verify_partial_doubles=True)
        scope = RootSpace(config).new_scope()
        assert type(scope) is Space
        assert scope.config is config


class TestProxyFor:
    """Tests for proxy lookup and variant selection."""

    def test_same_object_same_proxy(self, space: Space) -> None:
        target = Collaborator()
        assert space.proxy_for(target) is space.proxy_for(target)
        assert space.ensure_registered(target) is space.proxy_for(target)

    def test_registered_does_not_create(self, space: Space) -> None:
        target = Collaborator()
        assert not space.registered(target)
        space.proxy_for(target)
        assert space.registered(target)

    def test_variant_selection(self, space: Space) -> None:
        assert isinstance(space.proxy_for(None), NilProxy)
        assert isinstance(space.proxy_for(TestDouble(space)), TestDoubleProxy)
        assert isinstance(space.proxy_for(Collaborator), PartialClassDoubleProxy)
        assert isinstance(space.proxy_for(Collaborator()), PartialDoubleProxy)

    def test_proxies_share_the_space_ledger(self, space: Space) -> None:
        first = space.proxy_for(Collaborator())
        second = space.proxy_for(Collaborator)
        assert first.ordering_ledger is space.ordering_ledger
        assert second.ordering_ledger is space.ordering_ledger

    def test_proxies_of_filters_by_class(self, space: Space) -> None:
        greeter = Greeter()
        space.proxy_for(greeter)
        space.proxy_for(object())
        assert [p.target for p in space.proxies_of(Collaborator)] == [greeter]


class TestVerifyAll:
    """Tests for Space.verify_all."""

    def test_passes_when_all_met(self, space: Space) -> None:
        target = Collaborator()
        space.proxy_for(target).add_message_expectation("foo")
        target.foo()
        space.verify_all()

    def test_single_failure_raised_as_is(self, space: Space) -> None:
        space.proxy_for(Collaborator()).add_message_expectation("foo")
        with pytest.raises(UnmetExpectationError) as exc_info:
            space.verify_all()
        assert not isinstance(exc_info.value, UnmetExpectationsError)
        assert exc_info.value.message == "foo"

    def test_failures_across_proxies_aggregate(self, space: Space) -> None:
        first, second = Collaborator(), Collaborator()
        space.proxy_for(first).add_message_expectation("foo")
        space.proxy_for(second).add_message_expectation("bar")
        space.proxy_for(second).add_message_expectation("foo")

        with pytest.raises(UnmetExpectationsError) as exc_info:
            space.verify_all()

        assert [f.message for f in exc_info.value.failures] == ["foo", "bar", "foo"]

    def test_fail_fast_raises_first(self) -> None:
        space = Space(DoubleConfig(verification_mode=VerificationMode.FAIL_FAST))
        try:
            space.proxy_for(Collaborator()).add_message_expectation("foo")
            space.proxy_for(Collaborator()).add_message_expectation("bar")
            with pytest.raises(UnmetExpectationError) as exc_info:
                space.verify_all()
            assert not isinstance(exc_info.value, UnmetExpectationsError)
            assert exc_info.value.message == "foo"
        finally:
            space.reset_all()

    def test_every_proxy_verified_before_raising(self) -> None:
        space = Space(recorder_factory=FakeAnyInstanceRecorder)
        space.proxy_for(Collaborator()).add_message_expectation("foo")
        recorder = space.any_instance_recorder_for(Collaborator)
        try:
            with pytest.raises(UnmetExpectationError):
                space.verify_all()
            assert isinstance(recorder, FakeAnyInstanceRecorder)
            assert recorder.verify_calls == 1
        finally:
            space.reset_all()

    def test_unexpected_error_keeps_unmet_expectations(self) -> None:
        space = Space()
        broken = space.proxy_for(Collaborator())
        space.proxy_for(Collaborator()).add_message_expectation("bar")

        def explode() -> None:
            raise RuntimeError("verify crashed")

        broken.verify = explode  # type: ignore[method-assign]
        try:
            with pytest.raises(RuntimeError, match="verify crashed") as exc_info:
                space.verify_all()
            notes = exc_info.value.__notes__
            assert len(notes) == 1
            assert "bar" in notes[0]
        finally:
            space.reset_all()

    def test_any_instance_recorder_failures_included(self) -> None:
        space = Space(
            recorder_factory=lambda klass: FakeAnyInstanceRecorder(
                klass, unmet_message="foo"
            )
        )
        space.any_instance_recorder_for(Collaborator)
        with pytest.raises(UnmetExpectationError, match="Any instance of Collaborator"):
            space.verify_all()


class TestResetAll:
    """Tests for Space.reset_all."""

    def test_restores_targets_and_is_idempotent(self) -> None:
        space = Space()
        target = Collaborator()
        space.proxy_for(target).add_stub("foo", return_value="stubbed")
        space.proxy_for(Collaborator).add_stub("helper", return_value=0)

        space.reset_all()
        space.reset_all()

        assert target.foo() == "real foo"
        assert Collaborator.helper(1, 2) == 3

    def test_constant_mutators_reset_in_reverse_order(self) -> None:
        space = Space()
        journal: list[str] = []
        first = FakeConstantMutator("A", journal)
        second = FakeConstantMutator("B", journal)
        space.register_constant_mutator(first)
        space.register_constant_mutator(second)

        space.reset_all()

        assert journal == ["B", "A"]
        assert isinstance(first, ConstantMutator)

    def test_recorders_stopped_and_cleared(self) -> None:
        space = Space()
        recorder = space.any_instance_recorder_for(Collaborator)

        space.reset_all()

        assert isinstance(recorder, AnyInstanceRecorder)
        assert recorder.stopped
        assert space.any_instance_recorders == {}

    def test_failure_does_not_stop_other_resets(self) -> None:
        space = Space()
        broken, healthy = Collaborator(), Collaborator()
        broken_proxy = space.proxy_for(broken)
        broken_proxy.add_stub("foo")
        space.proxy_for(healthy).add_stub("foo", return_value="stubbed")

        def explode() -> None:
            raise RuntimeError("cannot reset")

        broken_proxy.reset = explode  # type: ignore[method-assign]

        with pytest.raises(RuntimeError, match="cannot reset"):
            space.reset_all()
        assert healthy.foo() == "real foo"

    def test_failing_mutator_does_not_stop_teardown(self) -> None:
        space = Space(recorder_factory=FakeAnyInstanceRecorder)
        journal: list[str] = []
        space.register_constant_mutator(FakeConstantMutator("A", journal))
        space.register_constant_mutator(
            FakeConstantMutator("B", journal, error=RuntimeError("constant stuck"))
        )
        space.register_constant_mutator(FakeConstantMutator("C", journal))
        recorder = space.any_instance_recorder_for(Collaborator)
        dbl = TestDouble(space, "dbl", foo=None)
        dbl.foo()
        space.ordering_ledger.consume("dbl", "foo", [1])

        with pytest.raises(RuntimeError, match="constant stuck"):
            space.reset_all()

        assert journal == ["C", "A"]
        assert isinstance(recorder, FakeAnyInstanceRecorder)
        assert recorder.stopped
        assert space.any_instance_recorders == {}
        assert space.ordering_ledger.consumed_position == 0


class TestConstantMutators:
    """Tests for constant mutator lookup."""

    def test_lookup_by_name(self, space: Space) -> None:
        mutator = FakeConstantMutator("Outer::Inner")
        space.register_constant_mutator(mutator)
        assert space.constant_mutator_for("Outer::Inner") is mutator
        assert space.constant_mutator_for("Other") is None


class TestAnyInstance:
    """Tests for any-instance recorder bookkeeping."""

    def test_recorder_created_once(self, space: Space) -> None:
        first = space.any_instance_recorder_for(Collaborator)
        assert space.any_instance_recorder_for(Collaborator) is first

    def test_only_return_existing(self, space: Space) -> None:
        assert space.any_instance_recorder_for(Collaborator, only_return_existing=True) is None
        assert space.any_instance_recorders == {}

    def test_ancestry_lookup(self, space: Space) -> None:
        assert space.any_instance_recorders_from_ancestry_of(Greeter()) == []
        recorder = space.any_instance_recorder_for(Collaborator)
        assert space.any_instance_recorders_from_ancestry_of(Greeter()) == [recorder]

    def test_any_instance_proxy_stubs_existing_instances(self, space: Space) -> None:
        target = Collaborator()
        space.proxy_for(target)

        any_instance = space.any_instance_proxy_for(Collaborator)
        any_instance.add_stub("foo", return_value="everywhere")

        assert isinstance(any_instance, AnyInstanceProxy)
        assert target.foo() == "everywhere"
        assert any_instance.klass is Collaborator


class TestNestedSpace:
    """Tests for scopes layered over a parent."""

    def test_new_scope_nests(self, space: Space) -> None:
        nested = space.new_scope()
        assert isinstance(nested, NestedSpace)
        assert nested.parent is space
        assert isinstance(nested.new_scope(), NestedSpace)

    def test_reuses_ancestor_proxy_without_storing_it(self, space: Space) -> None:
        target = Collaborator()
        outer_proxy = space.proxy_for(target)
        nested = space.new_scope().new_scope()

        assert nested.registered(target)
        assert nested.proxy_for(target) is outer_proxy
        assert nested.proxies == {}

    def test_child_entries_stay_local(self, space: Space) -> None:
        nested = space.new_scope()
        target = Collaborator()
        nested.proxy_for(target).add_stub("foo", return_value="inner")

        assert not space.registered(target)

        nested.reset_all()
        assert target.foo() == "real foo"

    def test_child_reset_leaves_parent_proxies(self, space: Space) -> None:
        target = Collaborator()
        space.proxy_for(target).add_stub("foo", return_value="outer")
        nested = space.new_scope()
        nested.proxy_for(target)

        nested.reset_all()

        assert target.foo() == "outer"

    def test_child_verify_ignores_parent_expectations(self, space: Space) -> None:
        space.proxy_for(Collaborator()).add_message_expectation("foo")
        space.new_scope().verify_all()

    def test_constant_mutators_fall_back_to_parent(self, space: Space) -> None:
        mutator = FakeConstantMutator("A")
        space.register_constant_mutator(mutator)
        assert space.new_scope().constant_mutator_for("A") is mutator

    def test_any_instance_recorder_reused_from_parent(self, space: Space) -> None:
        recorder = space.any_instance_recorder_for(Collaborator)
        nested = space.new_scope()
        assert nested.any_instance_recorder_for(Collaborator) is recorder
        assert nested.any_instance_recorders_from_ancestry_of(Greeter()) == [recorder]

    def test_proxies_of_includes_ancestors(self, space: Space) -> None:
        outer, inner = Collaborator(), Collaborator()
        space.proxy_for(outer)
        nested = space.new_scope()
        nested.proxy_for(inner)
        assert {id(p.target) for p in nested.proxies_of(Collaborator)} == {
            id(outer),
            id(inner),
        }
