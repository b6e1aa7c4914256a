"""In-memory fake implementations for testing.

Fakes implement the collaborator protocols the registry depends on, so tests
can assert on state instead of interactions.

Available fakes:
- FakeConstantMutator: records resets, optionally in a shared journal
- FakeAnyInstanceRecorder: verifiable recorder with a configurable failure
- Collaborator / Greeter / Service: plain classes used as partial double targets

Usage:
    from tests.fakes import FakeConstantMutator

    def test_something(space):
        mutator = FakeConstantMutator("A::B")
        space.register_constant_mutator(mutator)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from doubletrace.domain.constraints import once
from doubletrace.errors import UnmetExpectationError


@dataclass
class FakeConstantMutator:
    """Constant mutator that counts resets.

    Attributes:
        full_constant_name: Name used for lookups.
        journal: Shared list the mutator appends its name to when reset, so
            tests can check reset order across mutators.
        reset_count: Number of idempotently_reset calls.
        error: Raised from idempotently_reset when set.
    """

    full_constant_name: str
    journal: list[str] = field(default_factory=list)
    reset_count: int = 0
    error: Exception | None = None

    def idempotently_reset(self) -> None:
        self.reset_count += 1
        if self.error is not None:
            raise self.error
        self.journal.append(self.full_constant_name)


class FakeAnyInstanceRecorder:
    """Any-instance recorder whose verify can be made to fail."""

    def __init__(self, klass: type, *, unmet_message: str | None = None) -> None:
        self.klass = klass
        self.unmet_message = unmet_message
        self.verify_calls = 0
        self.stopped = False

    def verify(self) -> None:
        self.verify_calls += 1
        if self.unmet_message is not None:
            raise UnmetExpectationError(
                f"Any instance of {self.klass.__name__}", self.unmet_message, once(), 0
            )

    def stop_all_observation(self) -> None:
        self.stopped = True


class Collaborator:
    """Plain class used as a partial double target."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def foo(self, *args: object) -> str:
        self.calls.append("foo")
        return "real foo"

    def bar(self, value: int, *, flag: bool = False) -> str:
        return "real bar"

    @classmethod
    def build(cls, name: str) -> Collaborator:
        return cls()

    @staticmethod
    def helper(x: int, y: int) -> int:
        return x + y


class Greeter(Collaborator):
    """Subclass of Collaborator for inheritance scenarios."""

    def greet(self, name: str) -> str:
        return f"hello {name}"


class Service:
    """Class whose instances reject new attributes."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def run(self) -> str:
        return "ran"
