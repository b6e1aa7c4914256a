"""doubletrace: record calls on test doubles and verify them afterwards.

Public entry points:
- MockLifecycle: opens and closes per-test scopes
- Space: maps objects to proxies within a scope
- TestDouble: a pure stand-in object
- HaveReceived / have_received: received-call assertions
"""

from doubletrace.config import DoubleConfig, VerificationMode
from doubletrace.config_loader import load_config
from doubletrace.domain.arguments import ArgumentListMatcher, anything
from doubletrace.domain.constraints import (
    Constraint,
    at_least,
    at_most,
    exactly,
    never,
    once,
    thrice,
    twice,
)
from doubletrace.errors import (
    CountMismatchError,
    DoubleError,
    ExpectationFailure,
    InterfaceError,
    LifecycleError,
    MockedInsteadOfStubbedError,
    NotStubbedError,
    OutOfOrderError,
    UnexpectedMessageError,
    UnmetExpectationError,
    UnmetExpectationsError,
    UsageError,
)
from doubletrace.lifecycle import MockLifecycle
from doubletrace.matchers import HaveReceived, have_received
from doubletrace.space import NestedSpace, RootSpace, Space
from doubletrace.test_double import TestDouble

__version__ = "0.1.0"

__all__ = [
    "ArgumentListMatcher",
    "Constraint",
    "CountMismatchError",
    "DoubleConfig",
    "DoubleError",
    "ExpectationFailure",
    "HaveReceived",
    "InterfaceError",
    "LifecycleError",
    "MockLifecycle",
    "MockedInsteadOfStubbedError",
    "NestedSpace",
    "NotStubbedError",
    "OutOfOrderError",
    "RootSpace",
    "Space",
    "TestDouble",
    "UnexpectedMessageError",
    "UnmetExpectationError",
    "UnmetExpectationsError",
    "UsageError",
    "VerificationMode",
    "anything",
    "at_least",
    "at_most",
    "exactly",
    "have_received",
    "load_config",
    "never",
    "once",
    "thrice",
    "twice",
]
