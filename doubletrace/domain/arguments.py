"""Argument list matching for stubs, expectations and received-call queries.

Expected values are compared with ``expected == actual`` so that matcher
objects (``anything``, ``unittest.mock.ANY``, custom classes defining
``__eq__``) take part in the comparison.
"""

from __future__ import annotations

from typing import Any

from doubletrace.domain.call_record import format_args


class _Anything:
    """Matches any single argument."""

    def __eq__(self, other: object) -> bool:
        return True

    def __ne__(self, other: object) -> bool:
        return False

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return "anything"


anything = _Anything()


class ArgumentListMatcher:
    """Matches a received (args, kwargs) pair against an expected argument list.

    ``ArgumentListMatcher.any()`` matches every argument list; it is the
    default when no arguments were declared.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.expected_args = args
        self.expected_kwargs = kwargs
        self._matches_any = False

    @classmethod
    def any(cls) -> ArgumentListMatcher:
        matcher = cls()
        matcher._matches_any = True
        return matcher

    @property
    def matches_any(self) -> bool:
        return self._matches_any

    def matches(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        if self._matches_any:
            return True
        if len(args) != len(self.expected_args):
            return False
        if set(kwargs) != set(self.expected_kwargs):
            return False
        if not all(e == a for e, a in zip(self.expected_args, args)):
            return False
        return all(v == kwargs[k] for k, v in self.expected_kwargs.items())

    def describe(self) -> str:
        if self._matches_any:
            return "(*(any args))"
        return format_args(self.expected_args, self.expected_kwargs)

    def __repr__(self) -> str:
        return f"ArgumentListMatcher{self.describe()}"


ANY_ARGS = ArgumentListMatcher.any()
