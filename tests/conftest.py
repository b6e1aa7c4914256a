"""Pytest configuration for doubletrace tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from doubletrace.space import RootSpace

if TYPE_CHECKING:
    from collections.abc import Iterator

    from doubletrace.space import Space

pytest_plugins = ["doubletrace.pytest_plugin"]


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Default unmarked tests to unit category."""
    for item in items:
        if any(marker in item.keywords for marker in ("unit", "integration")):
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture
def space() -> Iterator[Space]:
    """A fresh scope, reset after the test without verifying it."""
    scope = RootSpace().new_scope()
    yield scope
    scope.reset_all()
