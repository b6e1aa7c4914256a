"""pytest integration.

Enable with ``pytest_plugins = ["doubletrace.pytest_plugin"]`` in a
conftest.py. Tests then request the ``doubles`` fixture to get an open
Space; mock expectations are verified after the test body and the scope is
always torn down.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from doubletrace.config_loader import load_config
from doubletrace.lifecycle import MockLifecycle

if TYPE_CHECKING:
    from collections.abc import Iterator

    from doubletrace.space import Space


@pytest.fixture
def doubles_lifecycle(request: pytest.FixtureRequest) -> MockLifecycle:
    """Lifecycle configured from doubletrace.yaml at the pytest root, if any."""
    return MockLifecycle(load_config(request.config.rootpath))


@pytest.fixture
def doubles(doubles_lifecycle: MockLifecycle) -> Iterator[Space]:
    space = doubles_lifecycle.setup()
    try:
        yield space
        doubles_lifecycle.verify()
    finally:
        doubles_lifecycle.teardown()
