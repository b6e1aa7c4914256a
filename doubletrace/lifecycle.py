"""Per-test lifecycle driver.

MockLifecycle owns the stack of open scopes. Before ``setup`` the current
space is a RootSpace, so any use of doubles raises LifecycleError.

Typical flow, one test:

1. ``setup()`` opens a scope nested in the current one.
2. The test stubs, calls, and asserts through ``space``.
3. ``verify()`` checks the mock expectations of the scope.
4. ``teardown()`` resets the scope and closes it, whether or not verify
   passed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from doubletrace.config import DoubleConfig
from doubletrace.space import RootSpace

if TYPE_CHECKING:
    from collections.abc import Iterator

    from doubletrace.space import Space

logger = logging.getLogger(__name__)


class MockLifecycle:
    """Opens, verifies and closes per-test scopes.

    Args:
        config: Settings handed to every space. Defaults to DoubleConfig().
    """

    def __init__(self, config: DoubleConfig | None = None) -> None:
        self.config = config or DoubleConfig()
        self.root = RootSpace(self.config)
        self._stack: list[Space] = []

    @property
    def space(self) -> Space | RootSpace:
        """The innermost open scope, or the root sentinel."""
        return self._stack[-1] if self._stack else self.root

    @property
    def depth(self) -> int:
        return len(self._stack)

    def setup(self) -> Space:
        space = self.space.new_scope()
        self._stack.append(space)
        logger.debug("Opened scope %d", len(self._stack))
        return space

    def verify(self) -> None:
        self.space.verify_all()

    def teardown(self) -> None:
        """Reset and close the innermost scope.

        Calling it with no open scope is a no-op. The scope is closed even
        when resetting it raised.
        """
        if not self._stack:
            self.root.reset_all()
            return
        try:
            self._stack[-1].reset_all()
        finally:
            self._stack.pop()
            logger.debug("Closed scope %d", len(self._stack) + 1)

    @contextmanager
    def with_temporary_scope(self) -> Iterator[Space]:
        """Open a scope for the duration of the block.

        The scope is verified if the block completes and always torn down.

        Example:
            with lifecycle.with_temporary_scope() as space:
                proxy = space.proxy_for(obj)
                ...
        """
        space = self.setup()
        try:
            yield space
            self.verify()
        finally:
            self.teardown()
