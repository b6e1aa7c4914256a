"""Method redefinition collaborators driven by proxies.

A proxy never patches objects itself; it asks a MethodRedefiner to route a
message on its target into an intercepting callable, and later to restore
the original. The defaults here work through plain attribute assignment:

- InstanceRedefiner sets the interceptor in the instance ``__dict__``.
- ClassRedefiner sets a ``staticmethod`` on the class so the message is
  intercepted both on the class and on its instances.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from doubletrace.errors import InterfaceError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_MISSING = object()


@runtime_checkable
class MethodRedefiner(Protocol):
    """Installs and removes interceptions on one target."""

    def install(self, message: str, interceptor: Callable[..., Any]) -> None:
        """Route invocations of ``message`` on the target into ``interceptor``."""
        ...

    def uninstall(self, message: str) -> None:
        """Restore the original behaviour of ``message`` (no-op if not installed)."""
        ...

    def original_for(self, message: str) -> Any:
        """The attribute that was in place before install, or the live one."""
        ...


class NullRedefiner:
    """Redefiner for targets that cannot be patched (pure doubles, None).

    Calls reach the proxy through the target's own dispatch instead.
    """

    def install(self, message: str, interceptor: Callable[..., Any]) -> None:
        pass

    def uninstall(self, message: str) -> None:
        pass

    def original_for(self, message: str) -> Any:
        return None


class InstanceRedefiner:
    """Redefines messages on a single instance."""

    def __init__(self, target: object) -> None:
        self._target = target
        self._originals: dict[str, Any] = {}

    def install(self, message: str, interceptor: Callable[..., Any]) -> None:
        if message in self._originals:
            return
        own = _own_dict(self._target)
        original = own.get(message, _MISSING) if own is not None else _MISSING
        try:
            setattr(self._target, message, interceptor)
        except (AttributeError, TypeError) as e:
            raise InterfaceError(
                message, f"cannot redefine {message!r} on {self._target!r}: {e}"
            ) from e
        self._originals[message] = original
        logger.debug("Redefined %s on %r", message, self._target)

    def uninstall(self, message: str) -> None:
        if message not in self._originals:
            return
        original = self._originals.pop(message)
        if original is not _MISSING:
            setattr(self._target, message, original)
        elif message in (_own_dict(self._target) or {}):
            delattr(self._target, message)
        logger.debug("Restored %s on %r", message, self._target)

    def original_for(self, message: str) -> Any:
        """The callable ``message`` resolved to on the target before install."""
        original = self._originals.get(message, _MISSING)
        if original is not _MISSING:
            return original
        if message not in self._originals:
            return getattr(self._target, message, None)
        # Shadowed a class attribute: bind it the way attribute lookup would.
        attr = inspect.getattr_static(type(self._target), message, None)
        if hasattr(attr, "__get__"):
            return attr.__get__(self._target, type(self._target))
        return attr


class ClassRedefiner:
    """Redefines messages on a class object."""

    def __init__(self, target: type) -> None:
        self._target = target
        self._originals: dict[str, Any] = {}

    def install(self, message: str, interceptor: Callable[..., Any]) -> None:
        if message in self._originals:
            return
        original = self._target.__dict__.get(message, _MISSING)
        try:
            setattr(self._target, message, staticmethod(interceptor))
        except (AttributeError, TypeError) as e:
            raise InterfaceError(
                message, f"cannot redefine {message!r} on {self._target!r}: {e}"
            ) from e
        self._originals[message] = original
        logger.debug("Redefined %s on class %s", message, self._target.__name__)

    def uninstall(self, message: str) -> None:
        if message not in self._originals:
            return
        original = self._originals.pop(message)
        if original is _MISSING:
            delattr(self._target, message)
        else:
            setattr(self._target, message, original)
        logger.debug("Restored %s on class %s", message, self._target.__name__)

    def original_for(self, message: str) -> Any:
        """The raw attribute the class itself defined before install.

        None when the class did not define ``message`` in its own namespace
        (it was inherited, or does not exist).
        """
        if message in self._originals:
            original = self._originals[message]
            return None if original is _MISSING else original
        return self._target.__dict__.get(message)


def _own_dict(obj: object) -> dict[str, Any] | None:
    try:
        return object.__getattribute__(obj, "__dict__")
    except AttributeError:
        return None
