"""Any-instance recorders: the registry's side of class-wide fan-out.

Fanning stubs out to every instance of a class is a separate collaborator.
The registry only needs to create recorders lazily per class, verify them,
and stop them at teardown. AnyInstanceRecorder implements that contract and
remembers which messages were observed, nothing more.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from doubletrace.proxy import Proxy

logger = logging.getLogger(__name__)


@runtime_checkable
class AnyInstanceRecorderProtocol(Protocol):
    """What the registry requires from an any-instance recorder."""

    klass: type

    def verify(self) -> None:
        """Raise if class-wide expectations were not met."""
        ...

    def stop_all_observation(self) -> None:
        """Undo every class-wide interception."""
        ...


class AnyInstanceRecorder:
    """Inert recorder tracking observed messages for one class."""

    def __init__(self, klass: type) -> None:
        self.klass = klass
        self.observed_messages: list[str] = []
        self.stopped = False

    def observe(self, message: str) -> None:
        if message not in self.observed_messages:
            self.observed_messages.append(message)

    def verify(self) -> None:
        pass

    def stop_all_observation(self) -> None:
        if self.observed_messages:
            logger.debug(
                "Stopping any-instance observation of %s on %s",
                ", ".join(self.observed_messages),
                self.klass.__name__,
            )
        self.observed_messages.clear()
        self.stopped = True


class AnyInstanceProxy:
    """Pairs a class's recorder with the proxies of its existing instances."""

    def __init__(
        self, recorder: AnyInstanceRecorderProtocol, proxies: list[Proxy]
    ) -> None:
        self.recorder = recorder
        self.proxies = proxies

    @property
    def klass(self) -> type:
        return self.recorder.klass

    def add_stub(self, message: str, **kwargs: Any) -> None:
        """Stub ``message`` on every instance already doubled in the scope."""
        if isinstance(self.recorder, AnyInstanceRecorder):
            self.recorder.observe(message)
        for proxy in self.proxies:
            proxy.add_stub(message, **kwargs)

    def __repr__(self) -> str:
        return (
            f"AnyInstanceProxy({self.recorder.klass.__name__}, "
            f"{len(self.proxies)} instance proxies)"
        )
