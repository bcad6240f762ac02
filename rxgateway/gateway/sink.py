"""Delivery sink: the consumer side of the gateway session.

The session calls the sink's four callbacks one at a time from its own
task, never concurrently. A slow callback therefore stalls the whole
session loop, heartbeats included; ordering stays trivial in exchange.
Hand long work off to another task if that is a problem.

:class:`RxDeliverySink` adapts the callbacks to ReactiveX subjects.

Example:
    >>> sink = RxDeliverySink()
    >>> sink.events.pipe(ops.map(lambda e: e.content)).subscribe(print)
    >>> await session.connect(sink)
"""

from typing import Any, Awaitable, Protocol, runtime_checkable

from reactivex.subject import Subject

from ..mechanism import RxException
from .framing import EventData, HelloData


@runtime_checkable
class DeliverySink(Protocol):
    """Consumer callbacks invoked by :class:`GatewaySession`.

    Callbacks may be plain functions or coroutines.
    """

    def on_hello(self, hello: HelloData) -> Awaitable[None] | None:
        """Handshake completed."""
        ...

    def on_event(self, event: EventData) -> Awaitable[None] | None:
        """One event, in strictly increasing sequence order."""
        ...

    def on_reconnect(self, code: int, reason: str) -> Awaitable[None] | None:
        """Server requested a reconnect; session state has been discarded."""
        ...

    def on_resume(self, session_id: str) -> Awaitable[None] | None:
        """Server acknowledged a resumed session."""
        ...


class RxDeliverySink:
    """Delivery sink that re-emits every callback on a ReactiveX subject.

    Attributes:
        hellos: :class:`HelloData` per successful handshake.
        events: :class:`EventData` in delivery order.
        reconnects: ``(code, reason)`` tuples.
        resumes: resumed session ids.
    """

    def __init__(self, name: str = "RxDeliverySink"):
        self._name = name
        self.hellos: Subject[HelloData] = Subject()
        self.events: Subject[EventData] = Subject()
        self.reconnects: Subject[tuple[int, str]] = Subject()
        self.resumes: Subject[str] = Subject()

    def on_hello(self, hello: HelloData) -> None:
        self.hellos.on_next(hello)

    def on_event(self, event: EventData) -> None:
        self.events.on_next(event)

    def on_reconnect(self, code: int, reason: str) -> None:
        self.reconnects.on_next((code, reason))

    def on_resume(self, session_id: str) -> None:
        self.resumes.on_next(session_id)

    def _subjects(self) -> tuple[Subject[Any], ...]:
        return (self.hellos, self.events, self.reconnects, self.resumes)

    def complete(self) -> None:
        """Complete every subject; call when the session ends cleanly."""
        for subject in self._subjects():
            subject.on_completed()

    def fail(self, error: Exception, note: str = "GatewaySession.connect") -> None:
        """Forward a terminal session error to every subscriber."""
        rx_exception = RxException(error, source=self._name, note=note)
        for subject in self._subjects():
            subject.on_error(rx_exception)
