"""Heartbeat scheduling and liveness detection.

The session consults :meth:`HeartbeatMonitor.tick` once per loop
iteration. The returned :class:`HeartbeatAction` tells it whether to send
a heartbeat, how long it may block waiting for the next frame, or that the
connection must be considered dead.

Timeline for ``interval=30`` and ``ack_timeout=6``::

    t=0   connection ready              tick -> IDLE(30)
    t=30  interval elapsed              tick -> SEND, caller calls mark_sent()
    t=32  waiting for ack               tick -> AWAIT_ACK(4)
    t=36  no ack yet                    tick -> TIMEOUT (once)

Any ack clears the outstanding heartbeat, even an unsolicited one.
"""

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable


class HeartbeatActionKind(Enum):
    SEND = auto()  # Send a heartbeat now
    AWAIT_ACK = auto()  # Heartbeat outstanding, keep waiting
    IDLE = auto()  # Nothing outstanding, next heartbeat not yet due
    TIMEOUT = auto()  # Ack did not arrive in time


@dataclass(frozen=True)
class HeartbeatAction:
    """Result of one :meth:`HeartbeatMonitor.tick`.

    Attributes:
        kind: What the caller should do.
        remaining: Seconds the caller may block before ticking again.
            Zero for SEND and TIMEOUT.
    """

    kind: HeartbeatActionKind
    remaining: float = 0.0


class HeartbeatMonitor:
    """Tracks last-sent and acknowledged heartbeats for one connection.

    Create a fresh monitor for every connection attempt.

    Args:
        interval: Seconds between heartbeats.
        ack_timeout: Seconds to wait for an acknowledgement.
        clock: Monotonic time source, injectable for tests.
        started_at: Reference time for the first interval; defaults to now.
    """

    def __init__(
        self,
        interval: float = 30.0,
        ack_timeout: float = 6.0,
        clock: Callable[[], float] = time.monotonic,
        started_at: float | None = None,
    ):
        if interval <= 0 or ack_timeout <= 0:
            raise ValueError("interval and ack_timeout must be positive")
        self.interval = interval
        self.ack_timeout = ack_timeout
        self._clock = clock
        self.last_sent = clock() if started_at is None else started_at
        self.awaiting_ack = False

    def tick(self, now: float | None = None) -> HeartbeatAction:
        """Decide the next heartbeat step at time ``now``."""
        now = self._clock() if now is None else now
        elapsed = now - self.last_sent

        if self.awaiting_ack:
            if elapsed >= self.ack_timeout:
                # Report the timeout once; the next interval starts from here.
                self.awaiting_ack = False
                self.last_sent = now
                return HeartbeatAction(HeartbeatActionKind.TIMEOUT)
            return HeartbeatAction(
                HeartbeatActionKind.AWAIT_ACK, self.ack_timeout - elapsed
            )

        if elapsed >= self.interval:
            return HeartbeatAction(HeartbeatActionKind.SEND)
        return HeartbeatAction(HeartbeatActionKind.IDLE, self.interval - elapsed)

    def mark_sent(self, now: float | None = None) -> None:
        """Record that a heartbeat was written to the transport."""
        self.last_sent = self._clock() if now is None else now
        self.awaiting_ack = True

    def acknowledge(self) -> None:
        """Record a heartbeat acknowledgement."""
        self.awaiting_ack = False
