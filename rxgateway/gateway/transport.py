"""Duplex frame transport used by the gateway session.

:class:`Transport` is the contract the session needs; the session owns both
directions and never calls them concurrently. :class:`WebSocketTransport`
implements it on top of the ``websockets`` asyncio client.
"""

import asyncio
from typing import Awaitable, Callable, Protocol, runtime_checkable

import websockets
from websockets import ClientConnection

from ..mechanism import ProtocolError, TransportError
from ..utils import get_short_error_info


@runtime_checkable
class Transport(Protocol):
    """Abstract duplex byte-frame stream."""

    async def send(self, data: bytes) -> None:
        """Write one frame.

        Raises:
            TransportError: If the connection is broken.
        """
        ...

    async def receive(self) -> str | bytes:
        """Wait for the next inbound frame (cancellable).

        Raises:
            TransportError: If the connection is broken or closed.
        """
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...


TransportFactory = Callable[[str], Awaitable[Transport]]


class WebSocketTransport:
    """Gateway transport over a ``websockets`` client connection.

    Outbound control frames are JSON text, so :meth:`send` writes text frames.
    Library-level pings are disabled by default: liveness is tracked by the
    gateway heartbeat instead.
    """

    def __init__(self, ws: ClientConnection):
        self.ws = ws

    @classmethod
    async def open(
        cls,
        url: str,
        open_timeout: float = 10.0,
        ping_interval: float | None = None,
    ) -> "WebSocketTransport":
        """Connect to ``url``.

        Raises:
            TransportError: Network failure, timeout or rejected upgrade.
            ProtocolError: ``url`` is not a valid WebSocket URI.
        """
        try:
            ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    ping_interval=ping_interval,
                    max_size=None,
                    open_timeout=None,
                ),
                open_timeout,
            )
        except TimeoutError as e:
            raise TransportError(f"Timed out after {open_timeout}s opening connection") from e
        except websockets.InvalidURI as e:
            raise ProtocolError(f"Invalid gateway URI: {get_short_error_info(e)}") from e
        except websockets.InvalidHandshake as e:
            raise TransportError(f"Invalid handshake: {get_short_error_info(e)}") from e
        except OSError as e:
            raise TransportError(f"Network error: {get_short_error_info(e)}") from e
        return cls(ws)

    async def send(self, data: bytes) -> None:
        try:
            await self.ws.send(data.decode("utf-8"))
        except websockets.ConnectionClosed as e:
            raise TransportError(f"Send failed, connection closed: {get_short_error_info(e)}") from e
        except OSError as e:
            raise TransportError(f"Send failed, connection broken: {get_short_error_info(e)}") from e

    async def receive(self) -> str | bytes:
        try:
            return await self.ws.recv()
        except websockets.ConnectionClosedOK as e:
            raise TransportError("Connection closed by server") from e
        except websockets.ConnectionClosedError as e:
            raise TransportError(f"Connection closed with error: {get_short_error_info(e)}") from e
        except OSError as e:
            raise TransportError(f"Network error: {get_short_error_info(e)}") from e

    async def close(self) -> None:
        try:
            await asyncio.wait_for(self.ws.close(), timeout=1.0)
        except (TimeoutError, websockets.ConnectionClosed, OSError):
            pass
