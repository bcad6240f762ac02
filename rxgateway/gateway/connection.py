"""Session state for the gateway connection lifecycle.

This module provides:
    - GatewayState: lifecycle states of a :class:`GatewaySession`
    - Endpoint: connection endpoint and token from the directory service
    - SessionState: session-scoped protocol state (session id, cursor, buffer)

State transitions:
    IDLE → CONNECTING: connect() called
    CONNECTING → AWAITING_HELLO: transport open
    AWAITING_HELLO → CONNECTED: Hello with success code
    CONNECTED → RECONNECTING: transport error, reconnect request, heartbeat timeout
    AWAITING_HELLO → RECONNECTING: Hello rejected, late, or of the wrong kind
    RECONNECTING → CONNECTING: backoff elapsed
    RECONNECTING → TERMINATED: retry budget exhausted
    * → CLOSING → TERMINATED: close() or auth failure

Session state is never reset field by field: :meth:`SessionState.fresh`
builds a new value, so a reset cannot leave a stale cursor or buffer behind.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .reorder import ReorderBuffer


class GatewayState(Enum):
    """Gateway session lifecycle states."""

    IDLE = auto()
    CONNECTING = auto()
    AWAITING_HELLO = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    CLOSING = auto()
    TERMINATED = auto()  # terminal


@dataclass(frozen=True)
class Endpoint:
    """Connection endpoint resolved from the directory service."""

    url: str
    token: str

    def __repr__(self) -> str:
        return f"Endpoint(url={self.url!r}, token=<redacted>)"


@dataclass
class SessionState:
    """Session-scoped protocol state, owned by a single session task.

    Attributes:
        endpoint: Gateway URL for the current attempt.
        auth_token: Token sent on the connection URL.
        compression_enabled: Whether binary frames are zlib-compressed.
        session_id: Server session id, set by a successful Hello.
        next_expected_sequence: Sequence of the last delivered event.
        reorder_buffer: Events held until their predecessors arrive.
    """

    endpoint: str = ""
    auth_token: str = field(default="", repr=False)
    compression_enabled: bool = True
    session_id: str | None = None
    next_expected_sequence: int = 0
    reorder_buffer: ReorderBuffer = field(default_factory=ReorderBuffer, repr=False)

    def fresh(self) -> "SessionState":
        """Return a new state with no session, cursor 0 and an empty buffer.

        Connection parameters (endpoint, token, compression, buffer
        capacity) are carried over.
        """
        return SessionState(
            endpoint=self.endpoint,
            auth_token=self.auth_token,
            compression_enabled=self.compression_enabled,
            reorder_buffer=ReorderBuffer(self.reorder_buffer.capacity()),
        )

    def with_endpoint(self, endpoint: Endpoint) -> "SessionState":
        """Return this state pointed at a newly resolved endpoint."""
        return replace(self, endpoint=endpoint.url, auth_token=endpoint.token)

    @property
    def resumable(self) -> bool:
        return self.session_id is not None

    def connection_url(self, resume: bool = False) -> str:
        """Build the transport URL, optionally asking the server to resume."""
        query = {
            "token": self.auth_token,
            "compress": "1" if self.compression_enabled else "0",
        }
        if resume and self.session_id is not None:
            query.update(
                resume="1",
                sn=str(self.next_expected_sequence),
                session_id=self.session_id,
            )
        parts = urlsplit(self.endpoint)
        existing = [(k, v) for k, v in parse_qsl(parts.query) if k not in query]
        return urlunsplit(
            parts._replace(query=urlencode(existing + list(query.items())))
        )
