"""Gateway client for sequence-numbered event streams.

This package provides the client side of a persistent event gateway:
    - Frame codec for the ``{"s", "d", "sn"}`` wire records
    - Reorder buffer releasing events in strict sequence order
    - Heartbeat monitor with acknowledgement timeout
    - Session state with resume support
    - Directory service client resolving the gateway URL
    - GatewaySession driving handshake, delivery and reconnects

Example:
    >>> from rxgateway.gateway import DirectoryClient, GatewaySession, RxDeliverySink
    >>>
    >>> async with DirectoryClient(config.base_url, config.token) as directory:
    ...     session = GatewaySession(config, directory)
    ...     sink = RxDeliverySink()
    ...     sink.events.subscribe(lambda e: print(e.content))
    ...     await session.connect(sink)
"""

from .connection import (
    Endpoint,
    GatewayState,
    SessionState,
)
from .directory import (
    DirectoryClient,
    EndpointResolver,
)
from .framing import (
    EventData,
    HelloData,
    Signal,
    SignalKind,
    decode_frame,
    decompress,
    encode_heartbeat,
)
from .heartbeat import (
    HeartbeatAction,
    HeartbeatActionKind,
    HeartbeatMonitor,
)
from .reorder import ReorderBuffer
from .session import GatewaySession
from .sink import DeliverySink, RxDeliverySink
from .transport import (
    Transport,
    TransportFactory,
    WebSocketTransport,
)

__all__ = [
    # Framing
    "Signal",
    "SignalKind",
    "HelloData",
    "EventData",
    "decode_frame",
    "decompress",
    "encode_heartbeat",
    # Ordering and liveness
    "ReorderBuffer",
    "HeartbeatMonitor",
    "HeartbeatAction",
    "HeartbeatActionKind",
    # Session
    "GatewayState",
    "Endpoint",
    "SessionState",
    "GatewaySession",
    # Collaborators
    "Transport",
    "TransportFactory",
    "WebSocketTransport",
    "EndpointResolver",
    "DirectoryClient",
    "DeliverySink",
    "RxDeliverySink",
]
