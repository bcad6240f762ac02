"""Convenience exports for the :mod:`rxgateway` package."""

from .config import DEFAULT_BASE_URL, GatewayConfig, RetryPolicy, WebhookConfig  # noqa: F401
from .gateway import (  # noqa: F401
    DeliverySink,
    DirectoryClient,
    Endpoint,
    EndpointResolver,
    EventData,
    GatewaySession,
    GatewayState,
    HelloData,
    HeartbeatMonitor,
    ReorderBuffer,
    RxDeliverySink,
    SessionState,
    Signal,
    SignalKind,
    Transport,
    WebSocketTransport,
    decode_frame,
    encode_heartbeat,
)
from .mechanism import (  # noqa: F401
    AuthError,
    DecodeError,
    DecompressError,
    ExhaustedError,
    GatewayError,
    HandshakeError,
    HeartbeatTimeoutError,
    MalformedFrameError,
    ProtocolError,
    ReconnectRequested,
    ReorderOverflowError,
    RxException,
    TransportError,
)
from .telemetry import (  # noqa: F401
    GatewayMetrics,
    LogContext,
    OTelLogger,
    configure_metrics,
    configure_telemetry,
    get_default_providers,
)
from .webhook import (  # noqa: F401
    RecentSequenceSet,
    WebhookChallenge,
    WebhookEvent,
    WebhookHandler,
    create_webhook_app,
    run_webhook_server,
)

__all__ = [
    "RxException",

    # Errors
    "GatewayError",
    "TransportError",
    "DecodeError",
    "DecompressError",
    "MalformedFrameError",
    "ProtocolError",
    "HandshakeError",
    "HeartbeatTimeoutError",
    "ReorderOverflowError",
    "ReconnectRequested",
    "AuthError",
    "ExhaustedError",

    # Config
    "DEFAULT_BASE_URL",
    "GatewayConfig",
    "WebhookConfig",
    "RetryPolicy",

    # Gateway
    "Signal",
    "SignalKind",
    "HelloData",
    "EventData",
    "decode_frame",
    "encode_heartbeat",
    "ReorderBuffer",
    "HeartbeatMonitor",
    "GatewayState",
    "Endpoint",
    "SessionState",
    "GatewaySession",
    "Transport",
    "WebSocketTransport",
    "EndpointResolver",
    "DirectoryClient",
    "DeliverySink",
    "RxDeliverySink",

    # Webhook
    "RecentSequenceSet",
    "WebhookChallenge",
    "WebhookEvent",
    "WebhookHandler",
    "create_webhook_app",
    "run_webhook_server",

    # Telemetry
    "configure_telemetry",
    "configure_metrics",
    "get_default_providers",
    "OTelLogger",
    "LogContext",
    "GatewayMetrics",
]
