"""Core error types for :mod:`rxgateway`.

Gateway errors fall into five kinds:

    TransportError  connection-level I/O failure (retried)
    DecodeError     malformed or undecompressible frame
    ProtocolError   handshake rejected, heartbeat timeout, buffer overflow (retried)
    AuthError       token rejected or challenge mismatch (terminal)
    ExhaustedError  reconnect attempts exhausted (terminal)
"""


class RxException(Exception):
    """Wrapper used when forwarding errors through a reactive error channel."""

    def __init__(self, exception: Exception, source: str = "Unknown", note: str = ""):
        super().__init__(f"<{source}> {note}: {exception}")
        self.exception = exception
        self.source = source
        self.note = note

    def __str__(self):
        return f"<{self.source}> {self.note}: {self.exception}"


class GatewayError(Exception):
    """Base class for all gateway errors."""

    kind = "gateway"

    #: Whether the session's reconnect policy may recover from this error.
    retryable = False


class TransportError(GatewayError):
    kind = "transport"
    retryable = True


class DecodeError(GatewayError):
    kind = "decode"


class DecompressError(DecodeError):
    """Compressed frame could not be inflated."""


class MalformedFrameError(DecodeError):
    """Frame text is not a valid protocol record."""


class ProtocolError(GatewayError):
    kind = "protocol"
    retryable = True


class HandshakeError(ProtocolError):
    """Hello missing, late, or rejected by the server."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class HeartbeatTimeoutError(ProtocolError):
    pass


class ReorderOverflowError(ProtocolError):
    pass


class ReconnectRequested(ProtocolError):
    """The server asked the client to drop the session and reconnect."""

    def __init__(self, code: int, reason: str):
        super().__init__(f"Server requested reconnect: {code} - {reason}")
        self.code = code
        self.reason = reason


class AuthError(GatewayError):
    kind = "auth"


class ExhaustedError(GatewayError):
    kind = "exhausted"

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        super().__init__(
            f"Reconnect attempts exhausted after {attempts} failures: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
