"""Frame codec for the event gateway wire protocol.

Every frame is a JSON record ``{"s": <code>, "d": <payload>, "sn": <seq>}``.
The ``s`` code selects the signal kind:

    0  EVENT          application event, carries ``sn``
    1  HELLO          handshake result ``{"code", "session_id"}``
    2  PING           outbound heartbeat ``{"s": 2, "sn": <cursor>}``
    3  PONG           heartbeat acknowledgement
    4  RESUME         outbound only (expressed as URL query, never a frame)
    5  RECONNECT      server asks the client to drop its session
    6  RESUME_ACK     resume accepted ``{"session_id"}``

Inbound codes that are not listed, and the outbound-only codes, decode to
``SignalKind.UNKNOWN``. The codec is stateless.

Example:
    >>> signal = decode_frame('{"s": 0, "sn": 7, "d": {"type": 1}}')
    >>> signal.kind, signal.sequence
    (<SignalKind.EVENT: 'event'>, 7)
    >>> encode_heartbeat(7)
    b'{"s":2,"sn":7}'
"""

import json
import zlib
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from ..mechanism import DecompressError, MalformedFrameError
from ..utils import as_int

# Wire codes
OP_EVENT = 0
OP_HELLO = 1
OP_PING = 2
OP_PONG = 3
OP_RESUME = 4
OP_RECONNECT = 5
OP_RESUME_ACK = 6


class SignalKind(Enum):
    """Closed set of inbound signal kinds."""

    HELLO = "hello"
    EVENT = "event"
    HEARTBEAT_ACK = "heartbeat_ack"
    RECONNECT_REQUEST = "reconnect_request"
    RESUME_ACK = "resume_ack"
    UNKNOWN = "unknown"


_INBOUND_KINDS: dict[int, SignalKind] = {
    OP_EVENT: SignalKind.EVENT,
    OP_HELLO: SignalKind.HELLO,
    OP_PONG: SignalKind.HEARTBEAT_ACK,
    OP_RECONNECT: SignalKind.RECONNECT_REQUEST,
    OP_RESUME_ACK: SignalKind.RESUME_ACK,
}


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class Signal:
    """One decoded unit of the gateway wire protocol.

    Attributes:
        kind: Signal kind derived from the ``s`` code.
        code: Raw ``s`` code as received.
        sequence: Event sequence number (``sn``); only set for EVENT.
        payload: Read-only view of the ``d`` field.
    """

    kind: SignalKind
    code: int
    sequence: int | None = None
    payload: Any = field(default=None, compare=False)

    @classmethod
    def from_record(cls, record: Any) -> "Signal":
        """Build a signal from an already parsed JSON record.

        Raises:
            MalformedFrameError: If the record is not a protocol frame.
        """
        if not isinstance(record, dict):
            raise MalformedFrameError(
                f"Frame must be a JSON object, got {type(record).__name__}"
            )
        code = record.get("s")
        if isinstance(code, bool) or not isinstance(code, int):
            raise MalformedFrameError(f"Frame has no integer 's' field: {code!r}")

        kind = _INBOUND_KINDS.get(code, SignalKind.UNKNOWN)
        sequence = None
        if kind is SignalKind.EVENT:
            sn = record.get("sn")
            if isinstance(sn, bool) or not isinstance(sn, int):
                raise MalformedFrameError(f"Event frame has no integer 'sn': {sn!r}")
            sequence = sn

        return cls(
            kind=kind,
            code=code,
            sequence=sequence,
            payload=_freeze(record.get("d")),
        )

    def payload_dict(self) -> dict[str, Any]:
        """Return a mutable copy of the payload, or ``{}`` when it is not an object."""
        if isinstance(self.payload, Mapping):
            return _thaw(self.payload)
        return {}


@dataclass(frozen=True)
class HelloData:
    """Handshake result carried by a HELLO signal."""

    code: int
    session_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.code == 0

    @classmethod
    def from_signal(cls, signal: Signal) -> "HelloData":
        if not isinstance(signal.payload, Mapping):
            raise MalformedFrameError("Hello payload must be an object")
        code = signal.payload.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            raise MalformedFrameError(f"Hello payload has no integer 'code': {code!r}")
        session_id = signal.payload.get("session_id")
        return cls(code=code, session_id=str(session_id) if session_id else None)


@dataclass(frozen=True)
class EventData:
    """Application event carried by an EVENT signal."""

    type: int
    target_id: str
    author_id: str
    content: str
    msg_id: str
    channel_type: str = ""
    msg_timestamp: int = 0
    nonce: str = ""
    extra: Any = None

    _REQUIRED = ("type", "target_id", "author_id", "content", "msg_id")

    @classmethod
    def from_payload(cls, payload: Any) -> "EventData":
        """Decode an event payload.

        Raises:
            MalformedFrameError: If the payload is not an object or a
                required field is missing.
        """
        if not isinstance(payload, Mapping):
            raise MalformedFrameError("Event payload must be an object")
        missing = [k for k in cls._REQUIRED if k not in payload]
        if missing:
            raise MalformedFrameError(
                f"Event payload missing fields: {', '.join(missing)}"
            )
        return cls(
            type=as_int(payload["type"]),
            target_id=str(payload["target_id"]),
            author_id=str(payload["author_id"]),
            content=str(payload["content"]),
            msg_id=str(payload["msg_id"]),
            channel_type=str(payload.get("channel_type", "")),
            msg_timestamp=as_int(payload.get("msg_timestamp")),
            nonce=str(payload.get("nonce", "")),
            extra=_thaw(payload.get("extra")),
        )


def decompress(data: bytes) -> bytes:
    """Inflate a zlib (or gzip) compressed payload.

    Raises:
        DecompressError: On corrupt input.
    """
    try:
        # 32 + MAX_WBITS lets zlib detect the zlib or gzip header itself
        return zlib.decompress(data, zlib.MAX_WBITS | 32)
    except zlib.error as e:
        raise DecompressError(f"Failed to decompress frame: {e}") from e


def parse_text(text: str | bytes) -> Any:
    """Parse frame text as JSON.

    Raises:
        MalformedFrameError: On invalid UTF-8 or JSON.
    """
    try:
        return json.loads(text)
    except UnicodeDecodeError as e:
        raise MalformedFrameError(f"Frame is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Frame is not valid JSON: {e}") from e


def decode_frame(raw: str | bytes, compression_enabled: bool = False) -> Signal:
    """Decode one inbound frame into a :class:`Signal`.

    Text frames are parsed directly. Binary frames are inflated first when
    ``compression_enabled`` is set.

    Raises:
        DecompressError: Compressed binary frame is corrupt.
        MalformedFrameError: Frame is not a valid protocol record.
    """
    if isinstance(raw, (bytes, bytearray)) and compression_enabled:
        raw = decompress(bytes(raw))
    return Signal.from_record(parse_text(raw))


def encode_heartbeat(sequence: int) -> bytes:
    """Encode the outbound heartbeat frame reporting the delivery cursor."""
    return json.dumps({"s": OP_PING, "sn": sequence}, separators=(",", ":")).encode()
