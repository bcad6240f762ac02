"""Webhook request handling, independent of the HTTP server.

A webhook POST carries exactly one record: either a verification challenge
or an event signal. Events are deduplicated by ``sn`` over a bounded recent
history and then handed to the sink. Nothing here is shared with the
streaming :class:`~rxgateway.gateway.GatewaySession`.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

from opentelemetry._logs import LoggerProvider

from ..gateway.framing import OP_EVENT, EventData, Signal, SignalKind
from ..mechanism import AuthError, MalformedFrameError
from ..telemetry import LogContext, OTelLogger, get_default_providers
from ..utils import maybe_await
from .dedup import RecentSequenceSet

CHALLENGE_CHANNEL_TYPE = "WEBHOOK_CHALLENGE"


class EventSink(Protocol):
    """The part of a :class:`~rxgateway.gateway.DeliverySink` webhooks use."""

    def on_event(self, event: EventData) -> Awaitable[None] | None: ...


@dataclass(frozen=True)
class WebhookChallenge:
    """URL verification request sent when the webhook is registered."""

    challenge: str
    verify_token: str

    @classmethod
    def from_body(cls, body: Any) -> "WebhookChallenge | None":
        """Extract a challenge, top-level or wrapped in ``d``; None otherwise."""
        if not isinstance(body, Mapping):
            return None
        data = body.get("d")
        if isinstance(data, Mapping) and data.get("channel_type") == CHALLENGE_CHANNEL_TYPE:
            body = data
        challenge = body.get("challenge")
        verify_token = body.get("verify_token")
        if isinstance(challenge, str) and isinstance(verify_token, str):
            return cls(challenge=challenge, verify_token=verify_token)
        return None


@dataclass(frozen=True)
class WebhookEvent:
    """Event signal delivered over the webhook path."""

    sn: int
    d: EventData

    @classmethod
    def from_body(cls, body: Any) -> "WebhookEvent":
        """Decode an event record with the streaming path's rules.

        A body without an ``s`` field is taken as an event.

        Raises:
            MalformedFrameError: If the body is not an event signal with a
                sequence number and a valid event payload.
        """
        if isinstance(body, dict) and "s" not in body:
            body = {**body, "s": OP_EVENT}
        signal = Signal.from_record(body)
        if signal.kind is not SignalKind.EVENT or signal.sequence is None:
            raise MalformedFrameError(f"Not an event signal: s={signal.code}")
        return cls(sn=signal.sequence, d=EventData.from_payload(signal.payload))


class WebhookHandler:
    """Answers challenges and dispatches deduplicated events to a sink.

    Args:
        verify_token: Token a challenge must carry to be answered.
        sink: Receives each new event via ``on_event``.
        capacity: Number of recent ``sn`` values remembered for dedup.
    """

    def __init__(
        self,
        verify_token: str,
        sink: EventSink,
        capacity: int = 1000,
        name: str = "WebhookHandler",
        logger_provider: LoggerProvider | None = None,
    ):
        if not verify_token:
            raise AuthError("Webhook verify token must not be empty")
        self._verify_token = verify_token
        self._sink = sink
        self._seen = RecentSequenceSet(capacity)

        if logger_provider is None:
            _, logger_provider = get_default_providers("rxgateway")
        self._log = OTelLogger(
            logger_provider.get_logger(f"rxgateway.{name}"),
            source=name,
            context=LogContext(service="rxgateway", component="webhook"),
        )

    @property
    def seen(self) -> RecentSequenceSet:
        return self._seen

    def parse(self, body: Any) -> WebhookChallenge | WebhookEvent:
        """Classify a decoded request body.

        Raises:
            MalformedFrameError: Neither a challenge nor an event.
        """
        challenge = WebhookChallenge.from_body(body)
        if challenge is not None:
            return challenge
        return WebhookEvent.from_body(body)

    def handle_challenge(self, challenge: WebhookChallenge) -> str:
        """Return the value to echo back.

        Raises:
            AuthError: If the verify token does not match.
        """
        if challenge.verify_token != self._verify_token:
            self._log.warning("Webhook challenge rejected: verify token mismatch.")
            raise AuthError("Webhook verify token mismatch")
        self._log.info("Webhook challenge answered.")
        return challenge.challenge

    async def handle_event(self, event: WebhookEvent) -> bool:
        """Dispatch ``event`` unless its ``sn`` was seen recently.

        Returns True if the event was dispatched, False for a duplicate.
        A sink failure forgets the ``sn`` again so a redelivery is accepted,
        then propagates.
        """
        if not self._seen.add(event.sn):
            self._log.debug(f"Dropping duplicate webhook event: sn={event.sn}")
            return False

        self._log.info(f"Webhook event: sn={event.sn}, type={event.d.type}")
        try:
            await maybe_await(self._sink.on_event(event.d))
        except Exception:
            self._seen.discard(event.sn)
            raise
        return True
