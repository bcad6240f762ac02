"""Gateway session: handshake, heartbeats, ordered delivery and reconnects.

One :class:`GatewaySession` drives one upstream connection from a single
asyncio task. That task alone reads and writes the transport, the
:class:`SessionState` and the :class:`HeartbeatMonitor`, so no locking is
involved. Every suspension point (opening the transport, waiting for a
frame, the reconnect backoff) is a cancellation point.

Failure handling:
    - Malformed or undecompressible frames are logged and dropped.
    - Transport and protocol failures go through the retry policy. After a
      transport failure the next attempt resumes the previous session when
      ``config.resume`` is set; every other failure starts a fresh one.
    - :class:`AuthError` and :class:`ExhaustedError` end :meth:`connect`.

Example:
    >>> config = GatewayConfig.from_env()
    >>> async with DirectoryClient(config.base_url, config.token) as directory:
    ...     session = GatewaySession(config, directory)
    ...     sink = RxDeliverySink()
    ...     sink.events.subscribe(print)
    ...     await session.connect(sink)
"""

import asyncio
import contextlib
import time
from typing import Awaitable, Callable

from opentelemetry._logs import LoggerProvider
from opentelemetry.metrics import MeterProvider
from opentelemetry.trace import Tracer, TracerProvider
from reactivex import Observable
from reactivex import operators as ops
from reactivex.subject import BehaviorSubject

from ..config import GatewayConfig
from ..mechanism import (
    DecodeError,
    ExhaustedError,
    GatewayError,
    HandshakeError,
    HeartbeatTimeoutError,
    MalformedFrameError,
    ReconnectRequested,
    ReorderOverflowError,
    TransportError,
)
from ..telemetry import GatewayMetrics, LogContext, OTelLogger, get_default_providers
from ..utils import as_int, get_full_error_info, get_short_error_info, maybe_await
from .connection import GatewayState, SessionState
from .directory import EndpointResolver
from .framing import (
    EventData,
    HelloData,
    Signal,
    SignalKind,
    decode_frame,
    encode_heartbeat,
)
from .heartbeat import HeartbeatActionKind, HeartbeatMonitor
from .reorder import ReorderBuffer
from .sink import DeliverySink
from .transport import Transport, TransportFactory, WebSocketTransport


class GatewaySession:
    """Client session for a sequence-numbered event gateway.

    Parameters
    ----------
    config : GatewayConfig
        Timeouts, heartbeat schedule, buffer capacity and retry policy.
    resolver : EndpointResolver
        Directory service collaborator, consulted before every attempt.
    transport_factory : TransportFactory | None
        Opens a :class:`Transport` for a URL. Defaults to
        :meth:`WebSocketTransport.open`.
    clock, sleep
        Monotonic time source and backoff sleep, injectable for tests.
    name : str | None
        Source name used in logs.
    tracer_provider, logger_provider, meter_provider
        Optional OTel providers. Without a logger provider the default
        console providers are used.
    """

    def __init__(
        self,
        config: GatewayConfig,
        resolver: EndpointResolver,
        transport_factory: TransportFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str | None = None,
        tracer_provider: TracerProvider | None = None,
        logger_provider: LoggerProvider | None = None,
        meter_provider: MeterProvider | None = None,
    ):
        self.config = config
        self._resolver = resolver
        self._transport_factory = transport_factory or self._open_websocket
        self._clock = clock
        self._sleep = sleep
        self._name = name or "GatewaySession"

        if logger_provider is None:
            default_tracer, logger_provider = get_default_providers("rxgateway")
            tracer_provider = tracer_provider or default_tracer
        self._tracer: Tracer | None = (
            tracer_provider.get_tracer(f"rxgateway.{self._name}")
            if tracer_provider
            else None
        )
        self._base_log = OTelLogger(
            logger_provider.get_logger(f"rxgateway.{self._name}"),
            source=self._name,
            context=LogContext(service="rxgateway", component="session"),
        )
        self._log = self._base_log
        self._metrics = GatewayMetrics(meter_provider)

        self._state_subject: BehaviorSubject[GatewayState] = BehaviorSubject(
            GatewayState.IDLE
        )
        self._state = GatewayState.IDLE
        self._session = self._new_session()
        self._monitor: HeartbeatMonitor | None = None
        self._sink: DeliverySink | None = None
        self._task: asyncio.Task | None = None
        self._closing = False
        self.attempt = 0

    # ------------------------------------------------------------------ #
    # public surface
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def state_changes(self) -> Observable:
        """Observable stream of lifecycle states.

        New subscribers immediately receive the current state.
        """
        return self._state_subject.pipe(ops.share())

    @property
    def session(self) -> SessionState:
        """Current session-scoped state (read-only use)."""
        return self._session

    @property
    def heartbeat(self) -> HeartbeatMonitor | None:
        """Heartbeat monitor of the live connection, if any."""
        return self._monitor

    async def connect(self, sink: DeliverySink) -> None:
        """Run the session until closed or a terminal error occurs.

        Raises:
            AuthError: The token was rejected.
            ExhaustedError: The retry budget ran out.
            RuntimeError: The session is already running.
        """
        if self._task is not None:
            raise RuntimeError(f"{self._name} is already connected")

        self._task = asyncio.current_task()
        self._closing = False
        self._sink = sink
        self._session = self._new_session()
        self.attempt = 0
        resume = False

        try:
            while True:
                self._set_state(GatewayState.CONNECTING)
                try:
                    await self._run_attempt(resume)
                except GatewayError as e:
                    if not e.retryable:
                        raise
                    resume = self._prepare_reconnect(e)
                    await self._backoff(e)

        except asyncio.CancelledError:
            if not self._closing:
                self._log.info("Gateway session cancelled.")
                raise
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            self._log.info("Gateway session closed.")

        except GatewayError as e:
            self._log.error(f"Gateway session terminated: {get_short_error_info(e)}")
            raise

        except Exception as e:
            self._log.error(f"Gateway session crashed:\n{get_full_error_info(e)}")
            raise

        finally:
            self._monitor = None
            self._sink = None
            self._task = None
            self._set_state(GatewayState.TERMINATED)

    async def close(self) -> None:
        """Stop a running :meth:`connect` and release the transport.

        ``connect`` then returns normally.
        """
        task = self._task
        if task is None or task.done():
            return
        self._closing = True
        self._set_state(GatewayState.CLOSING)
        if task is asyncio.current_task():
            raise asyncio.CancelledError()
        task.cancel()
        await asyncio.wait({task})

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #

    def _new_session(self) -> SessionState:
        return SessionState(
            compression_enabled=self.config.compress,
            reorder_buffer=ReorderBuffer(self.config.max_buffered_events),
        )

    def _set_state(self, state: GatewayState) -> None:
        self._state = state
        self._log.debug(f"Gateway state: {state.name}")
        self._state_subject.on_next(state)

    async def _open_websocket(self, url: str) -> Transport:
        return await WebSocketTransport.open(url, open_timeout=self.config.open_timeout)

    def _span(self, resume: bool):
        if self._tracer is None:
            return contextlib.nullcontext()
        return self._tracer.start_as_current_span(
            "gateway.connection_attempt",
            attributes={"gateway.attempt": self.attempt, "gateway.resume": resume},
        )

    async def _run_attempt(self, resume: bool) -> None:
        with self._span(resume):
            endpoint = await self._resolver.resolve_endpoint(self.config.compress)
            self._session = self._session.with_endpoint(endpoint)
            self._log = self._base_log.with_context(
                endpoint=endpoint.url, attempt=self.attempt
            )
            self._log.info(
                f"Connecting to gateway {endpoint.url}"
                f"{' (resume)' if resume else ''} (attempt {self.attempt + 1})"
            )

            transport = await self._transport_factory(
                self._session.connection_url(resume=resume)
            )
            try:
                self._set_state(GatewayState.AWAITING_HELLO)
                await self._await_hello(transport)
                self._set_state(GatewayState.CONNECTED)
                await self._event_loop(transport)
            finally:
                self._monitor = None
                await transport.close()
                self._log.info("Gateway connection resources released.")

    def _prepare_reconnect(self, error: GatewayError) -> bool:
        """Rebuild session state unless the next attempt can resume.

        Returns whether the next attempt should ask the server to resume.
        """
        resume = (
            self.config.resume
            and isinstance(error, TransportError)
            and self._session.resumable
        )
        if not resume:
            self._session = self._session.fresh()
        return resume

    async def _backoff(self, error: GatewayError) -> None:
        self._set_state(GatewayState.RECONNECTING)
        self.attempt += 1

        policy = self.config.retry_policy
        if policy.exhausted(self.attempt):
            raise ExhaustedError(self.attempt, error) from error

        self._metrics.reconnects.add(1, {"error.kind": error.kind})

        delay = policy.get_delay(self.attempt)
        self._metrics.reconnect_delay.record(delay)
        self._log.warning(
            f"Gateway connection failed ({get_short_error_info(error)}),"
            f" retry {self.attempt} in {delay:.2f}s"
        )
        await self._sleep(delay)

    # ------------------------------------------------------------------ #
    # handshake
    # ------------------------------------------------------------------ #

    async def _await_hello(self, transport: Transport) -> None:
        timeout = self.config.hello_timeout
        try:
            raw = await asyncio.wait_for(transport.receive(), timeout)
        except TimeoutError as e:
            raise HandshakeError(f"No Hello within {timeout}s") from e

        try:
            signal = decode_frame(raw, self._session.compression_enabled)
        except DecodeError as e:
            raise HandshakeError(f"Undecodable first frame: {e}") from e
        if signal.kind is not SignalKind.HELLO:
            raise HandshakeError(f"Expected Hello, got {signal.kind.value}")

        try:
            hello = HelloData.from_signal(signal)
        except MalformedFrameError as e:
            raise HandshakeError(f"Malformed Hello: {e}") from e
        if not hello.ok:
            raise HandshakeError(
                f"Handshake rejected with code {hello.code}", code=hello.code
            )

        previous = self._session.session_id
        if previous is not None and hello.session_id != previous:
            self._log.info(
                f"Server replaced session {previous} with {hello.session_id},"
                " discarding sequence state."
            )
            self._session = self._session.fresh()

        self._session.session_id = hello.session_id
        self.attempt = 0
        self._log = self._log.with_context(session_id=hello.session_id or "", attempt=None)
        self._log.info(f"Handshake complete, session_id: {hello.session_id}")
        await maybe_await(self._sink.on_hello(hello))

    # ------------------------------------------------------------------ #
    # steady state
    # ------------------------------------------------------------------ #

    async def _event_loop(self, transport: Transport) -> None:
        monitor = HeartbeatMonitor(
            self.config.heartbeat_interval,
            self.config.heartbeat_timeout,
            clock=self._clock,
        )
        self._monitor = monitor

        while True:
            action = monitor.tick()

            if action.kind is HeartbeatActionKind.SEND:
                sn = self._session.next_expected_sequence
                await transport.send(encode_heartbeat(sn))
                monitor.mark_sent()
                self._log.debug(f"Heartbeat sent: sn={sn}")
                continue

            if action.kind is HeartbeatActionKind.TIMEOUT:
                self._metrics.heartbeat_timeouts.add(1)
                self._log.warning("Heartbeat not acknowledged in time, reconnecting.")
                raise HeartbeatTimeoutError(
                    f"No heartbeat ack within {monitor.ack_timeout}s"
                )

            try:
                raw = await asyncio.wait_for(transport.receive(), action.remaining)
            except TimeoutError:
                continue

            await self._handle_frame(raw)

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            signal = decode_frame(raw, self._session.compression_enabled)
        except DecodeError as e:
            self._metrics.frames_dropped.add(1)
            self._log.warning(f"Dropping undecodable frame: {e}")
            return

        kind = signal.kind
        if kind is SignalKind.EVENT:
            await self._handle_event(signal)

        elif kind is SignalKind.HEARTBEAT_ACK:
            self._log.debug("Heartbeat acknowledged.")
            if self._monitor is not None:
                self._monitor.acknowledge()

        elif kind is SignalKind.RECONNECT_REQUEST:
            payload = signal.payload_dict()
            code = as_int(payload.get("code"))
            reason = str(payload.get("err") or "Unknown")
            self._log.warning(f"Server requested reconnect: {code} - {reason}")
            self._session = self._session.fresh()
            await maybe_await(self._sink.on_reconnect(code, reason))
            raise ReconnectRequested(code, reason)

        elif kind is SignalKind.RESUME_ACK:
            session_id = signal.payload_dict().get("session_id")
            if not session_id:
                self._log.warning("Resume ack without session_id ignored.")
                return
            self._log.info(f"Resume acknowledged: {session_id}")
            await maybe_await(self._sink.on_resume(str(session_id)))

        else:
            self._log.warning(f"Ignoring unexpected signal s={signal.code}")

    async def _handle_event(self, signal: Signal) -> None:
        state = self._session
        buffer = state.reorder_buffer
        cursor = state.next_expected_sequence

        if buffer.is_duplicate(cursor, signal):
            self._metrics.events_duplicate.add(1)
            self._log.debug(f"Dropping duplicate event: sn={signal.sequence}")
            return

        try:
            run, _ = buffer.observe(cursor, signal)
        except ReorderOverflowError:
            held = buffer.pending()
            buffer.clear()
            self._log.warning(
                f"Reorder buffer overflow at sn={signal.sequence}, discarding held"
                f" sn={held} while waiting for sn={cursor + 1}"
            )
            raise
        if not run:
            self._metrics.events_buffered.add(1)
            self._log.debug(
                f"Event out of order, holding sn={signal.sequence},"
                f" expecting sn={cursor + 1}"
            )
            return

        for released in run:
            # Cursor moves per released event, not per run.
            state.next_expected_sequence = released.sequence
            try:
                event = EventData.from_payload(released.payload)
            except MalformedFrameError as e:
                self._metrics.frames_dropped.add(1)
                self._log.warning(f"Skipping undecodable event sn={released.sequence}: {e}")
                continue
            await maybe_await(self._sink.on_event(event))
            self._metrics.events_delivered.add(1)
