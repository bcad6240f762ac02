"""Shared test fixtures and in-memory collaborators for rxgateway tests."""

import asyncio
import json
import zlib

import pytest
from opentelemetry.sdk._logs import LoggerProvider

from rxgateway import Endpoint, GatewayConfig, TransportError

GATEWAY_URL = "wss://gateway.test/gateway"


# =============================================================================
# Frame builders
# =============================================================================


def hello_frame(session_id: str | None = "s1", code: int = 0) -> str:
    return json.dumps({"s": 1, "d": {"code": code, "session_id": session_id}})


def event_payload(sn: int, content: str | None = None) -> dict:
    return {
        "channel_type": "GROUP",
        "type": 1,
        "target_id": "channel-1",
        "author_id": "user-1",
        "content": content if content is not None else f"message {sn}",
        "msg_id": f"msg-{sn}",
        "msg_timestamp": 1700000000000 + sn,
        "nonce": "",
        "extra": {"type": 1},
    }


def event_frame(sn: int, content: str | None = None) -> str:
    return json.dumps({"s": 0, "sn": sn, "d": event_payload(sn, content)})


def pong_frame() -> str:
    return json.dumps({"s": 3})


def reconnect_frame(code: int = 40106, err: str = "resume failed") -> str:
    return json.dumps({"s": 5, "d": {"code": code, "err": err}})


def resume_ack_frame(session_id: str = "s1") -> str:
    return json.dumps({"s": 6, "d": {"session_id": session_id}})


def compressed(frame: str) -> bytes:
    return zlib.compress(frame.encode())


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeTransport:
    """In-memory transport fed from a queue.

    Queued exceptions are raised from :meth:`receive`. With ``auto_pong`` set
    every outbound heartbeat is answered immediately.
    """

    def __init__(self, frames=(), auto_pong: bool = False):
        self.inbound: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.inbound.put_nowait(frame)
        self.sent: list[bytes] = []
        self.closed = False
        self.auto_pong = auto_pong

    def feed(self, frame) -> None:
        self.inbound.put_nowait(frame)

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("send on closed transport")
        self.sent.append(data)
        if self.auto_pong and json.loads(data).get("s") == 2:
            self.inbound.put_nowait(pong_frame())

    async def receive(self):
        item = await self.inbound.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class ScriptedTransports:
    """Transport factory handing out prepared transports in order.

    An exception in the script is raised instead of opening. Once the
    script runs out, idle transports that never deliver are returned.
    """

    def __init__(self, *script):
        self._script = list(script)
        self.urls: list[str] = []
        self.opened: list[FakeTransport] = []

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)
        item = self._script.pop(0) if self._script else FakeTransport()
        if isinstance(item, BaseException):
            raise item
        self.opened.append(item)
        return item


class FakeResolver:
    """Endpoint resolver that returns a fixed endpoint or raises queued errors."""

    def __init__(self, *errors: BaseException, url: str = GATEWAY_URL, token: str = "bot-token"):
        self._errors = list(errors)
        self.url = url
        self.token = token
        self.calls: list[bool] = []

    async def resolve_endpoint(self, compress: bool) -> Endpoint:
        self.calls.append(compress)
        if self._errors:
            raise self._errors.pop(0)
        return Endpoint(url=self.url, token=self.token)


class RecordingSink:
    """Delivery sink that records every callback; ``on_event`` is async."""

    def __init__(self):
        self.hellos = []
        self.events = []
        self.reconnects = []
        self.resumes = []

    def on_hello(self, hello) -> None:
        self.hellos.append(hello)

    async def on_event(self, event) -> None:
        self.events.append(event)

    def on_reconnect(self, code: int, reason: str) -> None:
        self.reconnects.append((code, reason))

    def on_resume(self, session_id: str) -> None:
        self.resumes.append(session_id)

    @property
    def contents(self) -> list[str]:
        return [event.content for event in self.events]


class RecordingSleep:
    """Backoff sleep that records delays and returns immediately."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def run_until(session, sink, predicate, timeout: float = 2.0) -> None:
    """Run ``session.connect(sink)`` until ``predicate()`` holds, then close.

    A terminal error raised by ``connect`` before that propagates.
    """
    task = asyncio.create_task(session.connect(sink))

    async def wait():
        while not predicate() and not task.done():
            await asyncio.sleep(0.01)

    try:
        await asyncio.wait_for(wait(), timeout)
    finally:
        await session.close()
    await task


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def logger_provider():
    """Logger provider without processors, so tests stay quiet."""
    return LoggerProvider()


@pytest.fixture
def config():
    return GatewayConfig(token="bot-token", compress=False)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sleep():
    return RecordingSleep()
