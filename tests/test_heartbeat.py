"""Tests for the heartbeat monitor."""

import pytest

from rxgateway.gateway.heartbeat import HeartbeatActionKind, HeartbeatMonitor


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_idle_until_interval_elapses():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    clock.now += 10
    action = monitor.tick()
    assert action.kind is HeartbeatActionKind.IDLE
    assert action.remaining == pytest.approx(20)


def test_send_after_interval():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    clock.now += 30
    assert monitor.tick().kind is HeartbeatActionKind.SEND
    # Still SEND until the caller records the heartbeat.
    assert monitor.tick().kind is HeartbeatActionKind.SEND


def test_await_ack_reports_remaining_time():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    clock.now += 30
    monitor.mark_sent()
    clock.now += 2
    action = monitor.tick()
    assert action.kind is HeartbeatActionKind.AWAIT_ACK
    assert action.remaining == pytest.approx(4)
    assert monitor.awaiting_ack


def test_timeout_reported_exactly_once():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    clock.now += 30
    monitor.mark_sent()
    clock.now += 6

    kinds = [monitor.tick().kind for _ in range(5)]
    assert kinds.count(HeartbeatActionKind.TIMEOUT) == 1
    assert kinds[0] is HeartbeatActionKind.TIMEOUT
    assert not monitor.awaiting_ack


def test_ack_clears_outstanding_heartbeat():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    clock.now += 30
    monitor.mark_sent()
    clock.now += 1
    monitor.acknowledge()
    clock.now += 10
    action = monitor.tick()
    assert action.kind is HeartbeatActionKind.IDLE
    assert action.remaining == pytest.approx(19)


def test_stray_ack_is_harmless():
    clock = FakeClock()
    monitor = HeartbeatMonitor(interval=30, ack_timeout=6, clock=clock)
    monitor.acknowledge()
    assert not monitor.awaiting_ack
    assert monitor.tick().kind is HeartbeatActionKind.IDLE


def test_explicit_now_overrides_clock():
    monitor = HeartbeatMonitor(interval=5, ack_timeout=1, clock=FakeClock(0.0), started_at=0.0)
    assert monitor.tick(now=5.0).kind is HeartbeatActionKind.SEND
    monitor.mark_sent(now=5.0)
    assert monitor.tick(now=5.5).kind is HeartbeatActionKind.AWAIT_ACK
    assert monitor.tick(now=6.0).kind is HeartbeatActionKind.TIMEOUT


@pytest.mark.parametrize("interval, ack_timeout", [(0, 1), (1, 0), (-1, 1)])
def test_invalid_timings(interval, ack_timeout):
    with pytest.raises(ValueError):
        HeartbeatMonitor(interval=interval, ack_timeout=ack_timeout)
