"""Tests for the sequence reorder buffer."""

import itertools
import random

import pytest

from rxgateway import ReorderBuffer, ReorderOverflowError, SignalKind
from rxgateway.gateway.framing import Signal


def event(sn: int) -> Signal:
    return Signal(kind=SignalKind.EVENT, code=0, sequence=sn, payload={"sn": sn})


def feed(buffer: ReorderBuffer, sequences, cursor: int = 0) -> tuple[list[int], int]:
    delivered = []
    for sn in sequences:
        run, cursor = buffer.observe(cursor, event(sn))
        delivered.extend(s.sequence for s in run)
    return delivered, cursor


def test_in_order_passthrough():
    delivered, cursor = feed(ReorderBuffer(), [1, 2, 3])
    assert delivered == [1, 2, 3]
    assert cursor == 3


def test_gap_is_held_until_filled():
    """[1, 2, 4, 3] from cursor 0 delivers 1, 2, 3, 4."""
    buffer = ReorderBuffer()
    delivered, cursor = feed(buffer, [1, 2, 4])
    assert delivered == [1, 2]
    assert buffer.pending() == [4]

    run, cursor = buffer.observe(cursor, event(3))
    assert [s.sequence for s in run] == [3, 4]
    assert cursor == 4
    assert len(buffer) == 0


def test_duplicate_dropped():
    """[1, 1, 2] delivers 1, 2."""
    delivered, cursor = feed(ReorderBuffer(), [1, 1, 2])
    assert delivered == [1, 2]
    assert cursor == 2


def test_duplicate_returns_unchanged_cursor():
    buffer = ReorderBuffer()
    assert buffer.observe(5, event(3)) == ([], 5)
    assert buffer.observe(5, event(5)) == ([], 5)
    assert len(buffer) == 0


def test_duplicate_of_held_signal_ignored():
    buffer = ReorderBuffer()
    feed(buffer, [3, 3, 3])
    assert buffer.pending() == [3]
    assert buffer.is_duplicate(0, event(3))
    assert not buffer.is_duplicate(0, event(1))


def test_single_observation_drains_long_run():
    buffer = ReorderBuffer()
    feed(buffer, [10, 9, 8, 7, 6, 5, 4, 3, 2])
    run, cursor = buffer.observe(0, event(1))
    assert [s.sequence for s in run] == list(range(1, 11))
    assert cursor == 10


def test_run_carries_received_signals():
    buffer = ReorderBuffer()
    held = event(2)
    buffer.observe(0, held)
    run, _ = buffer.observe(0, event(1))
    assert run[1] is held


@pytest.mark.parametrize("order", list(itertools.permutations([1, 2, 3, 4])))
def test_any_interleaving_delivers_sorted(order):
    delivered, cursor = feed(ReorderBuffer(), order)
    assert delivered == [1, 2, 3, 4]
    assert cursor == 4


def test_random_interleaving_with_duplicates():
    rng = random.Random(1234)
    for _ in range(50):
        sequences = list(range(1, 31)) + [rng.randint(1, 30) for _ in range(10)]
        rng.shuffle(sequences)
        delivered, cursor = feed(ReorderBuffer(), sequences)
        assert delivered == list(range(1, 31))
        assert cursor == 30


def test_idempotent_observation():
    once, _ = feed(ReorderBuffer(), [2, 1, 3])
    twice, _ = feed(ReorderBuffer(), [2, 2, 1, 1, 3, 3])
    assert once == twice


def test_overflow():
    buffer = ReorderBuffer(max_size=2)
    feed(buffer, [3, 4])
    with pytest.raises(ReorderOverflowError):
        buffer.observe(0, event(5))
    assert buffer.pending() == [3, 4]


def test_overflow_not_raised_for_next_expected():
    buffer = ReorderBuffer(max_size=1)
    feed(buffer, [3])
    run, cursor = buffer.observe(0, event(1))
    assert [s.sequence for s in run] == [1]
    assert cursor == 1


def test_unbounded_buffer():
    buffer = ReorderBuffer(max_size=None)
    feed(buffer, range(2, 3000))
    assert len(buffer) == 2998
    assert buffer.capacity() is None


def test_invalid_capacity():
    with pytest.raises(ValueError):
        ReorderBuffer(max_size=0)


def test_signal_without_sequence_rejected():
    hello = Signal(kind=SignalKind.HELLO, code=1)
    with pytest.raises(ValueError):
        ReorderBuffer().observe(0, hello)


def test_clear_returns_held_in_order():
    buffer = ReorderBuffer()
    feed(buffer, [5, 3, 4])
    assert [s.sequence for s in buffer.clear()] == [3, 4, 5]
    assert len(buffer) == 0
    assert 3 not in buffer
