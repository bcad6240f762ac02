"""Sequence reorder buffer for gateway events.

Events carry a monotonically assigned sequence number but may arrive out
of order or more than once. :class:`ReorderBuffer` holds early arrivals
and releases contiguous runs once the gap in front of them closes.

The buffer owns only the held frames; the delivery cursor
(``next_expected``) is passed in and returned so the caller keeps a single
source of truth for it.

Invariants:
    - Released runs are strictly increasing with no gaps.
    - Every held sequence is strictly greater than the cursor.
    - Observing a sequence at or below the cursor is a no-op.

Example:
    >>> buf = ReorderBuffer()
    >>> run, cursor = buf.observe(0, event(2))   # held
    >>> run, cursor
    ([], 0)
    >>> run, cursor = buf.observe(0, event(1))   # closes the gap
    >>> [s.sequence for s in run], cursor
    ([1, 2], 2)
"""

from .framing import Signal
from ..mechanism import ReorderOverflowError


class ReorderBuffer:
    """Holds out-of-order event signals keyed by sequence number.

    Args:
        max_size: Maximum number of held signals. When exceeded,
            :meth:`observe` raises :class:`ReorderOverflowError` and the
            caller is expected to drop the session. ``None`` means unbounded.
    """

    def __init__(self, max_size: int | None = 1024):
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        self._held: dict[int, Signal] = {}

    def observe(
        self, next_expected: int, signal: Signal
    ) -> tuple[list[Signal], int]:
        """Feed one event signal through the buffer.

        Args:
            next_expected: Sequence number of the last delivered event.
            signal: Event signal with a sequence number.

        Returns:
            ``(ordered_run, new_next_expected)``. ``ordered_run`` is empty
            when the signal is a duplicate or was held for later.

        Raises:
            ValueError: If the signal carries no sequence number.
            ReorderOverflowError: If holding the signal would exceed ``max_size``.
        """
        sn = signal.sequence
        if sn is None:
            raise ValueError(f"Signal {signal.kind} has no sequence number")

        if sn <= next_expected:
            return [], next_expected

        if sn > next_expected + 1:
            if sn not in self._held:
                if self._max_size is not None and len(self._held) >= self._max_size:
                    raise ReorderOverflowError(
                        f"Reorder buffer full ({self._max_size} held), "
                        f"still waiting for sn={next_expected + 1}"
                    )
                self._held[sn] = signal
            return [], next_expected

        run = [signal]
        cursor = sn
        while (cursor + 1) in self._held:
            cursor += 1
            run.append(self._held.pop(cursor))
        return run, cursor

    def is_duplicate(self, next_expected: int, signal: Signal) -> bool:
        """Whether ``signal`` would be dropped, either delivered or already held."""
        sn = signal.sequence
        return sn is not None and (sn <= next_expected or sn in self._held)

    def pending(self) -> list[int]:
        """Held sequence numbers in ascending order."""
        return sorted(self._held)

    def clear(self) -> list[Signal]:
        """Drop all held signals and return them in sequence order."""
        items = [self._held[sn] for sn in sorted(self._held)]
        self._held.clear()
        return items

    def capacity(self) -> int | None:
        return self._max_size

    def __len__(self) -> int:
        return len(self._held)

    def __contains__(self, sequence: object) -> bool:
        return sequence in self._held
