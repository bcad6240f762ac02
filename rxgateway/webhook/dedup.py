"""Bounded set of recently seen sequence numbers."""

from collections import OrderedDict


class RecentSequenceSet:
    """Insertion-ordered set that forgets its oldest entries.

    Webhook deliveries carry no ordering guarantee, so membership is all
    that matters. Memory stays bounded by ``capacity`` whatever the
    ``sn`` values look like.

    Args:
        capacity: Maximum number of remembered sequence numbers.
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._seen: OrderedDict[int, None] = OrderedDict()

    def add(self, sn: int) -> bool:
        """Remember ``sn``. Returns False if it was already present."""
        if sn in self._seen:
            return False
        self._seen[sn] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return True

    def discard(self, sn: int) -> None:
        self._seen.pop(sn, None)

    def __contains__(self, sn: object) -> bool:
        return sn in self._seen

    def __len__(self) -> int:
        return len(self._seen)
