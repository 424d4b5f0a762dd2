"""
Per-window send quota.
"""

import threading


class QuotaCounter:
    """
    Counter of messages sent in the current window, bounded by `limit`.

    The only mutations are taking a slot with `try_acquire()` and
    `reset()` back to zero. The counter never decrements otherwise, so a
    failed send keeps its slot until the next reset.

    `try_acquire()` checks headroom and takes the slot under one lock, so
    concurrent callers can never push the value past `limit`. The limit may
    be changed at runtime; lowering it below the current value leaves no
    headroom until the next reset.

    Example:
        >>> quota = QuotaCounter(limit=2)
        >>> quota.try_acquire(), quota.try_acquire(), quota.try_acquire()
        (True, True, False)
        >>> quota.is_exhausted()
        True
        >>> quota.reset()
        >>> quota.value
        0
    """

    def __init__(self, limit: int):
        assert limit is not None, "limit cannot be None."
        assert limit > 0, "limit must be greater than 0."

        self._limit = limit
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, limit: int) -> None:
        assert limit is not None, "limit cannot be None."
        assert limit > 0, "limit must be greater than 0."
        with self._lock:
            self._limit = limit

    @property
    def headroom(self) -> int:
        """Slots left in the current window (never negative)."""
        with self._lock:
            return max(0, self._limit - self._value)

    def is_exhausted(self) -> bool:
        with self._lock:
            return self._value >= self._limit

    def try_acquire(self) -> bool:
        """Take one slot if the window has headroom. Returns False when exhausted."""
        with self._lock:
            if self._value >= self._limit:
                return False
            self._value += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._value = 0
