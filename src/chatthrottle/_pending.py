"""
Pending store: FIFO queue of admitted messages plus a dedup index by nonce.

The queue and the index are two independent thread-safe structures. Each
operation is atomic on its own structure, but nothing joins them: a message
dequeued by the drain loop while `clear()` runs may still be dispatched.
"""

import logging
import threading
from collections import deque

from chatthrottle._models import OutgoingMessage

logger = logging.getLogger(__name__)


class PendingStore:
    """
    Ordered queue of admitted messages and the set of outstanding nonces.

    A nonce stays registered from `register()` until the drain loop calls
    `release()` for it (or `clear()` wipes the index). While registered, the
    same nonce cannot be registered again.

    Example:
        >>> store = PendingStore()
        >>> if store.register(msg.nonce, msg.text):
        ...     store.enqueue(msg)
        >>> store.dequeue() is msg
        True
    """

    def __init__(self) -> None:
        # deque.append/popleft are atomic; the index needs its own lock for test-and-set
        self._queue: deque[OutgoingMessage] = deque()
        self._by_nonce: dict[int, str] = {}
        self._index_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Dedup index
    # ------------------------------------------------------------------

    def register(self, nonce: int, text: str) -> bool:
        """
        Register `nonce` as outstanding.

        Returns:
            False if the nonce is already outstanding (collision), True otherwise.
        """
        with self._index_lock:
            if nonce in self._by_nonce:
                return False
            self._by_nonce[nonce] = text
            return True

    def release(self, nonce: int) -> bool:
        """
        Remove `nonce` from the outstanding set.

        Returns:
            False if the nonce was not outstanding (already released or cleared).
        """
        with self._index_lock:
            return self._by_nonce.pop(nonce, None) is not None

    def is_outstanding(self, nonce: int) -> bool:
        with self._index_lock:
            return nonce in self._by_nonce

    @property
    def outstanding_count(self) -> int:
        with self._index_lock:
            return len(self._by_nonce)

    # ------------------------------------------------------------------
    # FIFO queue
    # ------------------------------------------------------------------

    def enqueue(self, message: OutgoingMessage) -> None:
        self._queue.append(message)

    def dequeue(self) -> OutgoingMessage | None:
        """Pop the oldest message, or None if the queue is empty."""
        try:
            return self._queue.popleft()
        except IndexError:
            return None

    def restore(self, message: OutgoingMessage) -> None:
        """Put a dequeued message back at the head of the queue."""
        self._queue.appendleft(message)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def clear(self) -> None:
        """Discard every queued message, then empty the dedup index."""
        discarded = 0
        while self.dequeue() is not None:
            discarded += 1

        with self._index_lock:
            self._by_nonce.clear()

        if discarded:
            logger.debug(f"Pending store cleared, {discarded} queued message(s) discarded.")
