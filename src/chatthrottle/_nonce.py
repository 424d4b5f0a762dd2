"""
Nonce generation for in-flight messages.
"""

import random
import threading

# Nonces are drawn from [1, MAX_NONCE], the positive range of a signed 32-bit int.
MAX_NONCE = 2**31 - 1


class NonceGenerator:
    """
    Thread-safe source of random positive integers.

    Uniqueness is probabilistic; the pending store's dedup index is what
    actually rejects a collision.

    Args:
        rng: Optional RNG, injected by tests for deterministic sequences.

    Example:
        >>> nonces = NonceGenerator()
        >>> 1 <= nonces.next() <= MAX_NONCE
        True
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def next(self) -> int:
        # random.Random is not safe to share between threads without a lock
        with self._lock:
            return self._rng.randint(1, MAX_NONCE)
