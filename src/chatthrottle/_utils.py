"""
Utility functions for the chatthrottle package.

These helpers are internal and may change without notice.
"""

from __future__ import annotations

import random
import time


def sleep_with_jitter(seconds: float, jitter_factor: float = 0.1) -> None:
    """
    Sleep for the given duration with random jitter.

    Spreads retry attempts of several clients sharing the same webhook so
    they don't hit the server in lockstep.

    Args:
        seconds: Base sleep duration in seconds.
        jitter_factor: Maximum percentage variation (default: 10%).

    Example:
        >>> sleep_with_jitter(2.0)  # Sleeps between 1.8 and 2.2 seconds
    """
    jitter = random.uniform(-jitter_factor, jitter_factor)
    sleep_time = max(0.0, seconds * (1 + jitter))
    time.sleep(sleep_time)


def preview(text: str | None, limit: int = 40) -> str:
    """
    Return a single-line, truncated version of `text` suitable for log lines.

    Example:
        >>> preview("hello\\nworld")
        'hello↵world'
        >>> preview("x" * 50, limit=10)
        'xxxxxxxxxx…'
    """
    if text is None:
        return "-"
    flat = text.replace("\n", "↵")
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "…"
