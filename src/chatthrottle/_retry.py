"""
Transport-level retry with exponential backoff.

The throttling engine attempts each accepted message at most once; retrying a
delivery is the transport's job. `WebhookChatClient` wraps every POST in a
`Retrying` loop defined here.

A chat service that rate-limits a channel answers 429 with a `Retry-After`
header. The webhook client raises that as a `RetryableError` carrying
`retry_after`, and `Retrying` waits at least that long before trying again.

Example:
    >>> for attempt in Retrying(max_retries=2, backoff_factor=0.5):
    ...     with attempt:
    ...         response = http_client.post(url, data=payload)
    ...         response.raise_for_status()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import requests

from chatthrottle._utils import sleep_with_jitter

logger = logging.getLogger(__name__)

# Gateway and server hiccups. 429 is absent: it arrives as a RetryableError.
TRANSIENT_STATUS_CODES = frozenset({408, 500, 502, 503, 504})


class RetryableError(Exception):
    """
    A delivery failure worth another attempt.

    Attributes:
        retry_after: Seconds the chat service asked us to wait, if it said so.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class MaxRetriesExceededError(Exception):
    """
    Raised when every delivery attempt failed.

    Attributes:
        last_exception: The exception raised by the final attempt.
    """

    def __init__(self, message: str, last_exception: Exception | None = None):
        super().__init__(message)
        self.last_exception = last_exception


class Retrying:
    """
    Iterable of delivery attempts with exponential backoff between them.

    Args:
        max_retries: Retries after the first attempt. 0 disables retrying and
            lets the first failure propagate unchanged.
        backoff_factor: Sleep before retry N is `backoff_factor * 2 ** N` seconds,
            stretched to the server's `retry_after` when that is longer.
        logger_prefix: Prefix for log lines (e.g. "Webhook(#general)").

    Raises:
        MaxRetriesExceededError: When the last attempt failed with a transient error.
    """

    # Longer server-requested waits are ignored; the drain loop should not stall that long.
    MAX_RETRY_AFTER = 30.0

    def __init__(self, max_retries: int = 2, backoff_factor: float = 0.5, logger_prefix: str = ""):
        assert max_retries >= 0, f"max_retries must be >= 0, got {max_retries}"
        assert backoff_factor > 0, f"backoff_factor must be > 0, got {backoff_factor}"

        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.logger_prefix = logger_prefix
        self.attempt = 0

    def __iter__(self) -> Iterator[_Attempt]:
        for attempt in range(self.max_retries + 1):
            self.attempt = attempt
            yield _Attempt(self)

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_retries

    @staticmethod
    def is_transient(exception: Exception) -> bool:
        """Network errors, transient HTTP statuses and `RetryableError`s are retried."""
        if isinstance(exception, RetryableError):
            return True
        if isinstance(exception, (requests.Timeout, requests.ConnectionError)):
            return True
        if isinstance(exception, requests.HTTPError) and exception.response is not None:
            return exception.response.status_code in TRANSIENT_STATUS_CODES
        return False

    def wait_time(self, exception: Exception) -> float:
        """Backoff for the current attempt, or the server's `retry_after` if longer."""
        backoff = self.backoff_factor * (2 ** self.attempt)

        retry_after = getattr(exception, "retry_after", None)
        if retry_after is None:
            return backoff
        if retry_after > self.MAX_RETRY_AFTER:
            logger.warning(
                f"{self._prefix}Ignoring Retry-After of {retry_after}s (above {self.MAX_RETRY_AFTER}s)."
            )
            return backoff
        return max(retry_after, backoff)

    @property
    def _prefix(self) -> str:
        return f"{self.logger_prefix} | " if self.logger_prefix else ""


class _Attempt:
    """One pass through the `with` body; swallows transient errors that will be retried."""

    def __init__(self, retrying: Retrying):
        self._retrying = retrying

    def __enter__(self) -> _Attempt:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> bool:
        retrying = self._retrying
        if not isinstance(exc, Exception) or not retrying.is_transient(exc):
            return False
        if retrying.max_retries == 0:
            return False

        if retrying.is_last_attempt:
            logger.error(f"{retrying._prefix}Giving up after {retrying.max_retries + 1} attempts: {exc}")
            raise MaxRetriesExceededError(f"Max retries exceeded. Last error: {exc}", last_exception=exc) from exc

        sleep_time = retrying.wait_time(exc)
        logger.warning(
            f"{retrying._prefix}Attempt {retrying.attempt + 1}/{retrying.max_retries + 1} failed: {exc}. "
            f"Retrying in {sleep_time:.1f}s..."
        )
        sleep_with_jitter(sleep_time)
        return True
