"""
Chat client collaborator consumed by the throttler.

The throttler never talks to the network itself. It only needs four things
from the surrounding chat client:

- `sender_identity`: who is sending.
- `current_destination()`: the first channel the client has joined.
- `dispatch(text)`: actually send a message (the only way out of the system).
- `log(message)`: a fire-and-forget diagnostic sink.

Available implementations:
    - ChatClient: Abstract base class.
    - WebhookChatClient: Sends each message as a JSON POST to a chat webhook.

Example:
    >>> from chatthrottle import MessageThrottler, WebhookChatClient
    >>> client = WebhookChatClient(url="https://chat.example.com/hooks/abc", sender="bot")
    >>> client.join("#general")
    >>> throttler = MessageThrottler(client)
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, override

import requests

from chatthrottle._retry import MaxRetriesExceededError, RetryableError, Retrying

if TYPE_CHECKING:
    from chatthrottle._http import HttpClient

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class DispatchError(Exception):
    """
    Raised by a transport when a message could not be delivered.

    The drain loop catches it (and any other exception raised by
    `dispatch()`), marks the message FAILED and moves on.

    Attributes:
        destination: The channel the message was meant for, if known.
    """

    def __init__(self, message: str, destination: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.destination = destination
        self.__cause__ = cause


class ChannelRateLimitedError(RetryableError):
    """
    The chat service answered 429 for a channel.

    `Retrying` waits at least `retry_after` seconds (when the service sent
    one) before the next attempt.

    Attributes:
        channel: The channel that was rate-limited, if any.
    """

    def __init__(self, channel: str | None, retry_after: float | None = None):
        hint = f", retry after {retry_after}s" if retry_after is not None else ""
        super().__init__(f"Rate limited by chat service on {channel or '-'}{hint}", retry_after=retry_after)
        self.channel = channel


def _parse_retry_after(response: requests.Response) -> float | None:
    header = response.headers.get("Retry-After")
    if not header:
        return None
    try:
        seconds = float(header)
    except (TypeError, ValueError):
        # HTTP-date format is not supported
        return None
    return seconds if seconds >= 0 else None


# =============================================================================
# Abstract Base Class
# =============================================================================


class ChatClient(ABC):
    """
    Abstract base class for the chat client the throttler sends through.

    Example:
        >>> class PrintClient(ChatClient):
        ...     sender_identity = "me"
        ...     def current_destination(self):
        ...         return "#test"
        ...     def dispatch(self, text):
        ...         print(text)
    """

    @property
    @abstractmethod
    def sender_identity(self) -> str:
        """Identity of the account messages are sent from."""
        pass

    @abstractmethod
    def current_destination(self) -> str | None:
        """The first joined channel, or None if the client joined none."""
        pass

    @abstractmethod
    def dispatch(self, text: str) -> None:
        """
        Send `text` to the current destination.

        The destination is read at send time, not taken from the queued
        message: after a `part()` a queued message goes to whichever channel
        is current. The throttler records it in `OutgoingMessage.dispatched_to`.

        Raises:
            DispatchError: (or any exception) if the message was not delivered.
        """
        pass

    def log(self, message: str) -> None:
        """Diagnostic sink. Defaults to the module logger."""
        logger.warning(message)


# =============================================================================
# Webhook Implementation
# =============================================================================


class WebhookChatClient(ChatClient):
    """
    Chat client that posts every message to an incoming-webhook URL.

    The POST body is `{"sender": ..., "channel": ..., "text": ...}`.
    Transient failures (timeouts, connection errors, 408/5xx) are retried
    with exponential backoff. A 429 is raised as `ChannelRateLimitedError`
    and retried after the service's `Retry-After`. Anything still failing is
    raised as `DispatchError`.

    Joined channels are tracked in join order; `current_destination()`
    returns the first one.

    Args:
        url: Webhook URL. If None, uses global config (`CHATTHROTTLE.config.webhook.url`).
        sender: Sender identity. If None, uses global config.
        http_client: HTTP client used for the POST (default: RequestsHttpClient).
        request_timeout: Per-request timeout in seconds. If None, uses global config.
        max_retries: Retries after the first attempt. If None, uses global config.
        backoff_factor: Base backoff in seconds. If None, uses global config.
    """

    def __init__(
        self,
        url: str | None = None,
        sender: str | None = None,
        http_client: "HttpClient | None" = None,
        request_timeout: int | None = None,
        max_retries: int | None = None,
        backoff_factor: float | None = None,
    ):
        from chatthrottle._config import CHATTHROTTLE
        cfg = CHATTHROTTLE.config.webhook

        url = url if url is not None else cfg.url
        sender = sender if sender is not None else cfg.sender
        request_timeout = request_timeout if request_timeout is not None else cfg.request_timeout
        max_retries = max_retries if max_retries is not None else cfg.max_retries
        backoff_factor = backoff_factor if backoff_factor is not None else cfg.backoff_factor

        if http_client is None:
            from chatthrottle._http import RequestsHttpClient
            http_client = RequestsHttpClient()

        assert url, "Webhook URL can not be empty."
        assert sender, "Sender identity can not be empty."
        assert request_timeout > 0, "request_timeout must be greater than 0."
        assert max_retries >= 0, "max_retries must be >= 0."
        assert backoff_factor > 0, "backoff_factor must be greater than 0."

        self.url = url
        self.sender = sender
        self.http_client = http_client
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor

        self._channels: list[str] = []
        self._channels_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Channel bookkeeping
    # ------------------------------------------------------------------

    def join(self, channel: str) -> None:
        assert channel, "Channel can not be empty."
        with self._channels_lock:
            if channel not in self._channels:
                self._channels.append(channel)

    def part(self, channel: str) -> None:
        with self._channels_lock:
            if channel in self._channels:
                self._channels.remove(channel)

    @property
    def joined_channels(self) -> list[str]:
        with self._channels_lock:
            return list(self._channels)

    # ------------------------------------------------------------------
    # ChatClient
    # ------------------------------------------------------------------

    @property
    @override
    def sender_identity(self) -> str:
        return self.sender

    @override
    def current_destination(self) -> str | None:
        with self._channels_lock:
            return self._channels[0] if self._channels else None

    @override
    def dispatch(self, text: str) -> None:
        channel = self.current_destination()
        payload = {
            "sender": self.sender,
            "channel": channel,
            "text": text,
        }

        try:
            for attempt in Retrying(
                max_retries=self.max_retries,
                backoff_factor=self.backoff_factor,
                logger_prefix=f"Webhook({channel or '-'})",
            ):
                with attempt:
                    response = self.http_client.post(
                        self.url,
                        data=payload,
                        timeout=self.request_timeout,
                    )
                    if response.status_code == 429:
                        raise ChannelRateLimitedError(channel, retry_after=_parse_retry_after(response))
                    response.raise_for_status()
                    return
        except MaxRetriesExceededError as e:
            raise DispatchError(
                f"Webhook delivery failed after {self.max_retries + 1} attempts: {e.last_exception}",
                destination=channel,
                cause=e,
            ) from e
        except (RetryableError, requests.RequestException) as e:
            raise DispatchError(
                f"Webhook delivery failed: {e}",
                destination=channel,
                cause=e,
            ) from e
