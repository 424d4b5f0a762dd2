"""
Event listeners for the message throttler.

Available Listeners:
    - ThrottleEventListener: Base class for all event listeners.
    - LoggingThrottleListener: Logs every event through the stdlib logger.

Example:
    >>> from chatthrottle import MessageThrottler, LoggingThrottleListener
    >>> throttler = MessageThrottler(client, listeners=[LoggingThrottleListener()])
"""

import logging
from typing import override

from chatthrottle._models import OutgoingMessage, ThrottleViolation
from chatthrottle._utils import preview

logger = logging.getLogger(__name__)


class ThrottleEventListener:
    """
    Base class for observing throttler events.

    Listeners are read-only observers: they may log, notify a UI or collect
    metrics, but should NOT modify the message. All methods have empty
    default implementations, so subclasses only override what they need.

    `on_throttled` runs synchronously inside `submit()` on the caller's
    thread. The other hooks run on the drain thread, so keep them fast.

    Example:
        >>> class WarnUser(ThrottleEventListener):
        ...     def on_throttled(self, message, violation):
        ...         ui.toast(f"Message not sent: {violation}")
    """

    def on_throttled(self, message: OutgoingMessage, violation: ThrottleViolation) -> None:
        """
        Called when the admission policy rejects a message.

        Args:
            message: The rejected message (FAILED, no nonce).
            violation: The broken length rule.
        """
        pass

    def on_queued(self, message: OutgoingMessage) -> None:
        """Called after a message entered the pending store."""
        pass

    def on_sent(self, message: OutgoingMessage) -> None:
        """Called after the transport accepted a message."""
        pass

    def on_dispatch_failed(self, message: OutgoingMessage, error: Exception) -> None:
        """
        Called when the transport raised while sending a message.

        Args:
            message: The message, already moved to FAILED.
            error: The exception raised by the transport.
        """
        pass


class LoggingThrottleListener(ThrottleEventListener):
    """
    Listener that logs every throttler event.

    Args:
        level: Log level for queue/send events. Rejections and failures are
            always logged at WARNING.
    """

    def __init__(self, level: int = logging.INFO):
        self.level = level

    @override
    def on_throttled(self, message: OutgoingMessage, violation: ThrottleViolation) -> None:
        logger.warning(
            f"{'-':<10} | Throttler | 🚫 Rejected ({violation}, length={len(message.text)}): '{preview(message.text)}'"
        )

    @override
    def on_queued(self, message: OutgoingMessage) -> None:
        logger.log(
            self.level,
            f"{message.nonce or '-':<10} | Throttler | Queued for {message.destination or '-'}: '{preview(message.text)}'"
        )

    @override
    def on_sent(self, message: OutgoingMessage) -> None:
        logger.log(
            self.level,
            f"{message.nonce or '-':<10} | Throttler | ✅ Sent to {message.dispatched_to or '-'}"
        )

    @override
    def on_dispatch_failed(self, message: OutgoingMessage, error: Exception) -> None:
        logger.warning(
            f"{message.nonce or '-':<10} | Throttler | ❌ Failed to send to {message.dispatched_to or '-'}: {error}"
        )
