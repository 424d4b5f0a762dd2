"""
Data models for outgoing chat messages.

- MessageState: Lifecycle states of an outgoing message.
- ThrottleViolation: Why the admission policy rejected a message.
- OutgoingMessage: One send attempt, returned to the caller by `submit()`.
"""
import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from chatthrottle._utils import preview

logger = logging.getLogger(__name__)


class MessageState(enum.StrEnum):
    """
    State of an outgoing message.

    Attributes:
        QUEUED: Admitted and waiting in the pending store.
        SENT: Handed to the transport successfully.
        FAILED: Rejected by admission, lost a nonce collision, or the transport raised.
    """
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"

    def __str__(self) -> str:
        return self.value


class ThrottleViolation(enum.StrEnum):
    """Length rule broken by a rejected message."""
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    MESSAGE_TOO_SHORT = "MESSAGE_TOO_SHORT"

    def __str__(self) -> str:
        return self.value


_VALID_TRANSITIONS: dict[MessageState, frozenset[MessageState]] = {
    MessageState.QUEUED: frozenset({MessageState.SENT, MessageState.FAILED}),
    MessageState.SENT:   frozenset(),
    MessageState.FAILED: frozenset(),
}


@dataclass
class OutgoingMessage:
    """
    A single message attempt.

    Instances are returned synchronously by `MessageThrottler.submit()`; the
    caller keeps the reference and observes the drain loop moving a QUEUED
    message to SENT or FAILED. Admission rejections are created directly in
    FAILED state and never carry a nonce.

    Attributes:
        text: The message payload.
        sender: Identity of the account sending the message.
        destination: Target channel, or None when the client joined none.
        nonce: Tracking id in the pending store; None for admission rejections.
        violation: The broken length rule, for admission rejections only.
        dispatched_to: Channel current when the message was handed to the
            transport. Differs from `destination` if the client joined or
            parted channels while the message was queued.

    Example:
        >>> msg = throttler.submit("hello chat")
        >>> msg.state
        <MessageState.QUEUED: 'QUEUED'>
    """
    text: str
    sender: str | None = None
    destination: str | None = None
    nonce: int | None = None
    violation: ThrottleViolation | None = None
    dispatched_to: str | None = field(default=None, init=False)
    _state: MessageState = field(default=MessageState.QUEUED, repr=False)
    _error: str | None = field(default=None, repr=False)
    _created_at: float = field(default_factory=time.time, init=False, repr=False)
    _sent_at: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        assert self.text is not None, "Message text can not be None."

    @classmethod
    def rejected(
        cls,
        text: str,
        sender: str | None,
        violation: ThrottleViolation,
    ) -> "OutgoingMessage":
        """Builds the FAILED value handed back for an admission rejection."""
        return cls(
            text=text,
            sender=sender,
            violation=violation,
            _state=MessageState.FAILED,
            _error=f"Message rejected by admission policy: {violation}",
        )

    @property
    def state(self) -> MessageState:
        return self._state

    @property
    def error(self) -> str | None:
        """Failure detail (violation, nonce collision or transport error), if any."""
        return self._error

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self._created_at, tz=UTC)

    @property
    def sent_at(self) -> datetime | None:
        """When the transport accepted the message, or None if it hasn't."""
        if self._sent_at is None:
            return None
        return datetime.fromtimestamp(self._sent_at, tz=UTC)

    def is_queued(self) -> bool:
        return self._state == MessageState.QUEUED

    def is_sent(self) -> bool:
        return self._state == MessageState.SENT

    def is_failed(self) -> bool:
        return self._state == MessageState.FAILED

    def transition_to(self, new_state: MessageState, error: str | None = None) -> None:
        """
        Moves the message to `new_state`.

        Unexpected transitions are logged as a warning but still applied.

        Args:
            new_state: Target state.
            error: Optional failure detail to record.
        """
        allowed = _VALID_TRANSITIONS.get(self._state, frozenset())
        if new_state not in allowed:
            logger.warning(
                f"{self.nonce or '-'} | Throttler | "
                f"⚠️ Unexpected state transition: {self._state} → {new_state} (text='{preview(self.text)}')"
            )
        self._state = new_state
        if new_state == MessageState.SENT:
            self._sent_at = time.time()
        if error is not None:
            self._error = error
