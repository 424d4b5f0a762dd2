"""
Rate-limited outgoing message dispatcher.

`MessageThrottler` sits between a chat client and the remote service. It
admits or rejects messages by length, queues admitted ones and releases them
to the client's transport at most `messages_allowed_in_period` times per
`period_duration` seconds.

Two background threads do the work once `start()` is called:

- Reset loop: every `period_duration` seconds, zeroes the quota counter.
- Drain loop: every `tick_interval` seconds, dequeues and dispatches pending
  messages while the quota has headroom.

They share nothing but the quota counter and the pending store. The quota
check and the dequeue are not one transaction, so a reset landing in the
middle of a tick can let a window see slightly more or fewer than `limit`
sends at the boundary.

Example:
    >>> from chatthrottle import MessageThrottler, ThrottlerConfig
    >>> throttler = MessageThrottler(
    ...     client,
    ...     config=ThrottlerConfig(messages_allowed_in_period=20, period_duration=30.0),
    ... )
    >>> throttler.start(wait=False)
    >>> msg = throttler.submit("hello chat")
    >>> msg.state
    <MessageState.QUEUED: 'QUEUED'>
    >>> throttler.stop()
"""

import logging
import threading
from dataclasses import replace
from typing import Any

from chatthrottle._admission import AdmissionPolicy
from chatthrottle._client import ChatClient
from chatthrottle._config import ThrottlerConfig
from chatthrottle._event_listeners import ThrottleEventListener
from chatthrottle._models import MessageState, OutgoingMessage
from chatthrottle._nonce import NonceGenerator
from chatthrottle._pending import PendingStore
from chatthrottle._quota import QuotaCounter
from chatthrottle._utils import preview

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ThrottlerAlreadyRunningError(RuntimeError):
    """Raised when `start()` is called on a throttler whose loops are running."""

    pass


# =============================================================================
# Throttler
# =============================================================================


class MessageThrottler:
    """
    Queues outgoing chat messages and dispatches them under a per-window quota.

    `submit()` never blocks on the background loops and never raises for a
    rejected message: rejections come back as FAILED messages and are
    announced to listeners through `on_throttled`.

    Each accepted message is attempted at most once. A failed send still
    consumes its quota slot; retrying is the transport's business.

    Attributes:
        client: The chat client messages are sent through.
        period_duration: Window length in seconds.
        tick_interval: Seconds between drain ticks.
        burst_dispatch: Drain until quota/queue is exhausted on each tick
            (True) or stop after the first successful send (False).
        listeners: Event listeners notified about throttler events.
    """

    def __init__(
        self,
        client: ChatClient,
        config: ThrottlerConfig | None = None,
        listeners: list[ThrottleEventListener] | None = None,
        nonce_generator: NonceGenerator | None = None,
    ):
        """
        Initialize the throttler.

        Args:
            client: Chat client collaborator (identity, destination, dispatch, log).
            config: Throttler settings. If None, uses global config
                (`CHATTHROTTLE.config.throttle`).
            listeners: Event listeners. If None, no listeners are registered.
            nonce_generator: Source of message nonces (injectable for tests).

        Raises:
            AssertionError: If client is None.
            ConfigValidationError: If config is invalid.
        """
        if config is None:
            from chatthrottle._config import CHATTHROTTLE
            config = CHATTHROTTLE.config.throttle

        assert client is not None, "Chat client can not be None."
        config.validate()

        self.client = client
        self.period_duration = config.period_duration
        self.tick_interval = config.tick_interval
        self.burst_dispatch = config.burst_dispatch
        self.listeners: list[ThrottleEventListener] = list(listeners or [])

        self._policy = AdmissionPolicy(
            minimum_length=config.minimum_message_length,
            maximum_length=config.maximum_message_length,
        )
        self._apply_throttling_to_raw_messages = config.apply_throttling_to_raw_messages
        self._quota = QuotaCounter(limit=config.messages_allowed_in_period)
        self._store = PendingStore()
        self._nonces = nonce_generator or NonceGenerator()

        self._lifecycle_lock = threading.Lock()
        self._cancel: threading.Event | None = None
        self._threads: list[threading.Thread] = []

    # ======================
    # Read-only state
    # ======================

    @property
    def sent_count(self) -> int:
        """Messages counted against the quota in the current window."""
        return self._quota.value

    @property
    def pending_count(self) -> int:
        """Messages waiting in the queue."""
        return self._store.pending_count

    @property
    def is_running(self) -> bool:
        cancel = self._cancel
        return cancel is not None and not cancel.is_set()

    # ======================
    # Runtime configuration
    # ======================

    @property
    def messages_allowed_in_period(self) -> int:
        return self._quota.limit

    @messages_allowed_in_period.setter
    def messages_allowed_in_period(self, value: int) -> None:
        self._check_settings(messages_allowed_in_period=value)
        self._quota.limit = value

    @property
    def minimum_message_length(self) -> int:
        return self._policy.minimum_length

    @minimum_message_length.setter
    def minimum_message_length(self, value: int) -> None:
        self._check_settings(minimum_message_length=value)
        self._policy = replace(self._policy, minimum_length=value)

    @property
    def maximum_message_length(self) -> int | None:
        return self._policy.maximum_length

    @maximum_message_length.setter
    def maximum_message_length(self, value: int | None) -> None:
        self._check_settings(maximum_message_length=value)
        self._policy = replace(self._policy, maximum_length=value)

    @property
    def apply_throttling_to_raw_messages(self) -> bool:
        return self._apply_throttling_to_raw_messages

    @apply_throttling_to_raw_messages.setter
    def apply_throttling_to_raw_messages(self, value: bool) -> None:
        self._apply_throttling_to_raw_messages = value

    def _check_settings(self, **changes: Any) -> None:
        """
        Validate a runtime change against the same rules as ThrottlerConfig.

        Raises:
            ConfigValidationError: If the resulting settings are invalid.
        """
        current = ThrottlerConfig(
            messages_allowed_in_period=self._quota.limit,
            period_duration=self.period_duration,
            minimum_message_length=self._policy.minimum_length,
            maximum_message_length=self._policy.maximum_length,
            apply_throttling_to_raw_messages=self._apply_throttling_to_raw_messages,
            tick_interval=self.tick_interval,
            burst_dispatch=self.burst_dispatch,
        )
        replace(current, **changes).validate()

    def add_listener(self, listener: ThrottleEventListener) -> None:
        assert listener is not None, "Listener can not be None."
        self.listeners.append(listener)

    # ======================
    # Public API
    # ======================

    def submit(self, text: str) -> OutgoingMessage:
        """
        Admit and queue a message for dispatch.

        Returns immediately. The returned message is QUEUED on success, or
        FAILED when the admission policy rejects it (see `violation`) or its
        nonce collides with an outstanding one.

        Args:
            text: The message to send.

        Returns:
            The OutgoingMessage tracking this attempt.
        """
        assert text is not None, "Message text can not be None."

        violation = self._policy.evaluate(text)
        if violation is not None:
            message = OutgoingMessage.rejected(
                text=text,
                sender=self.client.sender_identity,
                violation=violation,
            )
            logger.debug(f"{'-':<10} | Throttler | Rejected ({violation}): '{preview(text)}'")
            self._notify_listeners("on_throttled", message=message, violation=violation)
            return message

        message = OutgoingMessage(
            text=text,
            sender=self.client.sender_identity,
            destination=self.client.current_destination(),
            nonce=self._nonces.next(),
        )

        if self._store.register(message.nonce, message.text):
            self._store.enqueue(message)
            logger.debug(f"{message.nonce:<10} | Throttler | Queued (pending={self._store.pending_count})")
            self._notify_listeners("on_queued", message=message)
        else:
            message.transition_to(MessageState.FAILED, error=f"Duplicate nonce: {message.nonce}")
            logger.warning(f"{message.nonce:<10} | Throttler | ⚠️ Nonce collision, message not queued.")

        return message

    def send_raw(self, text: str) -> OutgoingMessage:
        """
        Send a raw message.

        If `apply_throttling_to_raw_messages` is True this is `submit(text)`.
        Otherwise the message bypasses admission, the queue and the quota and
        is dispatched right away on the caller's thread. Transport failures
        are logged and reported through the returned message, never raised.
        """
        if self._apply_throttling_to_raw_messages:
            return self.submit(text)

        message = OutgoingMessage(
            text=text,
            sender=self.client.sender_identity,
            destination=self.client.current_destination(),
        )
        self._dispatch(message)
        return message

    def clear(self) -> None:
        """Discard every pending message and forget all outstanding nonces."""
        self._store.clear()

    def start(self, wait: bool = True) -> None:
        """
        Launch the reset and drain loops.

        Args:
            wait: If True (default), block until both loops exit, i.e. until
                `stop()` is called from another thread. If False, return as
                soon as the loops are running.

        Raises:
            ThrottlerAlreadyRunningError: If the loops are already running, or
                the loops of a previous run are still finishing a dispatch.
        """
        with self._lifecycle_lock:
            if self.is_running:
                raise ThrottlerAlreadyRunningError("Message throttler is already running. Call stop() first.")
            if any(thread.is_alive() for thread in self._threads):
                raise ThrottlerAlreadyRunningError(
                    "Previous loops are still finishing an in-flight dispatch. Call join() first."
                )

            cancel = threading.Event()
            self._cancel = cancel
            self._threads = [
                threading.Thread(
                    target=self._run_reset_loop,
                    args=(cancel,),
                    name="chatthrottle-reset",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run_drain_loop,
                    args=(cancel,),
                    name="chatthrottle-drain",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()

        logger.info(
            f"{'-':<10} | Throttler | 🚦 Started: limit={self._quota.limit} per {self.period_duration}s, "
            f"tick={self.tick_interval}s, burst={self.burst_dispatch}"
        )

        if wait:
            self.join()

    def stop(self) -> None:
        """
        Signal both loops to exit and clear the pending store.

        Does not wait for an in-flight dispatch to finish; `start()` refuses
        to run again until those loops have exited (see `join()`). Safe to
        call when the throttler was never started or is already stopped.
        """
        with self._lifecycle_lock:
            cancel = self._cancel
            if cancel is not None and not cancel.is_set():
                cancel.set()
                logger.info(f"{'-':<10} | Throttler | 🛑 Stopped (discarding {self._store.pending_count} pending).")
            else:
                logger.debug(f"{'-':<10} | Throttler | stop() called while not running.")

        self.clear()

    def join(self, timeout: float | None = None) -> bool:
        """
        Wait for both loops to exit.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Returns:
            True if both loops have exited.
        """
        for thread in list(self._threads):
            thread.join(timeout)
        return not any(thread.is_alive() for thread in self._threads)

    def __enter__(self) -> "MessageThrottler":
        self.start(wait=False)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()

    # ======================
    # Background loops
    # ======================

    def _run_reset_loop(self, cancel: threading.Event) -> None:
        while not cancel.wait(self.period_duration):
            self._reset_quota()

    def _run_drain_loop(self, cancel: threading.Event) -> None:
        while not cancel.wait(self.tick_interval):
            try:
                self._drain_tick(cancel)
            except Exception as e:
                logger.exception(f"{'-':<10} | Throttler | ❌ Unexpected error in drain loop: {e}")

    def _reset_quota(self) -> None:
        previous = self._quota.value
        self._quota.reset()
        if previous:
            logger.debug(f"{'-':<10} | Throttler | Quota reset (sent {previous} in the last window).")

    def _drain_tick(self, cancel: threading.Event | None = None) -> int:
        """
        Run one drain tick.

        Skips the tick when the quota is exhausted. Otherwise dequeues while
        there is headroom: each dequeued message takes a quota slot before
        dispatch, even if the send then fails. Messages left over when the
        quota runs out wait for the next window. A set `cancel` event stops
        the tick before the next dequeue.

        Returns:
            Number of messages sent successfully during this tick.
        """
        if self._quota.is_exhausted():
            return 0

        sent = 0
        while cancel is None or not cancel.is_set():
            message = self._store.dequeue()
            if message is None:
                break

            if not self._quota.try_acquire():
                self._store.restore(message)
                break

            # Nonce gone means clear() ran while this message was in flight
            if not self._store.release(message.nonce):
                logger.debug(f"{message.nonce:<10} | Throttler | Skipping message no longer outstanding.")
                continue

            if self._dispatch(message):
                sent += 1
                if not self.burst_dispatch:
                    break

        return sent

    def _dispatch(self, message: OutgoingMessage) -> bool:
        """
        Hand `message` to the transport and record the outcome.

        The transport sends to the client's current destination, which is
        recorded in `dispatched_to`. Never raises on transport errors.
        """
        message.dispatched_to = self.client.current_destination()
        if message.dispatched_to != message.destination:
            logger.info(
                f"{message.nonce or '-':<10} | Throttler | "
                f"Destination changed since enqueue: {message.destination or '-'} → {message.dispatched_to or '-'}"
            )

        try:
            self.client.dispatch(message.text)
        except Exception as e:
            message.transition_to(MessageState.FAILED, error=str(e))
            self.client.log(f"Failed to send message to {message.dispatched_to}, Error: {e}")
            self._notify_listeners("on_dispatch_failed", message=message, error=e)
            return False

        message.transition_to(MessageState.SENT)
        logger.debug(f"{message.nonce or '-':<10} | Throttler | Sent (quota {self._quota.value}/{self._quota.limit})")
        self._notify_listeners("on_sent", message=message)
        return True

    def _notify_listeners(self, event: str, **kwargs: Any) -> None:
        """
        Notify all registered listeners about an event.

        Exceptions raised by listeners are logged and swallowed.
        """
        message: OutgoingMessage | None = kwargs.get("message")
        tracking_id = (message.nonce if message else None) or "-"

        for listener in self.listeners:
            try:
                method = getattr(listener, event, None)
                if method and callable(method):
                    method(**kwargs)
            except Exception as e:
                listener_name = listener.__class__.__name__
                logger.warning(
                    f"{tracking_id:<10} | Throttler | Event listener `{listener_name}.{event}()` raised an exception: {e}"
                )
