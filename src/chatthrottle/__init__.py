"""
Rate-limited outgoing message dispatcher for chat clients.

Accepts message-send requests, admits or rejects them by length, queues the
admitted ones and releases them to the client's transport at a bounded rate
per time window, so the client never trips the remote service's rate limits.

Quick Start:
    >>> from chatthrottle import MessageThrottler, ThrottlerConfig, WebhookChatClient
    >>> client = WebhookChatClient(url="https://chat.example.com/hooks/abc", sender="bot")
    >>> client.join("#general")
    >>> throttler = MessageThrottler(
    ...     client,
    ...     config=ThrottlerConfig(messages_allowed_in_period=20, period_duration=30.0),
    ... )
    >>> throttler.start(wait=False)
    >>> throttler.submit("hello chat").state
    <MessageState.QUEUED: 'QUEUED'>
    >>> throttler.stop()

Global Configuration:
    >>> from chatthrottle import CHATTHROTTLE
    >>> CHATTHROTTLE.configure(
    ...     throttle={"messages_allowed_in_period": 100, "maximum_message_length": 500},
    ...     webhook={"url": "https://chat.example.com/hooks/abc", "sender": "bot"},
    ... )

Main Classes:
    - MessageThrottler: The throttling engine (submit/clear/start/stop).
    - OutgoingMessage: One message attempt, returned by submit().
    - MessageState: QUEUED, SENT or FAILED.
    - ThrottleViolation: MESSAGE_TOO_LONG or MESSAGE_TOO_SHORT.
    - AdmissionPolicy, PendingStore, QuotaCounter, NonceGenerator: engine parts.

Collaborators:
    - ChatClient: Interface the throttler sends through.
    - WebhookChatClient: ChatClient posting to an incoming-webhook URL.
    - DispatchError: Raised by transports on delivery failure.
    - ChannelRateLimitedError: The chat service answered 429 for a channel.
    - HttpClient, RequestsHttpClient: HTTP layer for the webhook client.

Events:
    - ThrottleEventListener: Observer base class (on_throttled, on_queued, ...).
    - LoggingThrottleListener: Logs every event.

Configuration:
    - CHATTHROTTLE: Global configuration singleton.
    - ChatThrottleConfig, ThrottlerConfig, WebhookConfig.
    - ConfigEnvVarError, ConfigValidationError.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("chatthrottle")

from chatthrottle._admission import AdmissionPolicy
from chatthrottle._client import (
    ChannelRateLimitedError,
    ChatClient,
    DispatchError,
    WebhookChatClient,
)
from chatthrottle._config import (
    CHATTHROTTLE,
    ChatThrottleConfig,
    ConfigEnvVarError,
    ConfigValidationError,
    ThrottlerConfig,
    WebhookConfig,
)
from chatthrottle._event_listeners import (
    LoggingThrottleListener,
    ThrottleEventListener,
)
from chatthrottle._http import (
    HttpClient,
    RequestsHttpClient,
)
from chatthrottle._models import (
    MessageState,
    OutgoingMessage,
    ThrottleViolation,
)
from chatthrottle._nonce import NonceGenerator
from chatthrottle._pending import PendingStore
from chatthrottle._quota import QuotaCounter
from chatthrottle._retry import (
    MaxRetriesExceededError,
    RetryableError,
    Retrying,
)
from chatthrottle._throttler import (
    MessageThrottler,
    ThrottlerAlreadyRunningError,
)

__all__ = [
    "__version__",
    # Engine
    "MessageThrottler",
    "ThrottlerAlreadyRunningError",
    "AdmissionPolicy",
    "PendingStore",
    "QuotaCounter",
    "NonceGenerator",
    # Models
    "OutgoingMessage",
    "MessageState",
    "ThrottleViolation",
    # Collaborators
    "ChannelRateLimitedError",
    "ChatClient",
    "WebhookChatClient",
    "DispatchError",
    "HttpClient",
    "RequestsHttpClient",
    # Events
    "ThrottleEventListener",
    "LoggingThrottleListener",
    # Configuration
    "CHATTHROTTLE",
    "ChatThrottleConfig",
    "ThrottlerConfig",
    "WebhookConfig",
    "ConfigEnvVarError",
    "ConfigValidationError",
    # Retry
    "Retrying",
    "RetryableError",
    "MaxRetriesExceededError",
]
