"""
Global configuration for the chatthrottle package.

Convention over configuration: nothing needs to be set up, but applications
can call CHATTHROTTLE.configure() at startup to change the defaults.

Hierarchy of precedence (highest to lowest):
1. Arguments passed to MessageThrottler / WebhookChatClient constructors
2. Values set via CHATTHROTTLE.configure()
3. Environment variables (CHATTHROTTLE_*) - when allow_env_override=True
4. Hardcoded defaults (in dataclass fields)

Example:
    >>> from chatthrottle import CHATTHROTTLE
    >>> CHATTHROTTLE.config.throttle.messages_allowed_in_period
    20
    >>> CHATTHROTTLE.configure(
    ...     throttle={"messages_allowed_in_period": 100, "period_duration": 30.0},
    ...     webhook={"url": "https://chat.example.com/hooks/abc", "sender": "bot"},
    ... )
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Self

# String values that mean "no bound" for optional limits
_UNBOUNDED_VALUES = ("none", "null", "unlimited")


# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


# =============================================================================
# Environment Variables
# =============================================================================


class EnvVars:
    """
    Reads environment variables with type conversion.

    Example:
        >>> EnvVars.get("CHATTHROTTLE_PERIOD_DURATION", type_hint=float)
        30.0
        >>> EnvVars.get("UNDEFINED_VAR")
        None
    """

    @staticmethod
    def get(
        var_name: str,
        type_hint: Any = str,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """
        Read an environment variable with optional type conversion.

        Returns:
            The converted value, or None if env var is not set/empty.

        Raises:
            ConfigEnvVarError: If the value cannot be converted.
        """
        raw_value = os.environ.get(var_name)
        if not raw_value:
            return None

        actual_converter = converter or EnvVars._infer_converter(type_hint)
        try:
            return actual_converter(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigEnvVarError(
                env_var=var_name,
                value=raw_value,
                expected_type=type_hint.__name__ if hasattr(type_hint, "__name__") else str(type_hint),
                cause=e,
            ) from e

    @staticmethod
    def _infer_converter(type_hint: Any) -> Callable[[str], Any]:
        # Annotations are strings here (from __future__ import annotations)
        type_str = str(type_hint)

        if type_hint is int or type_str == "int":
            return int
        if type_hint is float or type_str == "float":
            return float
        if type_hint is bool or type_str == "bool":
            return lambda v: v.lower() in ("true", "1", "yes")
        return str


def _optional_int(value: str) -> int | None:
    if value.lower() in _UNBOUNDED_VALUES:
        return None
    return int(value)


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration sections.

    Provides `.with_overrides()` for partial updates (rejecting unknown
    field names) and `.with_env_vars()` for applying the env vars declared
    in each field's metadata.
    """

    # Fields that accept None as a real value (e.g. "no maximum")
    _NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def with_overrides(self, overrides: dict[str, Any]) -> Self:
        """
        Return a new instance with the given fields replaced.

        None values are ignored, except for fields in `_NULLABLE_FIELDS`, where
        None (or "none"/"null"/"unlimited") sets the field to None.

        Raises:
            ValueError: If overrides contains unknown field names.
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides.keys()) - valid_fields
        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        filtered: dict[str, Any] = {}
        for name, value in overrides.items():
            if name in self._NULLABLE_FIELDS:
                if isinstance(value, str) and value.lower() in _UNBOUNDED_VALUES:
                    value = None
                filtered[name] = value
            elif value is not None:
                filtered[name] = value

        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return a new instance with environment variables applied.

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        overrides: dict[str, Any] = {}
        for f in fields(self):
            env_var = f.metadata.get("env")
            if not env_var or not os.environ.get(env_var):
                continue
            overrides[f.name] = EnvVars.get(
                var_name=env_var,
                type_hint=f.type,
                converter=f.metadata.get("converter"),
            )
        return self.with_overrides(overrides)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class ThrottlerConfig(OverridableConfig):
    """
    Configuration for MessageThrottler.

    Attributes:
        messages_allowed_in_period: Max messages dispatched per window.
            Env var: CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD

        period_duration: Window length in seconds.
            Env var: CHATTHROTTLE_PERIOD_DURATION

        minimum_message_length: Shortest message admitted. The check always
            runs; 0 makes it a no-op.
            Env var: CHATTHROTTLE_MINIMUM_MESSAGE_LENGTH

        maximum_message_length: Longest message admitted, or None for no maximum.
            Env var: CHATTHROTTLE_MAXIMUM_MESSAGE_LENGTH ("unlimited" for None)

        apply_throttling_to_raw_messages: Route `send_raw()` through the queue.
            Env var: CHATTHROTTLE_APPLY_THROTTLING_TO_RAW_MESSAGES

        tick_interval: Seconds between drain loop ticks.
            Env var: CHATTHROTTLE_TICK_INTERVAL

        burst_dispatch: If True, each tick drains until the queue is empty or
            the quota is exhausted. If False, a tick ends after the first
            successful dispatch.
            Env var: CHATTHROTTLE_BURST_DISPATCH
    """

    _NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"maximum_message_length"})

    messages_allowed_in_period: int = field(default=20, metadata={"env": "CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD"})
    period_duration: float = field(default=30.0, metadata={"env": "CHATTHROTTLE_PERIOD_DURATION"})
    minimum_message_length: int = field(default=0, metadata={"env": "CHATTHROTTLE_MINIMUM_MESSAGE_LENGTH"})
    maximum_message_length: int | None = field(
        default=None,
        metadata={"env": "CHATTHROTTLE_MAXIMUM_MESSAGE_LENGTH", "converter": _optional_int},
    )
    apply_throttling_to_raw_messages: bool = field(
        default=False, metadata={"env": "CHATTHROTTLE_APPLY_THROTTLING_TO_RAW_MESSAGES"}
    )
    tick_interval: float = field(default=0.25, metadata={"env": "CHATTHROTTLE_TICK_INTERVAL"})
    burst_dispatch: bool = field(default=False, metadata={"env": "CHATTHROTTLE_BURST_DISPATCH"})

    def validate(self) -> Self:
        """Validate throttler configuration fields."""
        if self.messages_allowed_in_period <= 0:
            raise ConfigValidationError(
                "messages_allowed_in_period", self.messages_allowed_in_period,
                "Must be greater than 0.", section="throttle"
            )
        if self.period_duration <= 0:
            raise ConfigValidationError(
                "period_duration", self.period_duration,
                "Must be greater than 0.", section="throttle"
            )
        if self.minimum_message_length is None:
            raise ConfigValidationError(
                "minimum_message_length", self.minimum_message_length,
                "Must be an integer (use 0 for no minimum).", section="throttle"
            )
        if self.maximum_message_length is not None and self.maximum_message_length < 0:
            raise ConfigValidationError(
                "maximum_message_length", self.maximum_message_length,
                "Must be >= 0 (or None for no maximum).", section="throttle"
            )
        if (
            self.maximum_message_length is not None
            and self.minimum_message_length > self.maximum_message_length
        ):
            raise ConfigValidationError(
                "minimum_message_length", self.minimum_message_length,
                f"Must not exceed maximum_message_length ({self.maximum_message_length}).",
                section="throttle"
            )
        if self.tick_interval <= 0:
            raise ConfigValidationError(
                "tick_interval", self.tick_interval,
                "Must be greater than 0.", section="throttle"
            )
        return self


@dataclass(frozen=True)
class WebhookConfig(OverridableConfig):
    """
    Configuration for WebhookChatClient.

    Attributes:
        url: Incoming-webhook URL.
            Env var: CHATTHROTTLE_WEBHOOK_URL

        sender: Sender identity reported with each message.
            Env var: CHATTHROTTLE_WEBHOOK_SENDER

        request_timeout: Per-request timeout in seconds.
            Env var: CHATTHROTTLE_WEBHOOK_REQUEST_TIMEOUT

        max_retries: Retries after the first attempt on transient failures.
            Env var: CHATTHROTTLE_WEBHOOK_MAX_RETRIES

        backoff_factor: Base backoff in seconds (doubles per retry).
            Env var: CHATTHROTTLE_WEBHOOK_BACKOFF_FACTOR
    """

    url: str | None = field(default=None, metadata={"env": "CHATTHROTTLE_WEBHOOK_URL"})
    sender: str | None = field(default=None, metadata={"env": "CHATTHROTTLE_WEBHOOK_SENDER"})
    request_timeout: int = field(default=10, metadata={"env": "CHATTHROTTLE_WEBHOOK_REQUEST_TIMEOUT"})
    max_retries: int = field(default=2, metadata={"env": "CHATTHROTTLE_WEBHOOK_MAX_RETRIES"})
    backoff_factor: float = field(default=0.5, metadata={"env": "CHATTHROTTLE_WEBHOOK_BACKOFF_FACTOR"})

    def validate(self) -> Self:
        """Validate webhook configuration fields."""
        if self.request_timeout <= 0:
            raise ConfigValidationError(
                "request_timeout", self.request_timeout,
                "Must be greater than 0.", section="webhook"
            )
        if self.max_retries < 0:
            raise ConfigValidationError(
                "max_retries", self.max_retries,
                "Must be >= 0.", section="webhook"
            )
        if self.backoff_factor <= 0:
            raise ConfigValidationError(
                "backoff_factor", self.backoff_factor,
                "Must be greater than 0.", section="webhook"
            )
        return self


@dataclass(frozen=True)
class ChatThrottleConfig:
    """
    Root configuration: aggregates the `throttle` and `webhook` sections.

    Example:
        >>> config = ChatThrottleConfig().with_env_vars()
        >>> config.throttle.period_duration
        30.0
    """

    throttle: ThrottlerConfig = field(default_factory=ThrottlerConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)

    def with_env_vars(self) -> ChatThrottleConfig:
        """Return a new config with CHATTHROTTLE_* environment variables applied on top."""
        return ChatThrottleConfig(
            throttle=self.throttle.with_env_vars(),
            webhook=self.webhook.with_env_vars(),
        )

    def with_section_overrides(
        self,
        *,
        throttle: dict[str, Any] | None = None,
        webhook: dict[str, Any] | None = None,
    ) -> ChatThrottleConfig:
        """Return a new config with per-section overrides merged in."""
        return ChatThrottleConfig(
            throttle=self.throttle.with_overrides(throttle or {}),
            webhook=self.webhook.with_overrides(webhook or {}),
        )


# =============================================================================
# Global Configuration Singleton
# =============================================================================


class _ChatThrottle:
    """
    Singleton holding the package-wide configuration.

    Use `CHATTHROTTLE.configure()` to customize settings and
    `CHATTHROTTLE.config` to read them.
    """

    def __init__(self) -> None:
        self._config: ChatThrottleConfig = ChatThrottleConfig().with_env_vars()

    def configure(
        self,
        *,
        throttle: dict[str, Any] | None = None,
        webhook: dict[str, Any] | None = None,
        allow_env_override: bool = True,
    ) -> ChatThrottleConfig:
        """
        Configure package settings.

        Args:
            throttle: ThrottlerConfig overrides.
            webhook: WebhookConfig overrides.
            allow_env_override: If True (default), env vars are used as fallback
                for fields NOT provided. If False, env vars are ignored.

        Returns:
            The configured ChatThrottleConfig instance.

        Raises:
            ValueError: If any dict contains unknown field names.
            ConfigValidationError: If any config value fails validation.
        """
        base = ChatThrottleConfig()
        if allow_env_override:
            base = base.with_env_vars()

        self._config = base.with_section_overrides(throttle=throttle, webhook=webhook)
        return self.validate()

    @property
    def config(self) -> ChatThrottleConfig:
        return self._config

    def reset(self) -> ChatThrottleConfig:
        """Reset configuration to defaults + env vars. Handy between tests."""
        self._config = ChatThrottleConfig().with_env_vars()
        return self.validate()

    def validate(self) -> ChatThrottleConfig:
        """
        Validate current configuration.

        Raises:
            ConfigValidationError: If any config value is invalid.
        """
        self._config.throttle.validate()
        self._config.webhook.validate()
        return self._config

    def __repr__(self) -> str:
        return f"CHATTHROTTLE(config={self._config!r})"


# Global singleton instance - always reflects current configuration
CHATTHROTTLE: _ChatThrottle = _ChatThrottle()
CHATTHROTTLE.validate()
