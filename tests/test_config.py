"""Tests for global configuration module."""

import os
import unittest
from unittest.mock import patch

import pytest

from chatthrottle._config import (
    CHATTHROTTLE,
    ChatThrottleConfig,
    ConfigEnvVarError,
    ConfigValidationError,
    EnvVars,
    ThrottlerConfig,
    WebhookConfig,
)


class TestDefaults(unittest.TestCase):
    """Tests for default configuration values."""

    def setUp(self):
        CHATTHROTTLE.reset()

    def tearDown(self):
        CHATTHROTTLE.reset()

    def test_throttle_defaults(self):
        """Should return the documented defaults for the throttle section."""
        throttle = ThrottlerConfig()
        self.assertEqual(throttle.messages_allowed_in_period, 20)
        self.assertEqual(throttle.period_duration, 30.0)
        self.assertEqual(throttle.minimum_message_length, 0)
        self.assertIsNone(throttle.maximum_message_length)
        self.assertFalse(throttle.apply_throttling_to_raw_messages)
        self.assertEqual(throttle.tick_interval, 0.25)
        self.assertFalse(throttle.burst_dispatch)

    def test_webhook_defaults(self):
        """Should leave URL and sender unset by default."""
        webhook = WebhookConfig()
        self.assertIsNone(webhook.url)
        self.assertIsNone(webhook.sender)
        self.assertEqual(webhook.request_timeout, 10)
        self.assertEqual(webhook.max_retries, 2)
        self.assertEqual(webhook.backoff_factor, 0.5)

    def test_config_sections_are_frozen(self):
        with self.assertRaises(AttributeError):
            CHATTHROTTLE.config.throttle.period_duration = 1.0  # type: ignore


class TestConfigure(unittest.TestCase):
    """Tests for CHATTHROTTLE.configure() method."""

    def setUp(self):
        CHATTHROTTLE.reset()

    def tearDown(self):
        CHATTHROTTLE.reset()

    def test_overrides_throttle_values(self):
        """Should override only the given fields."""
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": 100, "period_duration": 60.0})
        self.assertEqual(CHATTHROTTLE.config.throttle.messages_allowed_in_period, 100)
        self.assertEqual(CHATTHROTTLE.config.throttle.period_duration, 60.0)
        self.assertEqual(CHATTHROTTLE.config.throttle.tick_interval, 0.25)

    def test_overrides_webhook_values(self):
        CHATTHROTTLE.configure(webhook={"url": "https://chat.example.com/hooks/abc", "sender": "bot"})
        self.assertEqual(CHATTHROTTLE.config.webhook.url, "https://chat.example.com/hooks/abc")
        self.assertEqual(CHATTHROTTLE.config.webhook.sender, "bot")

    def test_returns_root_config(self):
        result = CHATTHROTTLE.configure(throttle={"burst_dispatch": True})
        self.assertIsInstance(result, ChatThrottleConfig)
        self.assertTrue(result.throttle.burst_dispatch)
        self.assertIs(result, CHATTHROTTLE.config)

    def test_unknown_field_is_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            CHATTHROTTLE.configure(throttle={"messages_per_minute": 10})
        self.assertIn("messages_per_minute", str(ctx.exception))

    def test_invalid_value_is_rejected(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            CHATTHROTTLE.configure(throttle={"period_duration": 0})
        self.assertEqual(ctx.exception.field, "period_duration")
        self.assertEqual(ctx.exception.section, "throttle")

    def test_none_is_ignored_for_regular_fields(self):
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": None})
        self.assertEqual(CHATTHROTTLE.config.throttle.messages_allowed_in_period, 20)

    def test_maximum_length_can_be_set_and_cleared(self):
        CHATTHROTTLE.configure(throttle={"maximum_message_length": 400})
        self.assertEqual(CHATTHROTTLE.config.throttle.maximum_message_length, 400)

        CHATTHROTTLE.configure(throttle={"maximum_message_length": None})
        self.assertIsNone(CHATTHROTTLE.config.throttle.maximum_message_length)

    def test_maximum_length_accepts_unlimited_keyword(self):
        CHATTHROTTLE.configure(throttle={"maximum_message_length": "unlimited"})
        self.assertIsNone(CHATTHROTTLE.config.throttle.maximum_message_length)

    def test_reset_restores_defaults(self):
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": 1})
        CHATTHROTTLE.reset()
        self.assertEqual(CHATTHROTTLE.config.throttle.messages_allowed_in_period, 20)


class TestEnvVars(unittest.TestCase):
    """Tests for environment variable override."""

    def setUp(self):
        CHATTHROTTLE.reset()

    def tearDown(self):
        CHATTHROTTLE.reset()

    @patch.dict(os.environ, {"CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD": "5"})
    def test_int_env_var(self):
        """Should use env var value over defaults."""
        CHATTHROTTLE.reset()
        self.assertEqual(CHATTHROTTLE.config.throttle.messages_allowed_in_period, 5)

    @patch.dict(os.environ, {"CHATTHROTTLE_PERIOD_DURATION": "2.5"})
    def test_float_env_var(self):
        CHATTHROTTLE.reset()
        self.assertEqual(CHATTHROTTLE.config.throttle.period_duration, 2.5)

    @patch.dict(os.environ, {
        "CHATTHROTTLE_BURST_DISPATCH": "true",
        "CHATTHROTTLE_APPLY_THROTTLING_TO_RAW_MESSAGES": "1",
    })
    def test_bool_env_vars(self):
        CHATTHROTTLE.reset()
        self.assertTrue(CHATTHROTTLE.config.throttle.burst_dispatch)
        self.assertTrue(CHATTHROTTLE.config.throttle.apply_throttling_to_raw_messages)

    @patch.dict(os.environ, {"CHATTHROTTLE_MAXIMUM_MESSAGE_LENGTH": "400"})
    def test_optional_int_env_var(self):
        CHATTHROTTLE.reset()
        self.assertEqual(CHATTHROTTLE.config.throttle.maximum_message_length, 400)

    @patch.dict(os.environ, {"CHATTHROTTLE_MAXIMUM_MESSAGE_LENGTH": "unlimited"})
    def test_optional_int_env_var_unbounded(self):
        CHATTHROTTLE.reset()
        self.assertIsNone(CHATTHROTTLE.config.throttle.maximum_message_length)

    @patch.dict(os.environ, {
        "CHATTHROTTLE_WEBHOOK_URL": "https://chat.example.com/hooks/env",
        "CHATTHROTTLE_WEBHOOK_SENDER": "env-bot",
        "CHATTHROTTLE_WEBHOOK_MAX_RETRIES": "0",
    })
    def test_webhook_env_vars(self):
        CHATTHROTTLE.reset()
        self.assertEqual(CHATTHROTTLE.config.webhook.url, "https://chat.example.com/hooks/env")
        self.assertEqual(CHATTHROTTLE.config.webhook.sender, "env-bot")
        self.assertEqual(CHATTHROTTLE.config.webhook.max_retries, 0)

    @patch.dict(os.environ, {"CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD": "5"})
    def test_configure_takes_precedence_over_env_vars(self):
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": 50})
        self.assertEqual(CHATTHROTTLE.config.throttle.messages_allowed_in_period, 50)

    @patch.dict(os.environ, {"CHATTHROTTLE_PERIOD_DURATION": "2.5"})
    def test_env_vars_fill_fields_not_configured(self):
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": 50})
        self.assertEqual(CHATTHROTTLE.config.throttle.period_duration, 2.5)

    @patch.dict(os.environ, {"CHATTHROTTLE_PERIOD_DURATION": "2.5"})
    def test_env_vars_can_be_ignored(self):
        CHATTHROTTLE.configure(throttle={"messages_allowed_in_period": 50}, allow_env_override=False)
        self.assertEqual(CHATTHROTTLE.config.throttle.period_duration, 30.0)

    @patch.dict(os.environ, {"CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD": "many"})
    def test_invalid_env_var_raises(self):
        with self.assertRaises(ConfigEnvVarError) as ctx:
            ThrottlerConfig().with_env_vars()
        self.assertEqual(ctx.exception.env_var, "CHATTHROTTLE_MESSAGES_ALLOWED_IN_PERIOD")
        self.assertEqual(ctx.exception.value, "many")

    @patch.dict(os.environ, {"CHATTHROTTLE_TICK_INTERVAL": ""})
    def test_empty_env_var_is_ignored(self):
        self.assertEqual(ThrottlerConfig().with_env_vars().tick_interval, 0.25)


class TestEnvVarsHelper:

    def test_missing_variable_returns_none(self):
        with patch.dict(os.environ, {}, clear=True):
            assert EnvVars.get("CHATTHROTTLE_DOES_NOT_EXIST") is None

    def test_explicit_converter(self):
        with patch.dict(os.environ, {"CHATTHROTTLE_X": "a,b"}):
            assert EnvVars.get("CHATTHROTTLE_X", converter=lambda v: v.split(",")) == ["a", "b"]


class TestThrottlerConfigValidation:

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"messages_allowed_in_period": 0}, "messages_allowed_in_period"),
            ({"messages_allowed_in_period": -3}, "messages_allowed_in_period"),
            ({"period_duration": 0}, "period_duration"),
            ({"tick_interval": -0.1}, "tick_interval"),
            ({"maximum_message_length": -1}, "maximum_message_length"),
            ({"minimum_message_length": 5, "maximum_message_length": 4}, "minimum_message_length"),
        ],
    )
    def test_invalid_values(self, overrides, field):
        config = ThrottlerConfig().with_overrides(overrides)
        with pytest.raises(ConfigValidationError) as exc_info:
            config.validate()
        assert exc_info.value.field == field
        assert "[throttle]" in str(exc_info.value)

    def test_minimum_equal_to_maximum_is_valid(self):
        config = ThrottlerConfig(minimum_message_length=3, maximum_message_length=3)
        assert config.validate() is config

    def test_zero_maximum_is_valid(self):
        assert ThrottlerConfig(maximum_message_length=0).validate().maximum_message_length == 0


class TestWebhookConfigValidation:

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"request_timeout": 0}, "request_timeout"),
            ({"max_retries": -1}, "max_retries"),
            ({"backoff_factor": 0}, "backoff_factor"),
        ],
    )
    def test_invalid_values(self, overrides, field):
        config = WebhookConfig().with_overrides(overrides)
        with pytest.raises(ConfigValidationError) as exc_info:
            config.validate()
        assert exc_info.value.field == field
        assert exc_info.value.section == "webhook"


if __name__ == "__main__":
    unittest.main()
