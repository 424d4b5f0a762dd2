"""Tests for the length-based admission policy."""

import pytest

from chatthrottle import AdmissionPolicy, ThrottleViolation


class TestAdmissionPolicy:

    def test_defaults_admit_everything(self):
        policy = AdmissionPolicy()

        assert policy.evaluate("") is None
        assert policy.evaluate("x" * 10_000) is None

    def test_message_longer_than_maximum_is_rejected(self):
        policy = AdmissionPolicy(maximum_length=10)

        assert policy.evaluate("x" * 11) == ThrottleViolation.MESSAGE_TOO_LONG
        assert not policy.permits("x" * 11)

    def test_message_at_maximum_is_admitted(self):
        assert AdmissionPolicy(maximum_length=10).permits("x" * 10)

    def test_message_shorter_than_minimum_is_rejected(self):
        policy = AdmissionPolicy(minimum_length=2)

        assert policy.evaluate("x") == ThrottleViolation.MESSAGE_TOO_SHORT

    def test_message_at_minimum_is_admitted(self):
        assert AdmissionPolicy(minimum_length=2).permits("xy")

    def test_maximum_zero_only_admits_empty_message(self):
        policy = AdmissionPolicy(maximum_length=0)

        assert policy.permits("")
        assert policy.evaluate("x") == ThrottleViolation.MESSAGE_TOO_LONG

    def test_negative_minimum_behaves_like_no_minimum(self):
        assert AdmissionPolicy(minimum_length=-5).permits("")

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("a", ThrottleViolation.MESSAGE_TOO_SHORT),
            ("abc", None),
            ("abcde", None),
            ("abcdef", ThrottleViolation.MESSAGE_TOO_LONG),
        ],
    )
    def test_both_bounds(self, text, expected):
        policy = AdmissionPolicy(minimum_length=2, maximum_length=5)

        assert policy.evaluate(text) == expected

    def test_long_check_runs_first(self):
        """An impossible window reports the long violation."""
        policy = AdmissionPolicy(minimum_length=10, maximum_length=3)

        assert policy.evaluate("abcd") == ThrottleViolation.MESSAGE_TOO_LONG

    def test_policy_is_immutable(self):
        policy = AdmissionPolicy()
        with pytest.raises(AttributeError):
            policy.maximum_length = 3  # type: ignore

    def test_minimum_cannot_be_none(self):
        with pytest.raises(AssertionError):
            AdmissionPolicy(minimum_length=None)  # type: ignore

    def test_negative_maximum_is_rejected(self):
        with pytest.raises(AssertionError):
            AdmissionPolicy(maximum_length=-1)
