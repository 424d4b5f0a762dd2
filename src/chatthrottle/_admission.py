"""
Length-based admission policy.

The policy is a stateless predicate: `evaluate()` returns the violated rule
or None. Notifying listeners about a rejection is the throttler's job.

Note the two bounds are not symmetric:

- `maximum_length=None` disables the long-message check.
- The short-message check always runs. The default minimum of 0 can never
  be undercut by a real string, so it is a no-op by construction.
"""

from dataclasses import dataclass

from chatthrottle._models import ThrottleViolation


@dataclass(frozen=True)
class AdmissionPolicy:
    """
    Admits or rejects a message by its length.

    Attributes:
        minimum_length: Shortest allowed message (inclusive). 0 or negative means no minimum.
        maximum_length: Longest allowed message (inclusive). None means no maximum.

    Example:
        >>> policy = AdmissionPolicy(minimum_length=2, maximum_length=10)
        >>> policy.evaluate("hello")
        >>> policy.evaluate("x" * 11)
        <ThrottleViolation.MESSAGE_TOO_LONG: 'MESSAGE_TOO_LONG'>
    """
    minimum_length: int = 0
    maximum_length: int | None = None

    def __post_init__(self) -> None:
        assert self.minimum_length is not None, "minimum_length can not be None (use 0 for no minimum)."
        assert self.maximum_length is None or self.maximum_length >= 0, \
            "maximum_length must be >= 0 or None."

    def evaluate(self, text: str) -> ThrottleViolation | None:
        """
        Check `text` against the configured bounds.

        Returns:
            None when the message is admitted, otherwise the violated rule.
        """
        if self.maximum_length is not None and len(text) > self.maximum_length:
            return ThrottleViolation.MESSAGE_TOO_LONG
        if len(text) < self.minimum_length:
            return ThrottleViolation.MESSAGE_TOO_SHORT
        return None

    def permits(self, text: str) -> bool:
        return self.evaluate(text) is None
