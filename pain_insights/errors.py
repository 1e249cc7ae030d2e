"""
Exceptions for misuse of the analytics API.

Insufficient data is never an exception: analyses return empty results for
that. These errors are reserved for calls that can never succeed.
"""


class AnalyticsError(Exception):
    """Base class for analytics usage errors."""


class InvalidWindowError(AnalyticsError, ValueError):
    """A window size or period length that is not a positive integer."""

    def __init__(self, name: str, value: object) -> None:
        super().__init__(f"{name} must be a positive integer, got {value!r}")
        self.name = name
        self.value = value


def require_positive_window(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidWindowError(name, value)
    return value
