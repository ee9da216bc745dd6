"""
Exception hierarchy for the ratepace package.
"""

from __future__ import annotations

from datetime import datetime


class RatePaceError(Exception):
    """Base exception for all library errors."""


class ConfigurationError(RatePaceError):
    """Raised when limiter configuration is missing or out of range."""


class MissingAttrsError(RatePaceError):
    """Raised when a limiter needs request/response attributes and none were given."""


class MissingHeadersError(RatePaceError):
    """Raised when rate limiting headers are absent from feedback."""


class InvalidHeaderError(RatePaceError, ValueError):
    """Raised when a rate limiting header carries a non-numeric value."""

    def __init__(self, name: str, value: str, reason: str | None = None) -> None:
        message = f"Rate limit header is invalid: {name} = {value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.name = name
        self.value = value


class RetryError(RatePaceError):
    """Raised when the remote service says not to retry before a given instant."""

    def __init__(self, retry_after: datetime, *, cause: BaseException | None = None) -> None:
        super().__init__(str(cause) if cause is not None else f"Retry after: {retry_after.isoformat()}")
        self.retry_after = retry_after
        self.cause = cause
        self.response = None


class CanceledError(RatePaceError):
    """Raised when a wait is canceled before the permitted instant."""

    def __init__(self, next_at: datetime) -> None:
        super().__init__("Canceled")
        self.next_at = next_at
