"""Interpretation of numeric rate limit header values."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from .clock import EPOCH
from .errors import ConfigurationError


class Durationer(Protocol):
    """Converts an integer header value to a duration or an absolute instant."""

    def duration(self, value: int) -> timedelta:
        raise NotImplementedError

    def time(self, value: int) -> datetime:
        raise NotImplementedError


class Seconds:
    """Values are seconds; instants are seconds since the Unix epoch."""

    def duration(self, value: int) -> timedelta:
        return timedelta(seconds=value)

    def time(self, value: int) -> datetime:
        return EPOCH + timedelta(seconds=value)


class Milliseconds:
    """Values are milliseconds; instants are milliseconds since the Unix epoch."""

    def duration(self, value: int) -> timedelta:
        return timedelta(milliseconds=value)

    def time(self, value: int) -> datetime:
        return EPOCH + timedelta(milliseconds=value)


SECONDS = Seconds()
MILLISECONDS = Milliseconds()

_BY_NAME = {
    "seconds": SECONDS,
    "s": SECONDS,
    "milliseconds": MILLISECONDS,
    "ms": MILLISECONDS,
}


def durationer_for(name: str) -> Durationer:
    try:
        return _BY_NAME[name.strip().lower()]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown duration unit: {name!r}") from exc
