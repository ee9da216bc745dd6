"""Window and slot arithmetic shared by the limiters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True, slots=True)
class Window:
    """The fixed window that contains a reference instant."""

    start: datetime
    reset: datetime
    offset: timedelta


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise to an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def epoch_micros(value: datetime) -> int:
    return (as_utc(value) - EPOCH) // MICROSECOND


def window_at(base: datetime, window: timedelta, rel: datetime) -> Window:
    """Locate the half-open window ``[start, start + window)`` holding ``rel``.

    Windows are laid end to end from ``base``; instants before ``base`` fall
    into earlier windows.
    """

    base = as_utc(base)
    count = (as_utc(rel) - base) // window
    start = base + window * count
    return Window(start=start, reset=start + window, offset=as_utc(rel) - start)


def slot_after(rel: datetime, slot: timedelta) -> datetime:
    """Return the first epoch-aligned slot boundary after ``rel`` is floored."""

    width = slot // MICROSECOND
    if width <= 0:
        raise ValueError("slot must be at least one microsecond")
    micros = (epoch_micros(rel) // width) * width + width
    return EPOCH + timedelta(microseconds=micros)
