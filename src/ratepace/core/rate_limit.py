"""Quota accounting, metering and backoff for feedback-driven limiters."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from .clock import as_utc
from .models import Mode, State

logger = logging.getLogger(__name__)

LOW_THRESHOLD = 0.05  # quota is running low at 5% remaining
LOW_LIMIT = 0.005  # stop entirely at 0.5% remaining

DEFAULT_BACKOFF_PERIOD = timedelta(minutes=3)


def backoff_duration(period: timedelta, count: int) -> timedelta:
    """Backoff grows with the square of the consecutive error count."""

    return period * count * count


class QuotaState:
    """Mutable quota for one limiter, guarded by a single lock.

    Callers never touch the fields directly: every read and write goes through
    a method that holds the lock for the in-memory computation only.
    """

    def __init__(
        self,
        limit: int,
        remaining: int,
        reset: datetime,
        *,
        mode: Mode = Mode.METER,
        max_delay: Optional[timedelta] = None,
        target: Optional[float] = None,
        backoff_period: timedelta = DEFAULT_BACKOFF_PERIOD,
    ) -> None:
        self._lock = threading.Lock()
        self._limit = limit
        self._remaining = max(remaining, 0)
        self._reset = as_utc(reset)
        self._backoff: Optional[datetime] = None
        self._backoff_period = backoff_period
        self._error_count = 0
        self._mode = mode
        self._target = 0.0
        self._max_delay = max_delay
        if target is not None:
            self.set_target(target)

    @property
    def error_count(self) -> int:
        with self._lock:
            return self._error_count

    @property
    def pending_backoff(self) -> Optional[datetime]:
        with self._lock:
            return self._backoff

    def set_mode(self, mode: Mode) -> None:
        with self._lock:
            self._mode = mode

    def set_max_delay(self, delay: Optional[timedelta]) -> None:
        with self._lock:
            self._max_delay = delay

    def set_target(self, target: float) -> None:
        with self._lock:
            self._target = min(max(target, 0.0), 1.0)

    def state(self) -> State:
        with self._lock:
            return State(limit=self._limit, remaining=self._remaining, reset=self._reset)

    def update(self, limit: int, remaining: int, reset: datetime) -> None:
        """Replace the quota wholesale with values reported by the remote service."""

        with self._lock:
            self._limit = limit
            self._remaining = max(remaining, 0)
            self._reset = as_utc(reset)

    def dec(self) -> None:
        with self._lock:
            if self._remaining > 0:
                self._remaining -= 1

    def backoff(self, rel: datetime) -> datetime:
        """Back off incrementally relative to ``rel`` and return the deadline."""

        with self._lock:
            self._error_count += 1
            until = as_utc(rel) + backoff_duration(self._backoff_period, self._error_count)
            self._backoff = until
            count = self._error_count
        logger.debug("Backing off until %s after %d consecutive errors", until.isoformat(), count)
        return until

    def backoff_until(self, until: datetime) -> None:
        with self._lock:
            self._backoff = as_utc(until)
            self._error_count = 1
        logger.debug("Backing off until %s", until.isoformat())

    def invalidate_backoff(self) -> None:
        with self._lock:
            self._error_count = 0
            self._backoff = None

    def delay(self, rel: datetime) -> timedelta:
        """Consume one unit of quota and return how long to wait before using it."""

        rel = as_utc(rel)
        with self._lock:
            if self._backoff is not None:
                if rel < self._backoff:
                    return self._backoff - rel
                self._backoff = None

            until_reset = max(self._reset - rel, timedelta(0))
            available = self._remaining
            self._error_count = 0
            if available <= 0:
                return until_reset
            self._remaining -= 1

            mode = self._mode
            limit = self._limit
            target = self._target
            max_delay = self._max_delay

        if mode is not Mode.METER:
            return timedelta(0)

        # spread the remaining quota across what is left of the window
        delay = until_reset / available
        if target > 0:
            delay = delay * (1.0 / target)
        if limit > 0:
            ratio = available / limit
            if ratio < LOW_LIMIT:
                delay = until_reset
            elif ratio < LOW_THRESHOLD:
                delay = delay * (1.0 / ratio / 2.0)
        if max_delay is not None and max_delay > timedelta(0) and delay > max_delay:
            return max_delay
        return delay
