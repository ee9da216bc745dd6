"""Rate limiting driven by the remote service's response headers.

This covers services that implement something like the 'RateLimit Fields for
HTTP' draft (https://datatracker.ietf.org/doc/html/draft-ietf-httpapi-ratelimit-headers).
Services using other header names or time formats can be accommodated by
extending the alias lists below.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from ..core.clock import as_utc, utcnow
from ..core.config import LimiterConfig
from ..core.durations import Durationer
from ..core.errors import InvalidHeaderError, MissingAttrsError, MissingHeadersError, RetryError
from ..core.models import Attrs, State
from ..core.rate_limit import QuotaState
from .base import suspend

logger = logging.getLogger(__name__)

RETRY_AFTER_HEADERS = ("X-Retry-After", "Retry-After")
LIMIT_HEADERS = ("X-RateLimit-Limit", "ratelimit-limit")
REMAINING_HEADERS = ("X-RateLimit-Remaining", "ratelimit-remaining")
RESET_HEADERS = ("X-RateLimit-Reset", "ratelimit-reset")

_INTEGER = re.compile(r"[+-]?[0-9]+")


class HeaderLimiter:
    """Tracks the quota a remote service reports and paces requests against it."""

    def __init__(self, config: LimiterConfig) -> None:
        config.validate()
        start = as_utc(config.start) if config.start is not None else utcnow()
        self._quota = QuotaState(
            limit=config.events,
            remaining=config.events,
            reset=start + config.window,
            mode=config.mode,
            max_delay=config.max_delay,
            target=config.target,
        )
        self._durationer: Durationer = config.durationer

    @property
    def quota(self) -> QuotaState:
        return self._quota

    def next(self, now: datetime, attrs: Optional[Attrs] = None) -> datetime:
        if attrs is None:
            raise MissingAttrsError("Header attributes are required")
        now = as_utc(now)
        delay = self._quota.delay(now)
        if delay > timedelta(0):
            return now + delay
        return now

    async def wait(
        self,
        now: datetime,
        attrs: Optional[Attrs] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> datetime:
        now = as_utc(now)
        target = self.next(now, attrs)
        if target <= now:
            return now
        return await suspend(target, now, cancel)

    def state(self, now: datetime) -> State:
        return self._quota.state()

    def update(self, now: datetime, attrs: Optional[Attrs] = None) -> None:
        """Apply rate limiting headers from a response.

        Raises:
            MissingAttrsError: when no attributes were supplied.
            RetryError: when the service asked us to retry later; the backoff
                is armed before raising so later delays honour it.
            MissingHeadersError: when a quota header is absent.
            InvalidHeaderError: when a header is not an ASCII base-10 integer
                or names an instant out of range. The current quota is left
                untouched.
        """

        if attrs is None:
            raise MissingAttrsError("Header attributes are required")

        # retry-after may arrive without any quota headers, so it wins
        name, value = attrs.find(*RETRY_AFTER_HEADERS)
        if value:
            until = _convert(name, value, lambda amount: as_utc(now) + self._durationer.duration(amount))
            self._quota.backoff_until(until)
            logger.info("Remote service requested retry after %s", until.isoformat())
            raise RetryError(until)

        limit = _parse_int(*_require(attrs, LIMIT_HEADERS, "No quota limit header"))
        remaining = _parse_int(*_require(attrs, REMAINING_HEADERS, "No remaining quota header"))
        name, value = _require(attrs, RESET_HEADERS, "No window reset header")
        reset = _convert(name, value, self._durationer.time)

        self._quota.update(limit, remaining, reset)
        logger.debug("Quota updated: limit=%d remaining=%d reset=%s", limit, remaining, reset.isoformat())


def _require(attrs: Attrs, names: Tuple[str, ...], message: str) -> Tuple[str, str]:
    name, value = attrs.find(*names)
    if not value:
        raise MissingHeadersError(message)
    return name, value


def _parse_int(name: str, value: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise InvalidHeaderError(name, value, "expected a base-10 integer")
    return int(value, 10)


def _convert(name: str, value: str, to_time: Callable[[int], datetime]) -> datetime:
    amount = _parse_int(name, value)
    try:
        return to_time(amount)
    except (OverflowError, ValueError) as exc:
        raise InvalidHeaderError(name, value, str(exc)) from exc
