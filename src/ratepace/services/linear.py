"""Evenly spaced scheduling over a fixed window."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from ..core.clock import as_utc, slot_after, utcnow, window_at
from ..core.config import LimiterConfig
from ..core.models import Attrs, State
from .base import suspend


class LinearLimiter:
    """Spreads operations evenly over the window.

    The limiter only imposes pacing: it never counts what was actually issued,
    so ``state`` reports a linear estimate of the remaining quota.
    """

    def __init__(self, config: LimiterConfig) -> None:
        config.validate()
        self._config = config
        self._base = as_utc(config.start) if config.start is not None else utcnow()
        self._delay: timedelta = config.window / config.events

    @property
    def slot(self) -> timedelta:
        return self._delay

    def state(self, now: datetime) -> State:
        window = window_at(self._base, self._config.window, now)
        elapsed = window.offset / self._config.window
        return State(
            limit=self._config.events,
            remaining=int((1 - elapsed) * self._config.events),
            reset=window.reset,
        )

    def next(self, now: datetime, attrs: Optional[Attrs] = None) -> datetime:
        return slot_after(now, self._delay)

    async def wait(
        self,
        now: datetime,
        attrs: Optional[Attrs] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> datetime:
        target = self.next(now, attrs)
        return await suspend(target, as_utc(now), cancel)

    def update(self, now: datetime, attrs: Optional[Attrs] = None) -> None:
        # post-operation feedback has no bearing on a fixed schedule
        return None
