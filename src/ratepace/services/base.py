"""The limiter contract shared by every scheduling strategy."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

from ..core.errors import CanceledError
from ..core.models import Attrs, State

logger = logging.getLogger(__name__)


class Limiter(Protocol):
    """A general purpose rate limiter."""

    def next(self, now: datetime, attrs: Optional[Attrs] = None) -> datetime:
        """Return the instant at which the next operation may run, relative to ``now``."""
        raise NotImplementedError

    async def wait(
        self,
        now: datetime,
        attrs: Optional[Attrs] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> datetime:
        """Suspend until the next operation may run."""
        raise NotImplementedError

    def update(self, now: datetime, attrs: Optional[Attrs] = None) -> None:
        """Feed post-operation context back; implementations may ignore it."""
        raise NotImplementedError

    def state(self, now: datetime) -> State:
        """Snapshot of the limiter's quota. Not every implementation tracks it exactly."""
        raise NotImplementedError


async def suspend(target: datetime, rel: datetime, cancel: Optional[asyncio.Event] = None) -> datetime:
    """Sleep from ``rel`` until ``target`` unless ``cancel`` fires first.

    No limiter state is touched here; all accounting happened before the call.
    """

    if cancel is not None and cancel.is_set():
        raise CanceledError(target)
    seconds = max((target - rel).total_seconds(), 0.0)
    logger.debug("Waiting %.3fs until %s", seconds, target.isoformat())
    if cancel is None:
        await asyncio.sleep(seconds)
        return target
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return target
    raise CanceledError(target)
