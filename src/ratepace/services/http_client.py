"""httpx integration: pace outgoing requests and feed responses back."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..core.clock import utcnow
from ..core.errors import InvalidHeaderError, MissingHeadersError, RetryError
from ..core.models import Attrs
from .base import Limiter

logger = logging.getLogger(__name__)


def attrs_from_request(request: httpx.Request) -> Attrs:
    """Derive rate limiting attributes from an outgoing request."""

    return Attrs(request.headers.multi_items())


def attrs_from_response(response: httpx.Response) -> Attrs:
    """Derive rate limiting attributes from a response."""

    return Attrs(response.headers.multi_items())


class RateLimitedClient:
    """Sends requests through ``httpx.AsyncClient`` once the limiter allows them.

    Every response is offered to ``limiter.update``. Responses without quota
    headers are tolerated; a retry signal is raised to the caller with the
    response attached.
    """

    def __init__(
        self,
        limiter: Limiter,
        *,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._limiter = limiter
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @property
    def limiter(self) -> Limiter:
        return self._limiter

    async def request(
        self,
        method: str,
        url: str,
        *,
        cancel: Optional[asyncio.Event] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        request = self._client.build_request(method, url, **kwargs)
        await self._limiter.wait(utcnow(), attrs_from_request(request), cancel=cancel)
        response = await self._client.send(request)
        self._feedback(response)
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    def _feedback(self, response: httpx.Response) -> None:
        try:
            self._limiter.update(utcnow(), attrs_from_response(response))
        except RetryError as exc:
            exc.response = response
            raise
        except MissingHeadersError as exc:
            logger.debug("No rate limit feedback from %s: %s", response.request.url, exc)
        except InvalidHeaderError as exc:
            logger.warning("Ignoring malformed rate limit feedback from %s: %s", response.request.url, exc)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
