"""Client-side request pacing for rate limited services."""

from .core import (
    Attrs,
    CanceledError,
    ConfigurationError,
    InvalidHeaderError,
    LimiterConfig,
    LimiterKind,
    MissingAttrsError,
    MissingHeadersError,
    Mode,
    QuotaState,
    RatePaceError,
    RetryError,
    State,
)
from .services.base import Limiter
from .services.container import build_limiter
from .services.headers import HeaderLimiter
from .services.http_client import RateLimitedClient, attrs_from_request, attrs_from_response
from .services.linear import LinearLimiter

__version__ = "0.1.0"

__all__ = [
    "Attrs",
    "CanceledError",
    "ConfigurationError",
    "HeaderLimiter",
    "InvalidHeaderError",
    "Limiter",
    "LimiterConfig",
    "LimiterKind",
    "LinearLimiter",
    "MissingAttrsError",
    "MissingHeadersError",
    "Mode",
    "QuotaState",
    "RateLimitedClient",
    "RatePaceError",
    "RetryError",
    "State",
    "attrs_from_request",
    "attrs_from_response",
    "build_limiter",
]
