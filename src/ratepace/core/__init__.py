"""Core utilities and models."""

from .config import LimiterConfig
from .durations import MILLISECONDS, SECONDS, Durationer
from .errors import (
    CanceledError,
    ConfigurationError,
    InvalidHeaderError,
    MissingAttrsError,
    MissingHeadersError,
    RatePaceError,
    RetryError,
)
from .models import Attrs, LimiterKind, Mode, State
from .rate_limit import QuotaState

__all__ = [
    "LimiterConfig",
    "Durationer",
    "SECONDS",
    "MILLISECONDS",
    "CanceledError",
    "ConfigurationError",
    "InvalidHeaderError",
    "MissingAttrsError",
    "MissingHeadersError",
    "RatePaceError",
    "RetryError",
    "Attrs",
    "LimiterKind",
    "Mode",
    "State",
    "QuotaState",
]
