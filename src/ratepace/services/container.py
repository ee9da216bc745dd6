"""Limiter construction from configuration."""

from __future__ import annotations

from typing import Optional

from ..core.config import LimiterConfig
from ..core.models import LimiterKind
from .base import Limiter
from .headers import HeaderLimiter
from .linear import LinearLimiter


def build_limiter(config: Optional[LimiterConfig] = None) -> Limiter:
    """Build the limiter variant named by ``config.kind``."""

    cfg = (config or LimiterConfig.load()).validate()
    if cfg.kind is LimiterKind.LINEAR:
        return LinearLimiter(cfg)
    return HeaderLimiter(cfg)
