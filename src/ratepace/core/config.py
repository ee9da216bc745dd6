"""Configuration loading utilities."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from .clock import as_utc
from .durations import Durationer, durationer_for
from .errors import ConfigurationError
from .models import LimiterKind, Mode

CONFIG_DIR = Path(os.environ.get("RATEPACE_CONFIG_DIR", Path.home() / ".config" / "ratepace"))
CONFIG_FILE = CONFIG_DIR / "config.json"

ENV_VAR_MAP = {
    "window": "RATEPACE_WINDOW",
    "events": "RATEPACE_EVENTS",
    "mode": "RATEPACE_MODE",
    "max_delay": "RATEPACE_MAX_DELAY",
    "duration_unit": "RATEPACE_DURATION_UNIT",
    "target": "RATEPACE_TARGET",
    "kind": "RATEPACE_KIND",
    "start": "RATEPACE_START",
}


@dataclass(slots=True)
class LimiterConfig:
    """General rate limiting configuration.

    ``window`` is the period over which ``events`` operations are permitted.
    ``start`` anchors the first window and defaults to the construction time.
    ``duration_unit`` and ``max_delay`` only matter for header-driven limiters.
    """

    window: timedelta = field(default_factory=lambda: timedelta(minutes=1))
    events: int = 60
    start: Optional[datetime] = None
    mode: Mode = Mode.METER
    max_delay: Optional[timedelta] = None
    duration_unit: str = "seconds"
    target: Optional[float] = None
    kind: LimiterKind = LimiterKind.HEADERS

    @property
    def durationer(self) -> Durationer:
        return durationer_for(self.duration_unit)

    def validate(self) -> "LimiterConfig":
        if self.window <= timedelta(0):
            raise ConfigurationError("window must be a positive duration")
        if self.events <= 0:
            raise ConfigurationError("events must be >= 1")
        if self.max_delay is not None and self.max_delay < timedelta(0):
            raise ConfigurationError("max_delay must not be negative")
        durationer_for(self.duration_unit)
        return self

    @classmethod
    def load(cls, override: Optional[Dict[str, Any]] = None) -> "LimiterConfig":
        """Load config from disk/.env/environment, applying overrides."""

        _inject_dotenv()

        data: Dict[str, Any] = {}
        if CONFIG_FILE.exists():
            with CONFIG_FILE.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {CONFIG_FILE} did not contain a mapping.")
        data.update(_values_from_environment())
        if override:
            data.update(override)

        defaults = _config_defaults()
        config = cls(
            window=_as_timedelta(data.get("window", defaults["window"]), "window"),
            events=_as_int(data.get("events", defaults["events"]), "events"),
            start=_as_datetime(data.get("start", defaults["start"])),
            mode=_as_enum(Mode, data.get("mode", defaults["mode"]), "mode"),
            max_delay=_as_optional_timedelta(data.get("max_delay", defaults["max_delay"]), "max_delay"),
            duration_unit=str(data.get("duration_unit", defaults["duration_unit"])),
            target=_as_optional_float(data.get("target", defaults["target"]), "target"),
            kind=_as_enum(LimiterKind, data.get("kind", defaults["kind"]), "kind"),
        )
        return config.validate()


def _config_defaults() -> Dict[str, Any]:
    template = LimiterConfig()
    return {item.name: getattr(template, item.name) for item in fields(template)}


def _dotenv_path() -> Path:
    return Path(os.environ.get("RATEPACE_ENV_FILE", Path.cwd() / ".env"))


def _values_from_environment() -> Dict[str, str]:
    env = os.environ
    return {key: env[name] for key, name in ENV_VAR_MAP.items() if env.get(name)}


def _as_timedelta(value: Any, label: str) -> timedelta:
    if isinstance(value, timedelta):
        return value
    try:
        return timedelta(seconds=float(value))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {label}; expected seconds") from exc


def _as_optional_timedelta(value: Any, label: str) -> Optional[timedelta]:
    if value in (None, ""):
        return None
    return _as_timedelta(value, label)


def _as_int(value: Any, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {label}; expected integer") from exc


def _as_optional_float(value: Any, label: str) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {label}; expected number") from exc


def _as_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value)))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid start; expected ISO 8601 timestamp, got {value!r}") from exc


def _as_enum(enum_type, value: Any, label: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(f"Invalid {label}; expected one of {choices}") from exc


def _inject_dotenv() -> None:
    dotenv_file = _dotenv_path()
    if not dotenv_file.exists():
        return
    with dotenv_file.open("r", encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            key, _, raw_value = stripped.partition("=")
            key = key.strip()
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]
            os.environ.setdefault(key, value.strip())
