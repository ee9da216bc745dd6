"""Common domain models for ratepace."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union


class Mode(str, Enum):
    METER = "meter"
    BURST = "burst"


class LimiterKind(str, Enum):
    LINEAR = "linear"
    HEADERS = "headers"


@dataclass(frozen=True, slots=True)
class State:
    """Snapshot of a limiter's quota."""

    limit: int
    remaining: int
    reset: datetime


AttrSource = Union[
    Mapping[str, Union[str, Sequence[str]]],
    Iterable[Tuple[str, str]],
]


class Attrs(Mapping[str, List[str]]):
    """Read-only, ordered, multi-valued attribute bag with case-insensitive names.

    Attributes usually come from HTTP headers, but any name/value source works.
    """

    __slots__ = ("_items",)

    def __init__(self, source: Optional[AttrSource] = None) -> None:
        items: List[Tuple[str, str]] = []
        if source is not None:
            pairs = source.items() if isinstance(source, Mapping) else source
            for name, value in pairs:
                if isinstance(value, (list, tuple)):
                    items.extend((str(name), str(v)) for v in value)
                else:
                    items.append((str(name), str(value)))
        self._items: Tuple[Tuple[str, str], ...] = tuple(items)

    def get_list(self, name: str) -> List[str]:
        key = name.lower()
        return [value for item_name, value in self._items if item_name.lower() == key]

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:  # type: ignore[override]
        """Return the first value recorded for ``name``."""

        values = self.get_list(name)
        return values[0] if values else default

    def find(self, *names: str) -> Tuple[str, str]:
        """Return ``(name, value)`` for the first alias with a non-empty value."""

        for name in names:
            value = self.get(name)
            if value:
                return name, value
        return "", ""

    def __getitem__(self, name: str) -> List[str]:
        values = self.get_list(name)
        if not values:
            raise KeyError(name)
        return values

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for name, _ in self._items:
            key = name.lower()
            if key not in seen:
                seen.add(key)
                yield name

    def __len__(self) -> int:
        return len({name.lower() for name, _ in self._items})

    def __repr__(self) -> str:
        return f"Attrs({list(self._items)!r})"
