"""Region parameter: the rectangle cut from the source image before scaling.

Accepted forms are ``full``, ``square``, ``x,y,w,h`` (pixels) and
``pct:x,y,w,h`` (percentages of the source dimensions).
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from i3f.core.exceptions import InvalidRegionFormat
from i3f.iiif.numbers import format_decimal, parse_decimal, parse_unsigned_int

T = TypeVar("T")


@dataclass(frozen=True)
class RegionFull:
    def render(self) -> str:
        return "full"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class RegionSquare:
    def render(self) -> str:
        return "square"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class RegionRect:
    x: int
    y: int
    w: int
    h: int

    def render(self) -> str:
        return f"{self.x},{self.y},{self.w},{self.h}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class RegionPct:
    x: float
    y: float
    w: float
    h: float

    def render(self) -> str:
        values = ",".join(format_decimal(v) for v in (self.x, self.y, self.w, self.h))
        return f"pct:{values}"

    def __str__(self) -> str:
        return self.render()


Region = RegionFull | RegionSquare | RegionRect | RegionPct


def parse_region(token: str) -> Region:
    text = token.strip().lower()
    if text == "full":
        return RegionFull()
    if text == "square":
        return RegionSquare()
    if text.startswith("pct:"):
        pct_values = _split_four(text[4:], token, parse_decimal)
        return RegionPct(*pct_values)
    if "," in text:
        px_values = _split_four(text, token, parse_unsigned_int)
        return RegionRect(*px_values)
    raise InvalidRegionFormat(token)


def _split_four(coords: str, token: str, convert: Callable[[str], T | None]) -> list[T]:
    parts = coords.split(",")
    if len(parts) != 4:
        raise InvalidRegionFormat(token)
    values = []
    for part in parts:
        value = convert(part)
        if value is None:
            raise InvalidRegionFormat(token)
        values.append(value)
    return values
