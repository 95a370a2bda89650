from dataclasses import dataclass

from i3f.core.exceptions import InvalidRotationFormat
from i3f.iiif.numbers import format_decimal, parse_decimal


@dataclass(frozen=True)
class Rotation:
    """Clockwise rotation in degrees, optionally mirrored first (``!n``)."""

    angle: float
    mirror: bool = False

    def render(self) -> str:
        prefix = "!" if self.mirror else ""
        return f"{prefix}{format_decimal(self.angle)}"

    def __str__(self) -> str:
        return self.render()


def parse_rotation(token: str) -> Rotation:
    text = token.strip()
    mirror = text.startswith("!")
    if mirror:
        text = text[1:]
    # range is checked when the rotation is resolved, not here
    angle = parse_decimal(text, signed=True)
    if angle is None:
        raise InvalidRotationFormat(token)
    return Rotation(angle=angle, mirror=mirror)
