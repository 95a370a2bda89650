"""Pure geometry for image requests.

Nothing here touches pixels: region and size parameters are resolved
against plain dimensions so the arithmetic can be checked in isolation
from Pillow.
"""

import math
from dataclasses import dataclass
from typing import assert_never

from i3f.core.exceptions import InvalidRegionFormat, InvalidRotationFormat, InvalidSizeFormat
from i3f.iiif.numbers import round_half_away
from i3f.iiif.region import Region, RegionFull, RegionPct, RegionRect, RegionSquare
from i3f.iiif.rotation import Rotation
from i3f.iiif.size import Size, SizeConfined, SizeExact, SizeHeight, SizeMax, SizePct, SizeWidth


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    w: int
    h: int


@dataclass(frozen=True)
class SizeLimits:
    max_width: int | None = None
    max_height: int | None = None
    max_area: int | None = None

    def scale_limit(self, w: int, h: int) -> float | None:
        """Largest scale factor for a w x h image that stays within every limit."""
        factors = []
        if self.max_width is not None:
            factors.append(self.max_width / w)
        if self.max_height is not None:
            factors.append(self.max_height / h)
        if self.max_area is not None:
            factors.append(math.sqrt(self.max_area / (w * h)))
        return min(factors) if factors else None

    def allows(self, w: int, h: int) -> bool:
        if self.max_width is not None and w > self.max_width:
            return False
        if self.max_height is not None and h > self.max_height:
            return False
        if self.max_area is not None and w * h > self.max_area:
            return False
        return True


NO_LIMITS = SizeLimits()

# hard ceiling on any intermediate or output raster, Pillow's decompression bomb threshold
MAX_PIXELS = 89_478_485


def resolve_region(region: Region, src_w: int, src_h: int) -> Box:
    match region:
        case RegionFull():
            return Box(0, 0, src_w, src_h)
        case RegionSquare():
            side = min(src_w, src_h)
            return Box((src_w - side) // 2, (src_h - side) // 2, side, side)
        case RegionRect(x=x, y=y, w=w, h=h):
            if w == 0 or h == 0 or x >= src_w or y >= src_h:
                raise InvalidRegionFormat(region.render())
            return Box(x, y, min(w, src_w - x), min(h, src_h - y))
        case RegionPct():
            return _resolve_pct_region(region, src_w, src_h)
        case _:
            assert_never(region)


def _resolve_pct_region(region: RegionPct, src_w: int, src_h: int) -> Box:
    if region.w == 0 or region.h == 0 or region.x >= 100 or region.y >= 100:
        raise InvalidRegionFormat(region.render())
    pct_w = min(region.w, 100 - region.x)
    pct_h = min(region.h, 100 - region.y)

    x = round_half_away(src_w * region.x / 100)
    y = round_half_away(src_h * region.y / 100)
    w = min(round_half_away(src_w * pct_w / 100), src_w - x)
    h = min(round_half_away(src_h * pct_h / 100), src_h - y)
    if x >= src_w or y >= src_h or w <= 0 or h <= 0:
        raise InvalidRegionFormat(region.render())
    return Box(x, y, w, h)


def resolve_size(size: Size, crop_w: int, crop_h: int, limits: SizeLimits = NO_LIMITS) -> tuple[int, int]:
    match size:
        case SizeMax():
            return _resolve_max(size, crop_w, crop_h, limits)
        case SizeWidth(w=w, upscale=upscale):
            if w == 0 or (w > crop_w and not upscale):
                raise InvalidSizeFormat(size.render())
            target = (w, round_half_away(w * crop_h / crop_w))
        case SizeHeight(h=h, upscale=upscale):
            if h == 0 or (h > crop_h and not upscale):
                raise InvalidSizeFormat(size.render())
            target = (round_half_away(h * crop_w / crop_h), h)
        case SizePct(n=n, upscale=upscale):
            if n == 0 or (n > 100 and not upscale):
                raise InvalidSizeFormat(size.render())
            target = (round_half_away(crop_w * n / 100), round_half_away(crop_h * n / 100))
        case SizeExact(w=w, h=h, upscale=upscale):
            if w == 0 or h == 0 or ((w > crop_w or h > crop_h) and not upscale):
                raise InvalidSizeFormat(size.render())
            target = (w, h)
        case SizeConfined():
            target = _resolve_confined(size, crop_w, crop_h)
        case _:
            assert_never(size)

    if target[0] <= 0 or target[1] <= 0 or target[0] * target[1] > MAX_PIXELS:
        raise InvalidSizeFormat(size.render())
    if not limits.allows(*target):
        raise InvalidSizeFormat(size.render())
    return target


def _resolve_max(size: SizeMax, crop_w: int, crop_h: int, limits: SizeLimits) -> tuple[int, int]:
    scale = limits.scale_limit(crop_w, crop_h)
    if scale is None or (scale >= 1 and not size.upscale):
        return crop_w, crop_h
    # floor keeps the result inside the limits
    w = max(1, math.floor(crop_w * scale))
    h = max(1, math.floor(crop_h * scale))
    return w, h


def _resolve_confined(size: SizeConfined, crop_w: int, crop_h: int) -> tuple[int, int]:
    if size.w == 0 or size.h == 0:
        raise InvalidSizeFormat(size.render())
    bound_w, bound_h = size.w, size.h
    if not size.upscale:
        bound_w, bound_h = min(bound_w, crop_w), min(bound_h, crop_h)

    # the tighter axis is matched exactly, the other follows the aspect ratio
    if bound_w * crop_h <= bound_h * crop_w:
        return bound_w, min(bound_h, max(1, round_half_away(bound_w * crop_h / crop_w)))
    return min(bound_w, max(1, round_half_away(bound_h * crop_w / crop_h))), bound_h


def resolve_rotation(rotation: Rotation) -> tuple[bool, float]:
    if not 0 <= rotation.angle <= 360:
        raise InvalidRotationFormat(rotation.render())
    return rotation.mirror, rotation.angle


def is_right_angle(angle: float) -> bool:
    return angle % 90 == 0


def rotated_size(w: int, h: int, angle: float) -> tuple[int, int]:
    """Bounding box of a w x h image rotated by angle degrees about its centre."""
    radians = math.radians(angle)
    cos = abs(math.cos(radians))
    sin = abs(math.sin(radians))
    # round away float noise before ceil so 200.0000000001 stays 200
    new_w = math.ceil(round(w * cos + h * sin, 6))
    new_h = math.ceil(round(w * sin + h * cos, 6))
    return max(1, new_w), max(1, new_h)
