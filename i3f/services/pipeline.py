"""Derivative rendering: region, size, rotation and quality, in that order.

Only :func:`render_derivative` is public so the stage order cannot be
changed by callers. Each stage takes an image and returns a new one (or
the same object when the stage is an identity) and never keeps a
reference to its input.
"""

from typing import assert_never

import structlog
from PIL import Image

from i3f.core.exceptions import InvalidRotationFormat
from i3f.iiif.geometry import (
    MAX_PIXELS,
    NO_LIMITS,
    SizeLimits,
    is_right_angle,
    resolve_region,
    resolve_rotation,
    resolve_size,
    rotated_size,
)
from i3f.iiif.quality import Quality
from i3f.iiif.request import ImageRequest

logger = structlog.get_logger()

BITONAL_THRESHOLD = 170

_WORKING_MODES = ("L", "LA", "RGB", "RGBA")

_RIGHT_ANGLE_TRANSPOSE = {
    1: Image.Transpose.ROTATE_270,
    2: Image.Transpose.ROTATE_180,
    3: Image.Transpose.ROTATE_90,
}


def render_derivative(img: Image.Image, request: ImageRequest, limits: SizeLimits = NO_LIMITS) -> Image.Image:
    img = _normalize_mode(img)
    img = _apply_region(img, request)
    img = _apply_size(img, request, limits)
    img = _apply_rotation(img, request)
    img = _apply_quality(img, request)
    logger.debug("derivative_rendered", key=request.render(), width=img.width, height=img.height, mode=img.mode)
    return img


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in _WORKING_MODES:
        return img
    # resize falls back to nearest neighbour for bilevel and palette images
    if img.mode == "1":
        return img.convert("L")
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def _apply_region(img: Image.Image, request: ImageRequest) -> Image.Image:
    box = resolve_region(request.region, img.width, img.height)
    if (box.x, box.y, box.w, box.h) == (0, 0, img.width, img.height):
        return img
    return img.crop((box.x, box.y, box.x + box.w, box.y + box.h))


def _apply_size(img: Image.Image, request: ImageRequest, limits: SizeLimits) -> Image.Image:
    target = resolve_size(request.size, img.width, img.height, limits)
    if target == img.size:
        return img
    return img.resize(target, Image.Resampling.LANCZOS)


def _apply_rotation(img: Image.Image, request: ImageRequest) -> Image.Image:
    mirror, angle = resolve_rotation(request.rotation)
    if mirror:
        img = img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if is_right_angle(angle):
        turns = int(angle // 90) % 4
        if turns == 0:
            return img
        return img.transpose(_RIGHT_ANGLE_TRANSPOSE[turns])
    canvas_w, canvas_h = rotated_size(img.width, img.height, angle)
    if canvas_w * canvas_h > MAX_PIXELS:
        raise InvalidRotationFormat(request.rotation.render())
    return _rotate_free(img, angle, (canvas_w, canvas_h))


def _rotate_free(img: Image.Image, angle: float, canvas_size: tuple[int, int]) -> Image.Image:
    mode = "LA" if img.mode in ("L", "LA") else "RGBA"
    source = img.convert(mode)
    canvas_w, canvas_h = canvas_size
    canvas = Image.new(mode, (canvas_w, canvas_h))
    canvas.paste(source, ((canvas_w - source.width) // 2, (canvas_h - source.height) // 2))
    # Pillow rotates counter-clockwise
    return canvas.rotate(-angle, resample=Image.Resampling.BICUBIC, expand=False)


def _apply_quality(img: Image.Image, request: ImageRequest) -> Image.Image:
    match request.quality:
        case Quality.DEFAULT | Quality.COLOR:
            return img
        case Quality.GRAY:
            return img.convert("LA" if "A" in img.getbands() else "L")
        case Quality.BITONAL:
            gray = img.convert("L")
            return gray.point(lambda v: 255 if v > BITONAL_THRESHOLD else 0)
        case _:
            assert_never(request.quality)
