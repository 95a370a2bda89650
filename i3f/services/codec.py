from io import BytesIO
from typing import Any

import structlog
from PIL import Image, UnidentifiedImageError

from i3f.core.exceptions import DecodeError, InternalServerError

logger = structlog.get_logger()


def decode(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.error("image_decode_failed", size=len(data), error=str(e))
        raise DecodeError("Failed to decode source image") from e
    return img


def encode(img: Image.Image, fmt: str, mode: str, **options: Any) -> bytes:
    if img.mode != mode:
        img = img.convert(mode)
    buffer = BytesIO()
    try:
        img.save(buffer, format=fmt, **options)
    except (OSError, ValueError, KeyError) as e:
        logger.error("image_encode_failed", format=fmt, mode=mode, error=str(e))
        raise InternalServerError(f"Failed to encode image as {fmt}") from e
    return buffer.getvalue()
