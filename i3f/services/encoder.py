from collections.abc import Callable

import structlog
from PIL import Image

from i3f.config import settings
from i3f.core.exceptions import FeatureNotImplementedError
from i3f.iiif.format import FormatKind
from i3f.iiif.request import ProcessResult
from i3f.services import codec, pdf

logger = structlog.get_logger()


def _encode_jpg(img: Image.Image) -> bytes:
    return codec.encode(img, "JPEG", "RGB", quality=settings.jpeg_quality)


def _encode_png(img: Image.Image) -> bytes:
    return codec.encode(img, "PNG", "RGBA")


def _encode_gif(img: Image.Image) -> bytes:
    return codec.encode(img, "GIF", "RGBA")


def _encode_tif(img: Image.Image) -> bytes:
    return codec.encode(img, "TIFF", "RGBA")


def _encode_webp(img: Image.Image) -> bytes:
    return codec.encode(img, "WEBP", "RGBA")


def _encode_jp2(img: Image.Image) -> bytes:
    raise FeatureNotImplementedError("JPEG 2000 output is not implemented")


def _encode_pdf(img: Image.Image) -> bytes:
    jpeg_data = _encode_jpg(img)
    return pdf.build_image_pdf(jpeg_data, img.width, img.height)


ENCODERS: dict[FormatKind, Callable[[Image.Image], bytes]] = {
    FormatKind.JPG: _encode_jpg,
    FormatKind.TIF: _encode_tif,
    FormatKind.PNG: _encode_png,
    FormatKind.GIF: _encode_gif,
    FormatKind.JP2: _encode_jp2,
    FormatKind.PDF: _encode_pdf,
    FormatKind.WEBP: _encode_webp,
}


def encode(img: Image.Image, fmt: FormatKind) -> ProcessResult:
    data = ENCODERS[fmt](img)
    logger.debug("image_encoded", format=fmt.value, size=len(data))
    return ProcessResult(content_type=fmt.content_type, data=data)
