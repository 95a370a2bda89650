import re
from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit

import structlog

from i3f.core.exceptions import InvalidIdentifier, InvalidIIIFUrl
from i3f.iiif.format import FormatKind, parse_format
from i3f.iiif.quality import Quality, parse_quality
from i3f.iiif.region import Region, parse_region
from i3f.iiif.rotation import Rotation, parse_rotation
from i3f.iiif.size import Size, parse_size

logger = structlog.get_logger()

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class ImageRequest:
    identifier: str
    region: Region
    size: Size
    rotation: Rotation
    quality: Quality
    format: FormatKind

    def render(self) -> str:
        """Canonical ``identifier/region/size/rotation/quality.format`` string, used as the cache key."""
        return "/".join(
            (
                quote(self.identifier, safe=""),
                self.region.render(),
                self.size.render(),
                self.rotation.render(),
                f"{self.quality.render()}.{self.format.render()}",
            )
        )

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class ProcessResult:
    content_type: str
    data: bytes


def parse_image_request(url_or_path: str) -> ImageRequest:
    segments = _request_path(url_or_path).split("/")
    if segments and segments[0] == "":
        segments = segments[1:]
    if len(segments) < 5:
        raise InvalidIIIFUrl("URL does not have enough segments")
    raw_identifier, *params = segments[-5:]
    # clients may escape reserved characters such as ^ and ! in parameters
    raw_region, raw_size, raw_rotation, raw_quality_format = (unquote(p) for p in params)

    identifier = _decode_identifier(raw_identifier)
    region = parse_region(raw_region)
    size = parse_size(raw_size)
    rotation = parse_rotation(raw_rotation)
    quality_text, format_text = _split_quality_format(raw_quality_format)
    request = ImageRequest(
        identifier=identifier,
        region=region,
        size=size,
        rotation=rotation,
        quality=parse_quality(quality_text),
        format=parse_format(format_text),
    )
    logger.debug("image_request_parsed", key=request.render())
    return request


def _request_path(url_or_path: str) -> str:
    # identifiers such as "urn:x" would be read as a scheme by urlsplit
    if "://" in url_or_path:
        return urlsplit(url_or_path).path
    return url_or_path.split("#", 1)[0].split("?", 1)[0]


def _decode_identifier(raw: str) -> str:
    if _BAD_ESCAPE_RE.search(raw):
        raise InvalidIdentifier(raw)
    try:
        identifier = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        raise InvalidIdentifier(raw) from None
    if not identifier:
        raise InvalidIIIFUrl("Identifier cannot be empty")
    return identifier


def _split_quality_format(segment: str) -> tuple[str, str]:
    parts = segment.split(".")
    if len(parts) != 2:
        raise InvalidIIIFUrl(f"Invalid quality.format segment: {segment}")
    return parts[0], parts[1]
