from enum import Enum

from i3f.core.exceptions import InvalidFormat


class FormatKind(str, Enum):
    JPG = "jpg"
    TIF = "tif"
    PNG = "png"
    GIF = "gif"
    JP2 = "jp2"
    PDF = "pdf"
    WEBP = "webp"

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self]

    def render(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


CONTENT_TYPES: dict[FormatKind, str] = {
    FormatKind.JPG: "image/jpeg",
    FormatKind.TIF: "image/tiff",
    FormatKind.PNG: "image/png",
    FormatKind.GIF: "image/gif",
    FormatKind.JP2: "image/jp2",
    FormatKind.PDF: "application/pdf",
    FormatKind.WEBP: "image/webp",
}


def parse_format(token: str) -> FormatKind:
    try:
        return FormatKind(token.strip().lower())
    except ValueError:
        raise InvalidFormat(token) from None
