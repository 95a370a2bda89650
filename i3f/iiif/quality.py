from enum import Enum

from i3f.core.exceptions import InvalidQualityFormat


class Quality(str, Enum):
    DEFAULT = "default"
    COLOR = "color"
    GRAY = "gray"
    BITONAL = "bitonal"

    def render(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


def parse_quality(token: str) -> Quality:
    try:
        return Quality(token.strip().lower())
    except ValueError:
        raise InvalidQualityFormat(token) from None
