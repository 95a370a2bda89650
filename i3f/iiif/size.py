"""Size parameter: the dimensions the extracted region is scaled to.

Every form except ``max`` exists in a plain and an upscaling (``^``)
variant; the flag is carried on each variant as ``upscale``.

    max     ^max      natural size / as large as the service allows
    w,      ^w,       exact width, height keeps the aspect ratio
    ,h      ^,h       exact height, width keeps the aspect ratio
    pct:n   ^pct:n    n percent of both dimensions
    w,h     ^w,h      exact dimensions, may distort
    !w,h    ^!w,h     largest size within w,h keeping the aspect ratio
"""

from dataclasses import dataclass

from i3f.core.exceptions import InvalidSizeFormat
from i3f.iiif.numbers import format_decimal, parse_decimal, parse_unsigned_int


def _caret(upscale: bool) -> str:
    return "^" if upscale else ""


@dataclass(frozen=True)
class SizeMax:
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)}max"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SizeWidth:
    w: int
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)}{self.w},"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SizeHeight:
    h: int
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)},{self.h}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SizePct:
    n: float
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)}pct:{format_decimal(self.n)}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SizeExact:
    w: int
    h: int
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)}{self.w},{self.h}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class SizeConfined:
    w: int
    h: int
    upscale: bool = False

    def render(self) -> str:
        return f"{_caret(self.upscale)}!{self.w},{self.h}"

    def __str__(self) -> str:
        return self.render()


Size = SizeMax | SizeWidth | SizeHeight | SizePct | SizeExact | SizeConfined


def parse_size(token: str) -> Size:
    text = token.strip().lower()
    if text == "max":
        return SizeMax()
    if text == "^max":
        return SizeMax(upscale=True)

    upscale = text.startswith("^")
    content = text[1:] if upscale else text

    size: Size | None
    if content.startswith("pct:"):
        size = _parse_pct(content[4:], upscale)
    elif content.startswith("!"):
        size = _parse_confined(content[1:], upscale)
    elif "," in content:
        size = _parse_dimensions(content, upscale)
    else:
        size = None

    if size is None:
        raise InvalidSizeFormat(token)
    return size


def _parse_pct(text: str, upscale: bool) -> SizePct | None:
    n = parse_decimal(text)
    if n is None:
        return None
    if n > 100 and not upscale:
        return None
    return SizePct(n=n, upscale=upscale)


def _parse_confined(text: str, upscale: bool) -> SizeConfined | None:
    parts = text.split(",")
    if len(parts) != 2:
        return None
    w = parse_unsigned_int(parts[0])
    h = parse_unsigned_int(parts[1])
    if w is None or h is None:
        return None
    return SizeConfined(w=w, h=h, upscale=upscale)


def _parse_dimensions(text: str, upscale: bool) -> Size | None:
    parts = text.split(",")
    if len(parts) != 2:
        return None
    w_text, h_text = parts
    # ",^h" puts the upscale marker after the comma
    if h_text.startswith("^"):
        upscale = True
        h_text = h_text[1:]
        if not h_text:
            return None

    w = parse_unsigned_int(w_text) if w_text else None
    h = parse_unsigned_int(h_text) if h_text else None
    if (w_text and w is None) or (h_text and h is None):
        return None

    if w is not None and h is not None:
        return SizeExact(w=w, h=h, upscale=upscale)
    if w is not None:
        return SizeWidth(w=w, upscale=upscale)
    if h is not None:
        return SizeHeight(h=h, upscale=upscale)
    return None
