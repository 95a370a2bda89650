import math
import re
from decimal import Decimal

_UNSIGNED_INT_RE = re.compile(r"\A\d+\Z")
_DECIMAL_RE = re.compile(r"\A(?:\d+(?:\.\d*)?|\.\d+)\Z")
_SIGNED_DECIMAL_RE = re.compile(r"\A[+-]?(?:\d+(?:\.\d*)?|\.\d+)\Z")


def parse_unsigned_int(text: str) -> int | None:
    if not _UNSIGNED_INT_RE.match(text):
        return None
    return int(text)


def parse_decimal(text: str, signed: bool = False) -> float | None:
    pattern = _SIGNED_DECIMAL_RE if signed else _DECIMAL_RE
    if not pattern.match(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def format_decimal(value: float) -> str:
    # repr() is the shortest string that round-trips, so the rendering is exact
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


def round_half_away(value: float) -> int:
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)
