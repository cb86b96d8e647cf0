"""Numeric and keyword parsing of SCPI query replies."""

import math
from typing import Optional

from .errors import OutOfRangeError, ResponseOutOfRangeError, UnparsableResponseError
from .models import Gain


def to_float(text: Optional[str]) -> float:
    """Parse a numeric reply. "nan" and "inf" are not valid instrument values."""
    if text is None:
        raise UnparsableResponseError(text)
    try:
        value = float(text.strip())
    except ValueError:
        raise UnparsableResponseError(text) from None
    if not math.isfinite(value):
        raise UnparsableResponseError(text, "finite number")
    return value


def to_int(text: Optional[str]) -> int:
    """Parse an integer reply. Replies such as "1024.0" are accepted."""
    if text is None:
        raise UnparsableResponseError(text, "integer")
    value = text.strip()
    try:
        return int(value)
    except ValueError:
        pass
    number = to_float(value)
    if not number.is_integer():
        raise UnparsableResponseError(text, "integer")
    return int(number)


def parse_gain(text: Optional[str]) -> Gain:
    if text is None:
        raise UnparsableResponseError(text, "RF gain")
    try:
        return Gain[text.strip().upper()]
    except KeyError:
        raise UnparsableResponseError(text, "RF gain") from None


def split_fields(text: str, count: Optional[int] = None) -> list[str]:
    """Split a comma-delimited reply, optionally requiring at least ``count`` fields."""
    fields = [f.strip() for f in text.split(",")]
    if count is not None and len(fields) < count:
        raise UnparsableResponseError(text, f"{count} comma-separated fields")
    return fields


def check_range(name: str, value, low, high):
    """Raise ResponseOutOfRangeError for a reply outside [low, high]."""
    if value < low or value > high:
        raise ResponseOutOfRangeError(name, value, low, high)
    return value


def format_gain(gain) -> str:
    """Wire name of an RF gain level."""
    try:
        return Gain(gain).name
    except ValueError:
        raise OutOfRangeError("RF gain", gain, int(Gain.HIGH), int(Gain.VLOW)) from None


def check_flag(name: str, value):
    """Raise OutOfRangeError unless value is 0 or 1."""
    if value not in (0, 1):
        raise OutOfRangeError(name, value, 0, 1)
