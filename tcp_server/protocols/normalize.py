"""
Coordinate and timestamp normalization for watch protocol fields
"""
import math
import re
from datetime import datetime, timezone
from typing import Optional

SIX_DIGITS = re.compile(r'[0-9]{6}')
NEGATIVE_HEMISPHERES = ('S', 'W')


def parse_float(value: str) -> Optional[float]:
    """Parse a numeric field, None for empty, non-numeric or non-finite"""
    if isinstance(value, str) and '_' in value:
        return None  # float() would accept digit separators
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def signed_coord(magnitude: str, hemisphere: str) -> Optional[float]:
    """
    Signed decimal degrees from a magnitude and its N/S/E/W tag.
    The magnitude's own sign is ignored; S and W always come out negative.
    """
    value = parse_float(magnitude)
    if value is None:
        return None
    return -abs(value) if hemisphere in NEGATIVE_HEMISPHERES else abs(value)


def to_utc_datetime(date_digits: str, time_digits: str) -> Optional[datetime]:
    """
    Combine DDMMYY and HHMMSS into an aware UTC datetime (year 20YY).
    Returns None when either part is not six ASCII digits or the
    calendar date/time does not exist.
    """
    if not isinstance(date_digits, str) or not isinstance(time_digits, str):
        return None
    if not SIX_DIGITS.fullmatch(date_digits) or not SIX_DIGITS.fullmatch(time_digits):
        return None

    try:
        return datetime(
            2000 + int(date_digits[4:6]),
            int(date_digits[2:4]),
            int(date_digits[0:2]),
            int(time_digits[0:2]),
            int(time_digits[2:4]),
            int(time_digits[4:6]),
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None
