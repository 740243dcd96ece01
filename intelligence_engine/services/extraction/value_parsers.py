"""Value parsers for free-text amounts, percentages and dates.

Every parser returns None when the text cannot be interpreted; callers keep
the raw string in that case. Nothing in this module raises on bad input.
"""

import math
import re
from datetime import date, datetime
from typing import Optional, Union

from intelligence_engine.utils.logging import get_logger

LOGGER = get_logger(__name__)

Number = Union[int, float]

# Leading numeric prefix, read the way a lenient number parser does
# ("12.5abc" -> 12.5, "abc" -> no match)
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_CURRENCY_NOISE = re.compile(r"[£$€,\s]")

# Magnitude suffixes, checked in this order: million, thousand, billion
_MILLION = re.compile(r"m(illion)?")
_THOUSAND = re.compile(r"k|thousand")
_BILLION = re.compile(r"bn|b(illion)?")

_UK_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_MONTH_YEAR = re.compile(r"([A-Za-z]+)\s+(\d{4})")
_ORDINAL_SUFFIX = re.compile(r"(?<=\d)(st|nd|rd|th)\b", re.IGNORECASE)

# Unambiguous layouts only. Slash dates are left to the day-first rule below.
GENERIC_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%d %B %Y",
    "%d %b %Y",
    "%d %B, %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%A, %d %B %Y",
    "%A %d %B %Y",
)

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}


def parse_leading_float(text: str) -> Optional[float]:
    """Read the numeric prefix of a string, ignoring anything after it."""
    if not text:
        return None
    match = _LEADING_FLOAT.match(text.lstrip())
    if not match:
        return None
    number = float(match.group(0))
    # "1e400" overflows to inf
    if not math.isfinite(number):
        return None
    return number


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


def as_number(value: float) -> Number:
    """Collapse integral floats to int so stored values read 65, not 65.0."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_currency_value(value: str) -> Optional[int]:
    """Parse a currency string into whole units.

    Examples:
        "£12.5m" -> 12500000
        "£2,500,000" -> 2500000
        "$750k" -> 750000
        "€1.2bn" -> 1200000000
    """
    if not value or not isinstance(value, str):
        return None

    cleaned = _CURRENCY_NOISE.sub("", value).lower()

    multiplier = 1
    if "m" in cleaned or "million" in cleaned:
        multiplier = 1_000_000
        cleaned = _MILLION.sub("", cleaned)
    elif "k" in cleaned or "thousand" in cleaned:
        multiplier = 1_000
        cleaned = _THOUSAND.sub("", cleaned)
    elif "bn" in cleaned or "b" in cleaned or "billion" in cleaned:
        multiplier = 1_000_000_000
        cleaned = _BILLION.sub("", cleaned)

    number = parse_leading_float(cleaned)
    if number is None:
        return None

    scaled = number * multiplier
    if not math.isfinite(scaled):
        return None

    return round_half_up(scaled)


def parse_percentage_value(value: str) -> Optional[Number]:
    """Parse a percentage onto the 0-100 scale.

    Bare fractions are treated as ratios ("0.2" -> 20); anything else is
    returned as written ("65%" -> 65, "120" -> 120).
    """
    if not value or not isinstance(value, str):
        return None

    cleaned = re.sub(r"[%\s]", "", value)
    number = parse_leading_float(cleaned)
    if number is None:
        return None

    if 0 < number < 1:
        return round_half_up(number * 100)

    return as_number(number)


def _parse_generic_date(value: str) -> Optional[date]:
    candidate = _ORDINAL_SUFFIX.sub("", value.strip())
    try:
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        pass

    for date_format in GENERIC_DATE_FORMATS:
        try:
            return datetime.strptime(candidate, date_format).date()
        except ValueError:
            continue
    return None


def parse_date_value(value: str) -> Optional[str]:
    """Parse a date string into ISO YYYY-MM-DD.

    Tries unambiguous layouts first, then DD/MM/YYYY (always day first),
    then "<Month> <Year>" which resolves to the first of the month.
    """
    if not value or not isinstance(value, str):
        return None

    parsed = _parse_generic_date(value)
    if parsed is not None:
        return parsed.isoformat()

    uk_match = _UK_DATE.search(value)
    if uk_match:
        day, month, year = (int(part) for part in uk_match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            LOGGER.debug(f"Rejected out-of-range day-first date: {value!r}")

    month_year = _MONTH_YEAR.search(value)
    if month_year:
        month = MONTHS.get(month_year.group(1).lower())
        if month is not None:
            return f"{month_year.group(2)}-{month:02d}-01"

    return None
