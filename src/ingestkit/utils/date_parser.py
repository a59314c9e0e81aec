"""Date parsing utilities."""

import re
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from dateutil import tz as dateutil_tz

# Ordered: the first format that parses wins.
DATE_FORMATS = (
    "%Y-%m-%d",  # ISO 8601
    "%d/%m/%Y",  # DD/MM/YYYY
    "%m/%d/%Y",  # MM/DD/YYYY
    "%d-%m-%Y",  # DD-MM-YYYY
    "%m-%d-%Y",  # MM-DD-YYYY
    "%Y/%m/%d",  # YYYY/MM/DD
    "%d.%m.%Y",  # DD.MM.YYYY
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y %H:%M",
)

# Human-readable pattern tokens, as stored in mappings and dialects.
_TOKENS = (
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
)

_FIELD_SPLIT = re.compile(r"[/.\-\s]")


def to_strptime(date_format: str) -> str:
    """Convert a ``DD/MM/YYYY`` style pattern to a strptime format.

    Formats already containing ``%`` directives are returned unchanged.
    """
    if not date_format or "%" in date_format:
        return date_format
    result = date_format
    for token, directive in _TOKENS:
        result = result.replace(token, directive)
    return result


def resolve_timezone(name: str) -> Optional[tzinfo]:
    """Return a tzinfo for ``name`` or None when empty or unknown."""
    if not name:
        return None
    return dateutil_tz.gettz(name)


def parse_date(date_str: str, date_format: str = "", tz: Optional[tzinfo] = None) -> datetime:
    """Parse a date string into a datetime.

    The configured ``date_format`` is tried first, then ``DATE_FORMATS`` in
    order.

    Args:
        date_str: Date string
        date_format: Optional preferred format (``DD/MM/YYYY`` or strptime)
        tz: Optional timezone attached to naive results

    Returns:
        Parsed datetime

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip()
    if not date_str:
        raise ValueError("empty date")

    formats: list[str] = []
    preferred = to_strptime(date_format)
    if preferred:
        formats.append(preferred)
    formats.extend(f for f in DATE_FORMATS if f != preferred)

    for fmt in formats:
        try:
            parsed = datetime.strptime(date_str, fmt)
        except ValueError:
            continue
        if tz is not None and parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed

    raise ValueError(f"unrecognized format: {date_str}")


def detect_date_format(samples: Iterable[str]) -> str:
    """Infer a date pattern token from sample values.

    Returns "" when there is no usable sample.
    """
    separator = ""
    day_first = False
    month_first = False
    year_first = False
    seen = False

    for sample in samples:
        sample = sample.strip().split(" ")[0].split("T")[0]
        parts = [p for p in _FIELD_SPLIT.split(sample) if p]
        if len(parts) < 3 or not all(p.isdigit() for p in parts[:3]):
            continue
        seen = True
        if not separator:
            separator = next((c for c in sample if not c.isdigit()), "/")
        first, second = int(parts[0]), int(parts[1])
        if len(parts[0]) == 4:
            year_first = True
        elif first > 12:
            day_first = True
        elif second > 12:
            month_first = True

    if not seen:
        return ""
    if year_first:
        return separator.join(("YYYY", "MM", "DD"))
    if month_first and not day_first:
        return separator.join(("MM", "DD", "YYYY"))
    return separator.join(("DD", "MM", "YYYY"))
