"""
Parsers for reading shift data out of recognized screenshot text.

Everything here is pure: classifiers answer False instead of raising, and the
hours calculation falls back to a fixed 2.0 hours instead of rejecting a shift.
"""

import re
import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from .logging import get_logger
from .utils import (
    BASE_PAY_PATTERN, DATE_LINE_LENIENT_PATTERN, DATE_LINE_PATTERN, EARNINGS_LINE_PATTERN,
    MONTHS, TIME_OF_DAY_PATTERN, TIME_RANGE_PATTERN, TIPS_PATTERN, TIPS_PENDING_PATTERN,
    WEEKDAYS, quantize_money, to_decimal,
)

FALLBACK_HOURS = Decimal("2.0")
MINUTES_PER_DAY = 24 * 60

_DATE_LINE_RE = re.compile(DATE_LINE_PATTERN, re.IGNORECASE)
_DATE_LINE_LENIENT_RE = re.compile(DATE_LINE_LENIENT_PATTERN, re.IGNORECASE)
_WEEKDAY_ALT = "|".join(WEEKDAYS)
_DATE_TOKEN_RE = re.compile(rf"^({_WEEKDAY_ALT}),\s+([A-Za-z]{{3}})\s+(\d{{1,2}})$", re.IGNORECASE)
_DATE_TOKEN_LENIENT_RE = re.compile(
    rf"^(?:({_WEEKDAY_ALT}),?\s+)?([A-Za-z]{{3}})\s+(\d{{1,2}})$", re.IGNORECASE
)
_TIME_OF_DAY_RE = re.compile(TIME_OF_DAY_PATTERN)
_TIME_RANGE_RE = re.compile(TIME_RANGE_PATTERN, re.IGNORECASE)
_EARNINGS_LINE_RE = re.compile(EARNINGS_LINE_PATTERN)
_BASE_PAY_RE = re.compile(BASE_PAY_PATTERN)
_TIPS_RE = re.compile(TIPS_PATTERN)
_TIPS_PENDING_RE = re.compile(TIPS_PENDING_PATTERN, re.IGNORECASE)

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\n\r\t]")
_INLINE_SPACE_RE = re.compile(r"[ \t]+")
_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-"})

log = get_logger(__name__)


# --------------- Text normalizer ---------------

def normalize_text(text: Optional[str]) -> List[str]:
    """
    Clean raw recognized text into trimmed, non-empty lines.

    Dashes are folded to "-" before non-printable characters are dropped, so a
    time range read as "9:21 AM – 10:30 AM" keeps its separator.
    """
    if not text:
        return []
    text = text.translate(_DASHES)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = []
    for ln in text.split("\n"):
        ln = _INLINE_SPACE_RE.sub(" ", ln).strip()
        if ln:
            lines.append(ln)
    return lines


# --------------- Line classifiers ---------------

def is_date_line(line: Any, lenient: bool = False) -> bool:
    """'Thu, Sep 18' (or 'Sep 18' / 'Thu Sep 18' when lenient)."""
    if not isinstance(line, str):
        return False
    pattern = _DATE_LINE_LENIENT_RE if lenient else _DATE_LINE_RE
    return pattern.match(line.strip()) is not None


def is_time_range_line(line: Any) -> bool:
    """'9:21 AM - 10:30 AM', '9:21AM–10:30AM', '21:00 to 23:30'."""
    if not isinstance(line, str):
        return False
    return _TIME_RANGE_RE.match(line.strip()) is not None


def is_earnings_line(line: Any) -> bool:
    """A line that is exactly a dollar amount: '$30', '$53.50'."""
    if not isinstance(line, str):
        return False
    return _EARNINGS_LINE_RE.match(line.strip()) is not None


def is_base_tips_line(line: Any) -> bool:
    """A line carrying both 'Base: $x' and 'Tips: $y'."""
    if not isinstance(line, str):
        return False
    return _BASE_PAY_RE.search(line) is not None and _TIPS_RE.search(line) is not None


def has_tips_pending(line: Any) -> bool:
    if not isinstance(line, str):
        return False
    return _TIPS_PENDING_RE.search(line) is not None


# --------------- Amounts ---------------

def parse_earnings(line: str) -> Optional[Decimal]:
    """Read the amount from an earnings line."""
    m = _EARNINGS_LINE_RE.match(line.strip())
    if not m:
        return None
    return to_decimal(m.group(1))


def parse_base_tips(line: str) -> Tuple[Optional[Decimal], Optional[Decimal]]:
    """Return (base_pay, tips) from a 'Base: $51.00 Tips: $48.00' line."""
    base = _BASE_PAY_RE.search(line)
    tips = _TIPS_RE.search(line)
    return (
        to_decimal(base.group(1)) if base else None,
        to_decimal(tips.group(1)) if tips else None,
    )


# --------------- Dates ---------------

def parse_shift_date(line: str, today: Optional[dt.date] = None,
                     lenient: bool = False) -> Optional[dt.date]:
    """
    Convert a date line into a calendar date.

    The screenshot never shows a year, so the year of ``today`` is used. A
    January shift imported in December of the following year therefore lands
    in the wrong year; nothing here corrects for that.

    Returns None for an unknown month token or an impossible day.
    """
    if not isinstance(line, str):
        return None
    pattern = _DATE_TOKEN_LENIENT_RE if lenient else _DATE_TOKEN_RE
    m = pattern.match(line.strip())
    if not m:
        return None

    month = MONTHS.get(m.group(2).capitalize())
    if month is None:
        return None

    year = (today or dt.date.today()).year
    try:
        return dt.date(year, month, int(m.group(3)))
    except ValueError:
        return None


def parse_iso_date(value: Any) -> Optional[dt.date]:
    """Parse a 'YYYY-MM-DD' string as returned by the vision model."""
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return dt.date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


# --------------- Times ---------------

def parse_time_of_day(value: Any) -> Optional[int]:
    """
    Convert 'H:MM AM/PM', 'H:MMPM' or 24-hour 'HH:MM' to minutes since midnight.

    12 AM is midnight, 12 PM is noon. Out-of-range hours or minutes give None.
    """
    if not isinstance(value, str):
        return None
    m = _TIME_OF_DAY_RE.fullmatch(value.strip())
    if not m:
        return None

    hour, minute, meridiem = int(m.group(1)), int(m.group(2)), m.group(3)
    if minute > 59:
        return None

    if meridiem:
        if hour < 1 or hour > 12:
            return None
        meridiem = meridiem.upper()
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
    elif hour > 23:
        return None

    return hour * 60 + minute


def split_time_range(line: Any) -> Optional[Tuple[str, str]]:
    """Split a time-range line into its start and end strings."""
    if not isinstance(line, str):
        return None
    m = _TIME_RANGE_RE.match(line.strip())
    if not m:
        return None
    return m.group(1).strip(), m.group(2).strip()


def calculate_hours(start: Any, end: Any, logger: Any = None) -> Decimal:
    """
    Hours between two times of day, rounded to 2 places.

    An end earlier than the start is an overnight shift and gets one day added.
    Unparseable times or a zero-length shift give FALLBACK_HOURS.
    """
    logger = logger or log
    start_minutes = parse_time_of_day(start)
    end_minutes = parse_time_of_day(end)
    if start_minutes is None or end_minutes is None:
        logger.warning("time_parse_fallback", start=start, end=end, hours=str(FALLBACK_HOURS))
        return FALLBACK_HOURS

    if end_minutes < start_minutes:
        end_minutes += MINUTES_PER_DAY

    duration = end_minutes - start_minutes
    if duration <= 0:
        logger.warning("zero_duration_fallback", start=start, end=end, hours=str(FALLBACK_HOURS))
        return FALLBACK_HOURS

    return quantize_money(Decimal(duration) / Decimal(60))


def hours_from_time_range(line: Any, logger: Any = None) -> Decimal:
    """Hours for a whole '9:21 AM - 10:30 AM' line."""
    parts = split_time_range(line)
    if parts is None:
        (logger or log).warning("time_range_unmatched", time_range=line, hours=str(FALLBACK_HOURS))
        return FALLBACK_HOURS
    return calculate_hours(parts[0], parts[1], logger=logger)
