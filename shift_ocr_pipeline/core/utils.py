"""
Utility functions and constants for shift screenshot processing.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union


# Pillow format name -> MIME type sent to the vision model
IMAGE_MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}

MAX_IMAGE_BYTES = 20 * 1024 * 1024

# Pattern constants for parsing
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4,
    "May": 5, "Jun": 6, "Jul": 7, "Aug": 8,
    "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

_WEEKDAY_ALT = "|".join(WEEKDAYS)
_MONTH_ALT = "|".join(MONTHS)

# "Thu, Sep 18"
DATE_LINE_PATTERN = rf"^({_WEEKDAY_ALT}),\s+({_MONTH_ALT})\s+(\d{{1,2}})$"
# "Thu Sep 18", "Sep 18"
DATE_LINE_LENIENT_PATTERN = rf"^(?:({_WEEKDAY_ALT}),?\s+)?({_MONTH_ALT})\s+(\d{{1,2}})$"

TIME_OF_DAY_PATTERN = r"(\d{1,2}):(\d{2})\s*([AaPp][Mm])?"
TIME_RANGE_PATTERN = (
    r"^(\d{1,2}:\d{2}(?:\s*[AaPp][Mm])?)"
    r"\s*(?:-|–|—|to)\s*"
    r"(\d{1,2}:\d{2}(?:\s*[AaPp][Mm])?)$"
)

EARNINGS_LINE_PATTERN = r"^\$(\d+(?:\.\d{2})?)$"
BASE_PAY_PATTERN = r"Base:\s*\$([0-9]+(?:\.[0-9]{2})?)"
TIPS_PATTERN = r"Tips:\s*\$([0-9]+(?:\.[0-9]{2})?)"
TIPS_PENDING_PATTERN = r"\btips?\s+pending\b"

CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a decimal to 2 places, half away from zero."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """
    Coerce a model or OCR value into a 2-place Decimal.

    Strings may carry a currency symbol or thousands separators ("$1,234.50").
    Anything that does not read as a finite number representable to the cent
    (NaN, Infinity, 1e30) gives None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            d = value
        elif isinstance(value, (int, float)):
            d = Decimal(str(value))
        elif isinstance(value, str):
            s = re.sub(r"[^0-9.\-]", "", value.replace(",", ""))
            if not s:
                return None
            d = Decimal(s)
        else:
            return None
        if not d.is_finite():
            return None
        return quantize_money(d)
    except InvalidOperation:
        return None


def money_fmt(v: Optional[Decimal]) -> str:
    """Format amount as currency."""
    return f"${v:,.2f}" if v is not None else ""


def hours_fmt(v: Optional[Decimal]) -> str:
    """Format a duration in hours."""
    return f"{v:.2f}h" if v is not None else ""
