"""
Regex-based shift extraction from recognized text (the fallback tier).
"""

import datetime as dt
from typing import Any, List, Optional, Sequence, Union

from .logging import get_logger
from .models import RawCandidateEntry, SourceMethod, derive_service_type
from .parsers import (
    has_tips_pending, hours_from_time_range, is_base_tips_line, is_date_line,
    is_earnings_line, is_time_range_line, normalize_text, parse_base_tips,
    parse_earnings, parse_shift_date, split_time_range,
)

# A date line plus at most this many following lines make up one shift
WINDOW_LOOKAHEAD = 5

log = get_logger(__name__)


def parse_entry(lines: Sequence[str], start_index: int,
                today: Optional[dt.date] = None,
                lenient_dates: bool = False,
                logger: Any = None) -> Optional[RawCandidateEntry]:
    """
    Build one candidate from the window anchored on ``lines[start_index]``.

    The window runs over the next WINDOW_LOOKAHEAD lines and stops early at
    another date line. The first time range, the first bare dollar amount and
    the first base/tips line in the window are used. Returns None when the
    time range or the earnings are missing, or the date does not parse.
    """
    logger = logger or log
    date_line = lines[start_index]
    time_line = None
    earnings = None
    base_pay = None
    tips = None
    tips_pending = False

    for line in lines[start_index + 1:start_index + 1 + WINDOW_LOOKAHEAD]:
        if is_date_line(line, lenient=lenient_dates):
            break
        if time_line is None and is_time_range_line(line):
            time_line = line
        elif earnings is None and is_earnings_line(line):
            earnings = parse_earnings(line)
        elif base_pay is None and tips is None and is_base_tips_line(line):
            base_pay, tips = parse_base_tips(line)
        if has_tips_pending(line):
            tips_pending = True

    if time_line is None or earnings is None:
        logger.info("window_discarded", date_line=date_line, index=start_index,
                    time_line=time_line, earnings=str(earnings) if earnings is not None else None,
                    reason="missing time range or earnings")
        return None

    shift_date = parse_shift_date(date_line, today=today, lenient=lenient_dates)
    if shift_date is None:
        logger.warning("window_discarded", date_line=date_line, index=start_index,
                       reason="date did not parse")
        return None

    start_time, end_time = split_time_range(time_line)
    hours = hours_from_time_range(time_line, logger=logger)

    return RawCandidateEntry(
        source_method=SourceMethod.REGEX,
        date=shift_date.isoformat(),
        start_time=start_time,
        end_time=end_time,
        time_range=time_line,
        hours_worked=hours,
        total_earnings=earnings,
        base_pay=base_pay,
        tips=tips,
        service_type=derive_service_type(base_pay, tips, tips_pending),
        original_text=f"{date_line} {time_line}",
    )


def extract_entries(text: Union[str, Sequence[str]],
                    today: Optional[dt.date] = None,
                    lenient_dates: bool = False,
                    logger: Any = None) -> List[RawCandidateEntry]:
    """
    Scan recognized text for shifts.

    Every date line opens a new window, even one sitting inside the lookahead
    of the previous window.

    Args:
        text: Raw recognized text, or lines already passed through normalize_text
        today: Reference date for year inference (defaults to today)
        lenient_dates: Also accept date lines without the weekday or comma
        logger: Request-scoped logger

    Returns:
        Candidate entries tagged source_method=regex, in screen order
    """
    logger = logger or log
    lines = normalize_text(text) if isinstance(text, str) else list(text)
    logger.debug("regex_scan_started", line_count=len(lines))

    entries = []
    for i, line in enumerate(lines):
        if not is_date_line(line, lenient=lenient_dates):
            continue
        entry = parse_entry(lines, i, today=today, lenient_dates=lenient_dates, logger=logger)
        if entry is not None:
            entries.append(entry)

    logger.info("regex_scan_finished", line_count=len(lines), entry_count=len(entries))
    return entries
