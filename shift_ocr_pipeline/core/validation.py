"""
Validation and normalization of candidate shift entries.
"""

import datetime as dt
from typing import Any, List, Optional, Tuple

from .errors import EntryDefect
from .logging import get_logger
from .models import NormalizedEntry, RawCandidateEntry, SkippedEntry, derive_service_type
from .parsers import calculate_hours, hours_from_time_range, parse_iso_date, parse_shift_date

log = get_logger(__name__)


def _resolve_date(raw: RawCandidateEntry, today: Optional[dt.date]) -> dt.date:
    if not raw.date:
        raise EntryDefect("date", "missing")
    parsed = parse_iso_date(raw.date) or parse_shift_date(raw.date, today=today, lenient=True)
    if parsed is None:
        raise EntryDefect("date", f"unparseable value {raw.date!r}")
    return parsed


def _resolve_hours(raw: RawCandidateEntry, logger: Any):
    if raw.hours_worked is not None:
        return raw.hours_worked
    if raw.start_time and raw.end_time:
        return calculate_hours(raw.start_time, raw.end_time, logger=logger)
    if raw.time_range:
        return hours_from_time_range(raw.time_range, logger=logger)
    raise EntryDefect("hours_worked", "no hours and no start/end times")


def validate_entry(raw: RawCandidateEntry, today: Optional[dt.date] = None,
                   logger: Any = None) -> NormalizedEntry:
    """
    Turn a candidate into a NormalizedEntry.

    Hours come from the candidate when already computed, otherwise from its
    start/end times (or its single time-range string). The result may still be
    invalid (is_valid False) when earnings or hours are not positive.

    Raises:
        EntryDefect: date, earnings, or any source of hours is missing
    """
    logger = logger or log
    shift_date = _resolve_date(raw, today)
    if raw.total_earnings is None:
        raise EntryDefect("earnings", "missing")
    hours = _resolve_hours(raw, logger)

    return NormalizedEntry(
        date=shift_date,
        hours_worked=hours,
        earnings=raw.total_earnings,
        base_pay=raw.base_pay,
        tips=raw.tips,
        service_type=raw.service_type or derive_service_type(raw.base_pay, raw.tips),
        original_text=raw.original_text,
        source_method=raw.source_method,
    )


def validate_entries(raws: List[RawCandidateEntry], today: Optional[dt.date] = None,
                     logger: Any = None) -> Tuple[List[NormalizedEntry], List[SkippedEntry]]:
    """
    Validate a batch. One bad candidate never aborts the rest.

    Returns:
        Tuple of (valid entries, skipped entries with the reason each was skipped)
    """
    logger = logger or log
    valid = []
    skipped = []
    for raw in raws:
        try:
            entry = validate_entry(raw, today=today, logger=logger)
        except EntryDefect as e:
            logger.info("entry_skipped", original_text=raw.original_text, reason=str(e))
            skipped.append(SkippedEntry(entry=raw, reason=str(e)))
            continue

        if not entry.is_valid:
            reason = "earnings and hours_worked must be positive"
            logger.info("entry_skipped", original_text=raw.original_text, reason=reason,
                        earnings=str(entry.earnings), hours_worked=str(entry.hours_worked))
            skipped.append(SkippedEntry(entry=raw, reason=reason))
            continue

        valid.append(entry)
    return valid, skipped
