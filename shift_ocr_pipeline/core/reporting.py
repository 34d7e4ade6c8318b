"""
Report output for shift imports.
"""

import csv
from pathlib import Path
from typing import List

from .models import ImportSummary
from .utils import hours_fmt, money_fmt

CSV_FIELDS = ["date", "start_time", "end_time", "time_range", "hours_worked", "total_earnings",
              "base_pay", "tips", "service_type", "source_method", "original_text"]


def write_csv(summary: ImportSummary, out_csv: Path):
    """Write every parsed entry of an import to CSV."""
    with out_csv.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        w.writeheader()
        for entry in summary.parsed_entries:
            row = entry.to_dict()
            w.writerow({k: row.get(k) for k in CSV_FIELDS})


def summary_lines(summary: ImportSummary) -> List[str]:
    """Human-readable lines describing an import."""
    lines = [
        f"Method: {summary.method.value}",
        f"Saved: {summary.saved_count}  Duplicates: {summary.duplicate_count}  "
        f"Skipped: {summary.skipped_count}",
    ]
    for entry in summary.saved:
        extra = ""
        if entry.base_pay is not None and entry.tips is not None:
            extra = f" (base {money_fmt(entry.base_pay)}, tips {money_fmt(entry.tips)})"
        lines.append(f"  + {entry.date.isoformat()} | {hours_fmt(entry.hours_worked)} | "
                     f"{money_fmt(entry.earnings)} | {entry.service_type.value}{extra}")
    for entry in summary.duplicates:
        lines.append(f"  = {entry.date.isoformat()} | {hours_fmt(entry.hours_worked)} | "
                     f"{money_fmt(entry.earnings)} | already imported")
    for skipped in summary.skipped:
        lines.append(f"  - {skipped.entry.original_text or '(no text)'} | {skipped.reason}")
    lines.append(summary.message)
    return lines
