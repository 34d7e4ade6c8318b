"""
Data models for shift extraction.
"""

import datetime as dt
from dataclasses import dataclass, asdict, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class ServiceType(str, Enum):
    """Pay structure of a shift."""
    LOGISTICS = "logistics"      # flat total
    WHOLE_FOODS = "whole_foods"  # base + tips breakdown


class SourceMethod(str, Enum):
    """Extraction tier that produced an entry."""
    VISION = "vision"
    REGEX = "regex"


def derive_service_type(base_pay: Optional[Decimal], tips: Optional[Decimal],
                        tips_pending: bool = False) -> ServiceType:
    """A base + tips breakdown (or a "tips pending" cue) means whole_foods."""
    if tips_pending or (base_pay is not None and tips is not None):
        return ServiceType.WHOLE_FOODS
    return ServiceType.LOGISTICS


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


@dataclass
class RawCandidateEntry:
    """
    An extracted but not yet validated shift.

    The regex tier fills ``time_range`` (and ``hours_worked``); the vision tier
    fills ``start_time``/``end_time``. Both go through the same validator.
    """
    source_method: SourceMethod
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    time_range: Optional[str] = None
    hours_worked: Optional[Decimal] = None
    total_earnings: Optional[Decimal] = None
    base_pay: Optional[Decimal] = None
    tips: Optional[Decimal] = None
    service_type: Optional[ServiceType] = None
    original_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return _jsonable(asdict(self))


@dataclass
class NormalizedEntry:
    """A validated shift record, ready for the record store."""
    date: dt.date
    hours_worked: Decimal
    earnings: Decimal
    service_type: ServiceType
    base_pay: Optional[Decimal] = None
    tips: Optional[Decimal] = None
    original_text: str = ""
    source_method: Optional[SourceMethod] = None

    @property
    def is_valid(self) -> bool:
        return self.earnings > 0 and self.hours_worked > 0

    def to_dict(self) -> Dict[str, Any]:
        d = _jsonable(asdict(self))
        d["is_valid"] = self.is_valid
        return d


@dataclass
class StoredEntry:
    """A work entry as persisted in the record store."""
    id: int
    user_id: str
    date: dt.date
    hours_worked: Decimal
    earnings: Decimal
    service_type: ServiceType
    base_pay: Optional[Decimal] = None
    tips: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class SkippedEntry:
    """A candidate that was not persisted because it failed validation."""
    entry: RawCandidateEntry
    reason: str


@dataclass
class ExtractionResult:
    """Outcome of the two-tier extraction for one image."""
    method: SourceMethod
    entries: List[RawCandidateEntry]
    extracted_text: Optional[str] = None
    vision_cause: Optional[str] = None


@dataclass
class ImportSummary:
    """What one screenshot import did: the contract returned to callers."""
    method: SourceMethod
    parsed_entries: List[RawCandidateEntry] = field(default_factory=list)
    saved: List[StoredEntry] = field(default_factory=list)
    duplicates: List[NormalizedEntry] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)
    extracted_text: Optional[str] = None

    @property
    def saved_count(self) -> int:
        return len(self.saved)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def message(self) -> str:
        return f"{self.saved_count} work entries saved successfully"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape handed back to the caller."""
        return {
            "method": self.method.value,
            "saved_entries": self.saved_count,
            "duplicate_entries": self.duplicate_count,
            "skipped_entries": self.skipped_count,
            "parsed_entries": [e.to_dict() for e in self.parsed_entries],
            "entries": [e.to_dict() for e in self.saved],
            "skipped": [{"entry": s.entry.to_dict(), "reason": s.reason} for s in self.skipped],
            "extracted_text": self.extracted_text,
            "message": self.message,
        }
