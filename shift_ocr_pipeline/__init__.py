"""
Shift OCR Pipeline

Turns a screenshot of a gig-work earnings summary into validated,
de-duplicated work-shift records.
"""

__version__ = "1.0.0"
__author__ = "Shift OCR Pipeline Contributors"

from shift_ocr_pipeline.core.models import NormalizedEntry, RawCandidateEntry, ServiceType

__all__ = ["NormalizedEntry", "RawCandidateEntry", "ServiceType"]
