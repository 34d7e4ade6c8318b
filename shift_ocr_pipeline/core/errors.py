"""
Exception types raised by the shift extraction pipeline.
"""

from typing import Optional


class ShiftOCRError(Exception):
    """Base class for pipeline errors."""


class ImageValidationError(ShiftOCRError):
    """The uploaded image cannot be used at all (missing, empty, too large, not an image)."""


class EngineFailure(ShiftOCRError):
    """One extraction tier failed; the orchestrator may fall back to the next one."""

    def __init__(self, method: str, cause: str):
        super().__init__(f"{method} extraction failed: {cause}")
        self.method = method
        self.cause = cause


class OCRError(EngineFailure):
    """The text recognition service could not read the image."""

    def __init__(self, cause: str):
        super().__init__("regex", cause)


class ExtractionFailed(ShiftOCRError):
    """Both the vision tier and the regex tier failed."""

    def __init__(self, vision_cause: Optional[str], regex_cause: Optional[str]):
        super().__init__(
            "All extraction methods failed "
            f"(vision: {vision_cause or 'not attempted'}; regex: {regex_cause or 'not attempted'})"
        )
        self.vision_cause = vision_cause
        self.regex_cause = regex_cause


class EntryDefect(ShiftOCRError):
    """A single candidate entry is missing a required field."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason
