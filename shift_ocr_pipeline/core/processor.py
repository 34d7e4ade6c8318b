"""
Main shift import orchestration.
"""

import datetime as dt
import uuid
from pathlib import Path
from typing import Any, Optional

from .config import PipelineConfig
from .database import find_duplicate
from .errors import EngineFailure, ExtractionFailed, ImageValidationError
from .extractor import extract_entries
from .llm import VisionExtractor
from .logging import get_logger
from .models import ExtractionResult, ImportSummary, SourceMethod
from .ocr import ImageInfo, TesseractRecognizer, validate_image
from .validation import validate_entries

log = get_logger(__name__)


class ExtractionOrchestrator:
    """
    Two-tier extraction: the vision model first, then Tesseract + regex.

    Each tier runs at most once. Results are never merged across tiers.
    """

    def __init__(self, vision: Optional[VisionExtractor], recognizer,
                 lenient_dates: bool = False):
        """
        Args:
            vision: Vision tier, or None to go straight to the regex tier
            recognizer: Text recognition service with a recognize(path) method
            lenient_dates: Accept date lines without weekday/comma in the regex tier
        """
        self.vision = vision
        self.recognizer = recognizer
        self.lenient_dates = lenient_dates

    def _try_vision(self, image: ImageInfo, today: dt.date, logger: Any):
        if self.vision is None:
            return None, "vision extraction disabled"
        try:
            return self.vision.extract(image, today=today, logger=logger), None
        except EngineFailure as e:
            logger.warning("extraction_tier_failed", method="vision", cause=e.cause, next="regex")
            return None, e.cause
        except Exception as e:
            cause = f"{type(e).__name__}: {e}"
            logger.warning("extraction_tier_failed", method="vision", cause=cause, next="regex",
                           exc_info=True)
            return None, cause

    def _try_regex(self, image: ImageInfo, today: dt.date, logger: Any):
        try:
            text = self.recognizer.recognize(image.path, logger=logger)
            entries = extract_entries(text, today=today, lenient_dates=self.lenient_dates,
                                      logger=logger)
        except EngineFailure as e:
            return None, None, e.cause
        except Exception as e:
            return None, None, f"{type(e).__name__}: {e}"
        if not entries:
            return None, text, "no shifts found in recognized text"
        return entries, text, None

    def run(self, image: ImageInfo, today: Optional[dt.date] = None,
            logger: Any = None) -> ExtractionResult:
        """
        Extract candidate entries from a validated image.

        Raises:
            ExtractionFailed: both tiers failed; carries both causes
        """
        logger = logger or log
        today = today or dt.date.today()

        entries, vision_cause = self._try_vision(image, today, logger)
        if entries:
            return ExtractionResult(method=SourceMethod.VISION, entries=entries)

        entries, text, regex_cause = self._try_regex(image, today, logger)
        if entries:
            return ExtractionResult(method=SourceMethod.REGEX, entries=entries,
                                    extracted_text=text, vision_cause=vision_cause)

        logger.error("extraction_failed", vision_cause=vision_cause, regex_cause=regex_cause)
        raise ExtractionFailed(vision_cause, regex_cause)


class ShiftProcessor:
    """Runs one screenshot through extraction, validation, duplicate checks and storage."""

    def __init__(self, config: PipelineConfig, store,
                 vision: Optional[VisionExtractor] = None,
                 recognizer=None,
                 orchestrator: Optional[ExtractionOrchestrator] = None):
        """
        Initialize shift processor.

        Args:
            config: Pipeline configuration
            store: Record store with create(user_id, entry) and find(user_id, ...)
            vision: Vision tier (built from config when omitted and enabled)
            recognizer: Text recognition service (Tesseract when omitted)
            orchestrator: Pre-built orchestrator; overrides vision/recognizer
        """
        self.config = config
        self.store = store
        if orchestrator is None:
            if vision is None and config.use_vision:
                vision = VisionExtractor(config)
            if recognizer is None:
                recognizer = TesseractRecognizer(config.tesseract_cmd)
            orchestrator = ExtractionOrchestrator(vision, recognizer,
                                                  lenient_dates=config.lenient_dates)
        self.orchestrator = orchestrator

    def process_screenshot(self, image_path: Path, user_id: str,
                           today: Optional[dt.date] = None) -> ImportSummary:
        """
        Import the shifts shown on one screenshot for ``user_id``.

        Returns:
            ImportSummary with saved, duplicate and skipped entries and the method used

        Raises:
            ImageValidationError: the file is not a usable image (no fallback is tried)
            ExtractionFailed: neither tier found any shifts
        """
        image_path = Path(image_path)
        logger = get_logger(__name__, request_id=uuid.uuid4().hex[:12],
                            user_id=user_id, image=image_path.name)
        today = today or self.config.today()

        try:
            image = validate_image(image_path, max_bytes=self.config.max_image_bytes)
        except ImageValidationError as e:
            logger.warning("image_rejected", reason=str(e))
            raise
        logger.info("image_accepted", format=image.format, size_bytes=image.size_bytes)

        result = self.orchestrator.run(image, today=today, logger=logger)
        valid, skipped = validate_entries(result.entries, today=today, logger=logger)

        summary = ImportSummary(
            method=result.method,
            parsed_entries=result.entries,
            skipped=skipped,
            extracted_text=result.extracted_text,
        )

        for entry in valid:
            existing = find_duplicate(self.store, user_id, entry, logger=logger)
            if existing is not None:
                logger.info("entry_duplicate", date=entry.date.isoformat(),
                            earnings=str(entry.earnings), existing_id=existing.id)
                summary.duplicates.append(entry)
                continue
            stored = self.store.create(user_id, entry)
            logger.info("entry_saved", entry_id=stored.id, date=entry.date.isoformat(),
                        earnings=str(entry.earnings), hours_worked=str(entry.hours_worked))
            summary.saved.append(stored)

        logger.info("import_finished", method=summary.method.value,
                    saved=summary.saved_count, duplicates=summary.duplicate_count,
                    skipped=summary.skipped_count)
        return summary
