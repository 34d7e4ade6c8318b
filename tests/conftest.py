"""Pytest configuration and fixtures for the test suite."""

import datetime as dt
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pytest
from PIL import Image

from shift_ocr_pipeline.core.config import PipelineConfig
from shift_ocr_pipeline.core.database import WorkEntryStore
from shift_ocr_pipeline.core.errors import EngineFailure, OCRError
from shift_ocr_pipeline.core.models import RawCandidateEntry, ServiceType, SourceMethod

FLEX_TEXT = "Thu, Sep 18\n9:21 AM - 10:30 AM\n$30"

WHOLE_FOODS_TEXT = "Mon, Sep 15\n11:00 AM - 1:00 PM\n$99.00\nBase: $51.00 Tips: $48.00"


class StubVision:
    """Vision tier that returns canned entries or fails with a canned cause."""

    def __init__(self, entries: Optional[List[RawCandidateEntry]] = None,
                 cause: str = "HTTP 500 from openai: boom"):
        self.entries = entries
        self.cause = cause
        self.calls = 0

    def extract(self, image, today=None, logger=None):
        self.calls += 1
        if not self.entries:
            raise EngineFailure("vision", self.cause if self.entries is None else "model returned no entries")
        return list(self.entries)


class StubRecognizer:
    """Text recognition service that returns fixed text."""

    def __init__(self, text: Optional[str] = None, cause: str = "Tesseract OCR binary not found"):
        self.text = text
        self.cause = cause
        self.calls = 0

    def recognize(self, img_path, logger=None):
        self.calls += 1
        if self.text is None:
            raise OCRError(self.cause)
        return self.text


@pytest.fixture
def today() -> dt.date:
    return dt.date(2025, 9, 20)


@pytest.fixture
def png_image(tmp_path: Path) -> Path:
    """A tiny real PNG on disk."""
    path = tmp_path / "shift.png"
    Image.new("RGB", (16, 16), color=(255, 255, 255)).save(path, format="PNG")
    return path


@pytest.fixture
def store(tmp_path: Path) -> WorkEntryStore:
    return WorkEntryStore(tmp_path / "shifts.sqlite")


@pytest.fixture
def config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(api_key="test-key", database_path=tmp_path / "shifts.sqlite")


@pytest.fixture
def vision_entry() -> RawCandidateEntry:
    return RawCandidateEntry(
        source_method=SourceMethod.VISION,
        date="2025-09-18",
        start_time="9:21 AM",
        end_time="10:30 AM",
        total_earnings=Decimal("30.00"),
        service_type=ServiceType.LOGISTICS,
        original_text="2025-09-18 9:21 AM - 10:30 AM",
    )


CONFIG_ENV_VARS = (
    "LLM_PROVIDER", "LLM_MODEL", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_API_VERSION", "USE_VISION", "VISION_TIMEOUT_SECONDS",
    "VISION_CONNECT_TIMEOUT_SECONDS", "TESSERACT_CMD", "SHIFT_DB_PATH", "MAX_IMAGE_MB",
    "LENIENT_DATES", "TIMEZONE", "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every configuration variable so defaults apply."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
