"""
Image checks and Tesseract text recognition for shift screenshots.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .errors import ImageValidationError, OCRError
from .logging import get_logger
from .utils import IMAGE_MIME_TYPES, MAX_IMAGE_BYTES

log = get_logger(__name__)


def _lazy_import_pil():
    """Lazy import Pillow; image validation needs nothing else."""
    global PIL_Image
    import importlib
    PIL_Image = importlib.import_module("PIL.Image")


def _lazy_import_ocr_deps():
    """Lazy import heavy OCR dependencies."""
    global pytesseract
    import importlib
    pytesseract = importlib.import_module("pytesseract")
    _lazy_import_pil()


# Initialize on first use
pytesseract = None
PIL_Image = None


@dataclass
class ImageInfo:
    """An uploaded image that passed validation."""
    path: Path
    size_bytes: int
    format: str
    mime_type: str
    width: int
    height: int


def validate_image(path: Path, max_bytes: int = MAX_IMAGE_BYTES) -> ImageInfo:
    """
    Make sure ``path`` is a readable image no larger than ``max_bytes``.

    Raises:
        ImageValidationError: missing, empty, oversized, or not a supported image
    """
    if PIL_Image is None:
        _lazy_import_pil()

    path = Path(path)
    if not path.is_file():
        raise ImageValidationError(f"Image file not found: {path}")

    size = path.stat().st_size
    if size == 0:
        raise ImageValidationError(f"Image file is empty: {path.name}")
    if size > max_bytes:
        raise ImageValidationError(
            f"Image file is too large: {size} bytes (limit {max_bytes} bytes)"
        )

    try:
        with PIL_Image.open(path) as img:
            img.verify()
            fmt = (img.format or "").upper()
            width, height = img.size
    except Exception as e:
        raise ImageValidationError(f"File is not a readable image: {path.name} ({e})") from e

    mime_type = IMAGE_MIME_TYPES.get(fmt)
    if mime_type is None:
        raise ImageValidationError(f"Unsupported image format: {fmt or 'unknown'}")

    return ImageInfo(path=path, size_bytes=size, format=fmt, mime_type=mime_type,
                     width=width, height=height)


def ocr_image_to_text(img_path: Path) -> str:
    """OCR an image file to text."""
    if pytesseract is None or PIL_Image is None:
        _lazy_import_ocr_deps()

    with PIL_Image.open(img_path) as img:
        # Improve OCR: grayscale
        if img.mode != "L":
            img = img.convert("L")
        return pytesseract.image_to_string(img)


class TesseractRecognizer:
    """Text recognition service backed by the tesseract binary."""

    def __init__(self, tesseract_cmd: Optional[str] = None, logger: Any = None):
        self.tesseract_cmd = tesseract_cmd
        self.logger = logger or log

    def recognize(self, img_path: Path, logger: Any = None) -> str:
        """
        Return the raw, unprocessed text Tesseract reads from the image.

        Raises:
            OCRError: tesseract is missing, fails, or reads nothing
        """
        logger = logger or self.logger
        if pytesseract is None or PIL_Image is None:
            _lazy_import_ocr_deps()
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        try:
            text = ocr_image_to_text(img_path)
        except pytesseract.TesseractNotFoundError as e:
            raise OCRError("Tesseract OCR binary not found") from e
        except Exception as e:
            raise OCRError(f"Tesseract OCR failed to process image: {e}") from e

        if not text or not text.strip():
            raise OCRError("Tesseract OCR returned no text")

        logger.info("ocr_text_extracted", chars=len(text))
        return text
