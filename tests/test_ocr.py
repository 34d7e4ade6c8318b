import sys
from types import SimpleNamespace

import pytest

from shift_ocr_pipeline.core import ocr
from shift_ocr_pipeline.core.errors import ImageValidationError, OCRError
from shift_ocr_pipeline.core.ocr import TesseractRecognizer, validate_image


class FakeTesseractNotFound(EnvironmentError):
    pass


@pytest.fixture
def fake_tesseract(monkeypatch):
    """Replace pytesseract with a stand-in that returns whatever ``text`` holds."""
    ocr._lazy_import_ocr_deps()
    state = SimpleNamespace(text="Thu, Sep 18\n9:21 AM - 10:30 AM\n$30\n", error=None, modes=[])

    def image_to_string(img):
        state.modes.append(img.mode)
        if state.error is not None:
            raise state.error
        return state.text

    fake = SimpleNamespace(
        image_to_string=image_to_string,
        TesseractNotFoundError=FakeTesseractNotFound,
        pytesseract=SimpleNamespace(tesseract_cmd="tesseract"),
    )
    monkeypatch.setattr(ocr, "pytesseract", fake)
    state.module = fake
    return state


def test_validate_image_accepts_png(png_image):
    info = validate_image(png_image)
    assert info.format == "PNG"
    assert info.mime_type == "image/png"
    assert (info.width, info.height) == (16, 16)
    assert info.size_bytes == png_image.stat().st_size


def test_validate_image_missing_file(tmp_path):
    with pytest.raises(ImageValidationError, match="not found"):
        validate_image(tmp_path / "nope.png")


def test_validate_image_empty_file(tmp_path):
    path = tmp_path / "empty.png"
    path.write_bytes(b"")
    with pytest.raises(ImageValidationError, match="empty"):
        validate_image(path)


def test_validate_image_not_an_image(tmp_path):
    path = tmp_path / "notes.png"
    path.write_text("Thu, Sep 18 9:21 AM - 10:30 AM $30")
    with pytest.raises(ImageValidationError, match="not a readable image"):
        validate_image(path)


def test_validate_image_too_large(png_image):
    with pytest.raises(ImageValidationError, match="too large"):
        validate_image(png_image, max_bytes=10)


def test_recognize_returns_raw_text_from_grayscale(png_image, fake_tesseract):
    text = TesseractRecognizer().recognize(png_image)
    assert text == "Thu, Sep 18\n9:21 AM - 10:30 AM\n$30\n"
    assert fake_tesseract.modes == ["L"]


def test_recognize_sets_tesseract_cmd(png_image, fake_tesseract):
    TesseractRecognizer(tesseract_cmd="/opt/bin/tesseract").recognize(png_image)
    assert fake_tesseract.module.pytesseract.tesseract_cmd == "/opt/bin/tesseract"


def test_recognize_missing_binary(png_image, fake_tesseract):
    fake_tesseract.error = FakeTesseractNotFound()
    with pytest.raises(OCRError) as exc:
        TesseractRecognizer().recognize(png_image)
    assert exc.value.cause == "Tesseract OCR binary not found"
    assert exc.value.method == "regex"


def test_recognize_engine_error(png_image, fake_tesseract):
    fake_tesseract.error = RuntimeError("bad page")
    with pytest.raises(OCRError, match="bad page"):
        TesseractRecognizer().recognize(png_image)


def test_recognize_blank_text(png_image, fake_tesseract):
    fake_tesseract.text = "  \n\n"
    with pytest.raises(OCRError, match="no text"):
        TesseractRecognizer().recognize(png_image)


def test_validate_image_needs_only_pillow(png_image, monkeypatch):
    monkeypatch.setattr(ocr, "pytesseract", None)
    monkeypatch.setattr(ocr, "PIL_Image", None)
    monkeypatch.setitem(sys.modules, "pytesseract", None)

    info = validate_image(png_image)

    assert info.mime_type == "image/png"
    assert ocr.pytesseract is None
