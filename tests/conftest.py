"""Shared fixtures for Ekamanam tests."""

import fitz
import pytest
from PIL import Image

from ekamanam.backends.base import OCRBackend, OCRResult

TELUGU_TEXT = "పిల్లి చాప మీద కూర్చుంది"
GARBLED_TEXT = "@#$%^&*{}[]<>|~ @#$%^&*"


class FakeBackend(OCRBackend):
    """Backend that returns canned text and records its calls."""

    def __init__(self, name="ocr", text=TELUGU_TEXT, error=None):
        self._name = name
        self.text = text
        self.error = error
        self.calls = []

    @property
    def name(self):
        return self._name

    def ocr_image(self, image, language_hint=None, on_progress=None):
        self.calls.append((image, language_hint))
        if self.error is not None:
            raise self.error
        return OCRResult(text=self.text)

    def is_available(self):
        return True


@pytest.fixture
def page_image():
    return Image.new("RGB", (120, 80), "white")


@pytest.fixture
def sample_pdf(tmp_path):
    """Two-page PDF: clean English text, then symbol garbage."""
    path = tmp_path / "book.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "The cat sat on the mat.")
    page = doc.new_page()
    page.insert_text((72, 72), GARBLED_TEXT)
    doc.save(str(path))
    doc.close()
    return path
