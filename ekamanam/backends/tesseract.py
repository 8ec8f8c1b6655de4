"""Tesseract OCR backend implementation."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import pytesseract

from ekamanam.backends.base import OCRBackend, OCRResult
from ekamanam.exceptions import EngineError
from ekamanam.utils.language import to_tesseract_language

if TYPE_CHECKING:
    from PIL import Image

    from ekamanam.models import ProgressCallback

logger = logging.getLogger(__name__)


class TesseractBackend(OCRBackend):
    """OCR backend using the local Tesseract engine.

    Recognition is offline and CPU-bound; a page can take several seconds.
    The language hint selects the traineddata (e.g. ``tel`` for Telugu),
    which must be installed alongside Tesseract.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        oem: int = 3,
        psm: int = 3,
        extra_config: str = "",
    ):
        """Initialize Tesseract backend.

        Args:
            timeout: Seconds before a recognition run is killed
            oem: OCR Engine Mode (3 = default, LSTM when available)
            psm: Page segmentation mode (3 = fully automatic page layout)
            extra_config: Additional flags forwarded to tesseract
        """
        self.timeout = timeout
        self.config = f"--oem {oem} --psm {psm} {extra_config}".strip()

    @property
    def name(self) -> str:
        """Return backend name."""
        return "ocr"

    def ocr_image(
        self,
        image: Image.Image,
        language_hint: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> OCRResult:
        """Perform OCR on a page image with Tesseract.

        Args:
            image: PIL Image to process
            language_hint: Language name mapped to a Tesseract code ("eng" if unknown)
            on_progress: Optional progress callback, reports ("ocr", percent, 100)

        Returns:
            OCRResult with extracted text

        Raises:
            EngineError: If Tesseract fails or times out
        """
        lang = to_tesseract_language(language_hint)
        logger.info("Running Tesseract OCR (lang=%s)", lang)

        if on_progress:
            on_progress("ocr", 0, 100)

        start_time = time.time()
        try:
            text = pytesseract.image_to_string(
                image,
                lang=lang,
                config=self.config,
                timeout=self.timeout,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise EngineError(self.name, f"Tesseract failed: {e}") from e
        except RuntimeError as e:
            # pytesseract signals a timeout with a bare RuntimeError
            raise EngineError(self.name, f"Tesseract timed out after {self.timeout}s: {e}") from e

        if on_progress:
            on_progress("ocr", 100, 100)

        text = text.strip()
        logger.info(
            "Tesseract completed in %.2fs, extracted %d chars",
            time.time() - start_time,
            len(text),
        )
        return OCRResult(text=text, confidence=None)

    def is_available(self) -> bool:
        """Check if the tesseract binary can be found.

        Returns:
            True if Tesseract is installed
        """
        try:
            pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError):
            return False
        return True
