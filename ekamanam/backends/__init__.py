"""Text recognition backends for Ekamanam.

Available backends:
    Local:
    - TesseractBackend: Tesseract OCR with Indic language packs

    Cloud:
    - GeminiBackend: Google Gemini vision models (gemini-2.0-flash, gemini-1.5-flash)
"""

from ekamanam.backends.base import OCRBackend, OCRResult
from ekamanam.backends.gemini import GeminiBackend
from ekamanam.backends.tesseract import TesseractBackend

__all__ = [
    "OCRBackend",
    "OCRResult",
    "TesseractBackend",
    "GeminiBackend",
]
