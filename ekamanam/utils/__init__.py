"""Utility functions for Ekamanam.

Provides text quality, language, PDF and image utilities.
"""

from ekamanam.utils.images import image_to_base64, jpeg_quality, resize_for_vlm
from ekamanam.utils.language import (
    TESSERACT_LANGUAGES,
    guess_language_hint,
    to_tesseract_language,
)
from ekamanam.utils.pdf import get_page_count, get_page_text, render_page_to_image
from ekamanam.utils.text_quality import (
    DEFAULT_GARBLED_THRESHOLD,
    TextQuality,
    is_text_garbled,
    measure_text_quality,
)

__all__ = [
    # Image utilities
    "resize_for_vlm",
    "image_to_base64",
    "jpeg_quality",
    # Language utilities
    "TESSERACT_LANGUAGES",
    "to_tesseract_language",
    "guess_language_hint",
    # PDF utilities
    "get_page_count",
    "get_page_text",
    "render_page_to_image",
    # Text quality utilities
    "DEFAULT_GARBLED_THRESHOLD",
    "TextQuality",
    "is_text_garbled",
    "measure_text_quality",
]
