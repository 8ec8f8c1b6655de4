"""Garbled text detection for natively extracted page text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_GARBLED_THRESHOLD = 0.30

# Characters that count as legitimate page text: ASCII letters and digits,
# the Indic script blocks (Devanagari through Malayalam) and basic punctuation.
_SPECIAL_CHARS = re.compile(
    r"[^a-zA-Z0-9"
    r"\u0900-\u097F"  # Devanagari
    r"\u0980-\u09FF"  # Bengali
    r"\u0A00-\u0A7F"  # Gurmukhi
    r"\u0A80-\u0AFF"  # Gujarati
    r"\u0B00-\u0B7F"  # Odia
    r"\u0B80-\u0BFF"  # Tamil
    r"\u0C00-\u0C7F"  # Telugu
    r"\u0C80-\u0CFF"  # Kannada
    r"\u0D00-\u0D7F"  # Malayalam
    r".,!?;:()\-'\"]"
)
_WHITESPACE = re.compile(r"\s")


@dataclass
class TextQuality:
    """Result of a garbled-text check."""

    length: int  # Length of the original text
    non_whitespace_length: int
    special_count: int  # Characters outside the allowed sets
    ratio: float  # special_count / non_whitespace_length
    threshold: float
    is_garbled: bool

    def __str__(self) -> str:
        status = "GARBLED" if self.is_garbled else "OK"
        return (
            f"Text quality: {status} - {self.special_count}/{self.non_whitespace_length} "
            f"special ({self.ratio:.1%}, threshold {self.threshold:.0%})"
        )


def measure_text_quality(
    text: str | None,
    threshold: float = DEFAULT_GARBLED_THRESHOLD,
) -> TextQuality:
    """Measure the share of unexpected characters in extracted text.

    Args:
        text: Text to check (None and empty text are garbled)
        threshold: Ratio above which text is garbled (0.0-1.0)

    Returns:
        TextQuality with counts, ratio and verdict

    Raises:
        ValueError: If threshold is outside [0, 1]
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be between 0 and 1, got {threshold}")

    if not text:
        return TextQuality(0, 0, 0, 1.0, threshold, True)

    non_whitespace = _WHITESPACE.sub("", text)
    if not non_whitespace:
        return TextQuality(len(text), 0, 0, 1.0, threshold, True)

    special_count = len(_SPECIAL_CHARS.findall(non_whitespace))
    ratio = special_count / len(non_whitespace)

    return TextQuality(
        length=len(text),
        non_whitespace_length=len(non_whitespace),
        special_count=special_count,
        ratio=ratio,
        threshold=threshold,
        is_garbled=ratio > threshold,
    )


def is_text_garbled(
    text: str | None,
    threshold: float = DEFAULT_GARBLED_THRESHOLD,
) -> bool:
    """Check whether extracted text is too corrupted to use.

    Font-encoding mismatches in Indic-script PDFs produce text dominated by
    symbols and Latin-1 glyphs. Such text is rejected so a fallback engine
    can re-derive it from the rendered page.

    Args:
        text: Text to check
        threshold: Ratio of special characters above which text is garbled

    Returns:
        True if the text should be replaced by a fallback method
    """
    quality = measure_text_quality(text, threshold)
    logger.debug("%s; preview=%r", quality, (text or "")[:100])
    return quality.is_garbled
