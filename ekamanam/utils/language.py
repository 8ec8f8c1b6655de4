"""Language hint helpers for OCR and vision prompts."""

from __future__ import annotations

from collections import Counter

DEFAULT_TESSERACT_LANGUAGE = "eng"

# Human-readable language name -> Tesseract traineddata code
TESSERACT_LANGUAGES: dict[str, str] = {
    "Telugu": "tel",
    "Hindi": "hin",
    "Tamil": "tam",
    "Kannada": "kan",
    "Malayalam": "mal",
    "Bengali": "ben",
    "Gujarati": "guj",
    "Punjabi": "pan",
    "Odia": "ori",
    "Marathi": "mar",
    "English": "eng",
}

# Unicode block -> language usually written in it. Devanagari maps to Hindi
# since the block alone cannot tell Hindi from Marathi.
SCRIPT_LANGUAGES: list[tuple[int, int, str]] = [
    (0x0900, 0x097F, "Hindi"),
    (0x0980, 0x09FF, "Bengali"),
    (0x0A00, 0x0A7F, "Punjabi"),
    (0x0A80, 0x0AFF, "Gujarati"),
    (0x0B00, 0x0B7F, "Odia"),
    (0x0B80, 0x0BFF, "Tamil"),
    (0x0C00, 0x0C7F, "Telugu"),
    (0x0C80, 0x0CFF, "Kannada"),
    (0x0D00, 0x0D7F, "Malayalam"),
]


def to_tesseract_language(language_hint: str | None) -> str:
    """Map a language hint to a Tesseract language code.

    The hint may carry extra text, e.g. ``"Telugu (తెలుగు)"`` maps to ``"tel"``.

    Args:
        language_hint: Human-readable language name, or None

    Returns:
        Tesseract language code, ``"eng"`` when nothing matches
    """
    if not language_hint:
        return DEFAULT_TESSERACT_LANGUAGE

    for name, code in TESSERACT_LANGUAGES.items():
        if name in language_hint:
            return code
    return DEFAULT_TESSERACT_LANGUAGE


def _script_language(char: str) -> str | None:
    point = ord(char)
    for start, end, language in SCRIPT_LANGUAGES:
        if start <= point <= end:
            return language
    return None


def guess_language_hint(text: str | None, min_share: float = 0.2) -> str | None:
    """Guess the language of a page from the Indic script it uses most.

    Args:
        text: Page text (may be partly garbled)
        min_share: Minimum share of letters that must be in the winning script

    Returns:
        Language name usable as a hint, or None for Latin/empty text
    """
    if not text:
        return None

    letters = [c for c in text if c.isalpha()]
    if not letters:
        return None

    counts = Counter(
        language for language in map(_script_language, letters) if language is not None
    )
    if not counts:
        return None

    language, count = counts.most_common(1)[0]
    if count / len(letters) < min_share:
        return None
    return language
