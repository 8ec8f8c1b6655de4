"""Ekamanam: page-text extraction for PDF textbooks.

Ekamanam returns usable text for each page of a PDF, falling back from the
native text layer to OCR or a vision model when the native text is garbled.

Example:
    >>> from ekamanam import Ekamanam, PipelineSettings
    >>>
    >>> ek = Ekamanam(settings=PipelineSettings(fallback_engine="vision"))
    >>> result = ek.extract_page("textbook.pdf", 1, language_hint="Telugu")
    >>> print(result.method, result.text)
"""

from ekamanam.cache import InMemoryResultCache, ResultCache, SqliteResultCache
from ekamanam.config import PipelineSettings, SettingsStore
from ekamanam.core import Ekamanam
from ekamanam.exceptions import ConfigurationError, EkamanamError, EngineError
from ekamanam.models import (
    CacheEntry,
    DocumentText,
    ExtractionMethod,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStats,
    ProgressCallback,
)
from ekamanam.router import HybridExtractor

__version__ = "0.1.0"

__all__ = [
    "Ekamanam",
    "HybridExtractor",
    "PipelineSettings",
    "SettingsStore",
    "ResultCache",
    "SqliteResultCache",
    "InMemoryResultCache",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionMethod",
    "ExtractionStats",
    "DocumentText",
    "CacheEntry",
    "ProgressCallback",
    "EkamanamError",
    "ConfigurationError",
    "EngineError",
]
