"""Pydantic models for Ekamanam page-text extraction."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Literal

from pydantic import BaseModel, Field

# Progress callback type: (stage, current, total) -> None
# Stages: "extracting", "ocr", "vision"
ProgressCallback = Callable[[str, int, int], None]

# How the text of a page was obtained
ExtractionMethod = Literal["native", "native-garbled", "ocr", "vision", "cache", "failed"]

# Which engine runs when native text is garbled
FallbackEngine = Literal["ocr", "vision"]


class ExtractionRequest(BaseModel):
    """A single page extraction request."""

    document_id: str = Field(min_length=1, description="Identifier of the source document")
    page_number: int = Field(ge=1, description="Page number (1-indexed)")
    image: Any = Field(
        default=None,
        exclude=True,
        description="Rendered page raster (PIL Image); rendered lazily when None",
    )
    language_hint: str | None = Field(
        default=None, description="Human-readable language name, e.g. 'Telugu'"
    )


class ExtractionResult(BaseModel):
    """Text of one page and the method that produced it."""

    text: str = Field(default="", description="Extracted page text")
    method: ExtractionMethod = Field(description="Method used to extract this page")
    page_number: int | None = Field(default=None, ge=1, description="Page number (1-indexed)")
    error: str | None = Field(default=None, description="Failure detail when method is 'failed'")
    elapsed_seconds: float = Field(default=0.0, ge=0.0, description="Time spent on this page")

    @property
    def is_degraded(self) -> bool:
        """True when the text is garbled or missing."""
        return self.method in ("native-garbled", "failed")


class CacheEntry(BaseModel):
    """A cached fallback result for one (document, page) pair."""

    key: str = Field(description="Cache key derived from document id and page number")
    document_id: str = Field(description="Identifier of the source document")
    page_number: int = Field(ge=1, description="Page number (1-indexed)")
    text: str = Field(description="Text produced by the fallback engine")
    method: FallbackEngine = Field(default="ocr", description="Engine that produced the text")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the entry was written",
    )


class ExtractionStats(BaseModel):
    """Per-method page counts for a document extraction."""

    total_time_seconds: float = Field(default=0.0, ge=0.0)
    pages_processed: int = Field(default=0, ge=0)
    methods: dict[str, int] = Field(default_factory=dict, description="Page count per method")

    @property
    def failed_pages(self) -> int:
        return self.methods.get("failed", 0)


class DocumentText(BaseModel):
    """Extraction results for several pages of one document."""

    document_id: str
    pages: list[ExtractionResult] = Field(default_factory=list)
    stats: ExtractionStats = Field(default_factory=ExtractionStats)

    @property
    def text(self) -> str:
        """All page texts joined with page separators."""
        return join_page_texts(self.pages)


def join_page_texts(pages: list[ExtractionResult]) -> str:
    """Join page texts using the ``--- Page N ---`` separator layout."""
    return "".join(
        f"\n\n--- Page {page.page_number} ---\n\n{page.text}" for page in pages
    )
