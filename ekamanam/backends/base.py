"""Abstract base class for text recognition backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from PIL import Image

    from ekamanam.models import ProgressCallback


class OCRResult(BaseModel):
    """Result from OCR processing."""

    text: str = Field(description="Extracted text content")
    confidence: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Confidence score of OCR"
    )


class OCRBackend(ABC):
    """Abstract base class for backends that read text from a page image.

    Implementations wrap a local OCR engine or a cloud vision model.
    Failures are raised as ``EngineError`` (or ``ConfigurationError`` when
    the backend cannot run at all); backends never retry on their own.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name used as the extraction method ('ocr', 'vision')."""
        ...

    @abstractmethod
    def ocr_image(
        self,
        image: Image.Image,
        language_hint: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> OCRResult:
        """Recognize the text in a rendered page.

        Args:
            image: PIL Image of the page
            language_hint: Human-readable language name, e.g. "Telugu"
            on_progress: Optional progress callback (stage, current, total)

        Returns:
            OCRResult with trimmed text
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is available and ready.

        Returns:
            True if the backend can process requests
        """
        ...

    def close(self) -> None:
        """Release resources held by the backend."""
