"""Core Ekamanam class - main entry point for PDF page-text extraction."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from ekamanam.backends.gemini import GeminiBackend
from ekamanam.backends.tesseract import TesseractBackend
from ekamanam.cache import ResultCache, SqliteResultCache
from ekamanam.config import PipelineSettings
from ekamanam.models import (
    DocumentText,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStats,
    ProgressCallback,
    join_page_texts,
)
from ekamanam.router import HybridExtractor
from ekamanam.utils.pdf import get_page_count, get_page_text, render_page_to_image

if TYPE_CHECKING:
    from PIL import Image

    from ekamanam.backends.base import OCRBackend

logger = logging.getLogger(__name__)


class _PdfPage:
    """Lazy access to one page's native text and rendered image."""

    def __init__(self, file_path: Path, page_number: int, dpi: int, lock: threading.Lock):
        self.file_path = file_path
        self.page_number = page_number
        self.dpi = dpi
        self._lock = lock
        self._text: str | None = None

    def native_text(self) -> str:
        if self._text is None:
            with self._lock:
                self._text = get_page_text(self.file_path, self.page_number - 1)
        return self._text

    def render(self) -> "Image.Image":
        with self._lock:
            return render_page_to_image(self.file_path, self.page_number - 1, dpi=self.dpi)


class Ekamanam:
    """Extract usable text from PDF textbook pages.

    Native text is used when it is clean; garbled pages (common with
    Indic-script fonts) are re-read with OCR or a vision model and the
    result is cached per document and page.

    Example:
        >>> from ekamanam import Ekamanam
        >>>
        >>> with Ekamanam() as ek:
        ...     result = ek.extract_page("telugu_reader.pdf", 3)
        ...     print(result.method, result.text[:80])
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        cache: ResultCache | None = None,
        ocr_backend: "OCRBackend | None" = None,
        vision_backend: "OCRBackend | None" = None,
    ):
        """Initialize Ekamanam.

        Args:
            settings: Pipeline settings (read from the environment if None)
            cache: Result cache (SQLite file at settings.cache_path if None)
            ocr_backend: OCR backend (Tesseract if None)
            vision_backend: Vision backend (Gemini if None)
        """
        self.settings = settings or PipelineSettings.from_env()
        self.cache = cache if cache is not None else SqliteResultCache(self.settings.cache_path)
        self.ocr_backend = ocr_backend or TesseractBackend(timeout=self.settings.fallback_timeout)
        self.vision_backend = vision_backend or GeminiBackend(
            model=self.settings.vision_model,
            api_key=self.settings.vision_api_key,
            timeout=self.settings.fallback_timeout,
            image_quality=self.settings.image_quality,
        )
        self._extractor = HybridExtractor(
            cache=self.cache,
            ocr_backend=self.ocr_backend,
            vision_backend=self.vision_backend,
            settings=self.settings,
        )
        # PyMuPDF is not thread safe; page reads and renders are serialized
        self._pdf_lock = threading.Lock()

    @staticmethod
    def document_id_for(file_path: str | Path) -> str:
        """Derive a document id from the file contents.

        Identical copies of a PDF share an id and therefore a cache.
        """
        digest = hashlib.sha256()
        with open(file_path, "rb") as f:
            for block in iter(lambda: f.read(1 << 20), b""):
                digest.update(block)
        return digest.hexdigest()[:16]

    def extract_page(
        self,
        file_path: str | Path,
        page_number: int,
        language_hint: str | None = None,
        document_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Extract the text of a single page.

        Args:
            file_path: Path to the PDF
            page_number: Page number (1-indexed)
            language_hint: Language name, e.g. "Telugu" (guessed from native text if None)
            document_id: Cache identity of the document (content hash if None)
            on_progress: Optional progress callback forwarded to the fallback engine

        Returns:
            ExtractionResult with the text and the method used

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If page_number is outside the document
        """
        file_path = self._check_file(file_path)
        page_count = self._page_count(file_path)
        if not 1 <= page_number <= page_count:
            raise ValueError(f"Page {page_number} out of range (document has {page_count} pages)")

        document_id = document_id or self.document_id_for(file_path)
        return self._extract(file_path, document_id, page_number, language_hint, on_progress)

    def extract_pages(
        self,
        file_path: str | Path,
        pages: list[int] | None = None,
        language_hint: str | None = None,
        document_id: str | None = None,
        workers: int = 4,
        on_progress: ProgressCallback | None = None,
    ) -> DocumentText:
        """Extract several pages in parallel.

        Args:
            file_path: Path to the PDF
            pages: Page numbers to extract (None = all; out-of-range pages are skipped)
            language_hint: Language name applied to every page
            document_id: Cache identity of the document (content hash if None)
            workers: Number of parallel workers
            on_progress: Optional progress callback ("extracting", done, total)

        Returns:
            DocumentText with per-page results in page order

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        file_path = self._check_file(file_path)
        start_time = time.time()
        page_count = self._page_count(file_path)
        document_id = document_id or self.document_id_for(file_path)

        if pages is None:
            page_numbers = list(range(1, page_count + 1))
        else:
            page_numbers = sorted({p for p in pages if 1 <= p <= page_count})

        total = len(page_numbers)
        results: dict[int, ExtractionResult] = {}

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            future_to_page = {
                executor.submit(
                    self._extract, file_path, document_id, page_num, language_hint
                ): page_num
                for page_num in page_numbers
            }

            completed = 0
            for future in as_completed(future_to_page):
                page_num = future_to_page[future]
                try:
                    results[page_num] = future.result()
                except Exception as e:
                    logger.warning("Page %d of %s failed: %s", page_num, file_path, e)
                    results[page_num] = ExtractionResult(
                        text="", method="failed", page_number=page_num, error=str(e)
                    )

                completed += 1
                if on_progress:
                    on_progress("extracting", completed, total)

        ordered = [results[p] for p in page_numbers]
        stats = ExtractionStats(
            total_time_seconds=time.time() - start_time,
            pages_processed=len(ordered),
            methods=dict(Counter(r.method for r in ordered)),
        )
        logger.info(
            "Extracted %d pages of %s in %.2fs: %s",
            stats.pages_processed,
            file_path.name,
            stats.total_time_seconds,
            stats.methods,
        )
        return DocumentText(document_id=document_id, pages=ordered, stats=stats)

    def extract_full_text(self, file_path: str | Path, **kwargs) -> str:
        """Extract all pages as one string with ``--- Page N ---`` separators.

        Args:
            file_path: Path to the PDF
            **kwargs: Additional arguments passed to extract_pages()

        Returns:
            Full document text
        """
        return self.extract_pages(file_path, **kwargs).text

    def extract_text_range(
        self,
        file_path: str | Path,
        start_page: int,
        end_page: int,
        **kwargs,
    ) -> str:
        """Extract an inclusive page range, clamped to the document.

        Args:
            file_path: Path to the PDF
            start_page: First page (1-indexed)
            end_page: Last page (1-indexed, inclusive)
            **kwargs: Additional arguments passed to extract_pages()

        Returns:
            Text of the range with ``--- Page N ---`` separators
        """
        file_path = self._check_file(file_path)
        start = max(1, start_page)
        end = min(self._page_count(file_path), end_page)
        if start > end:
            return ""
        result = self.extract_pages(file_path, pages=list(range(start, end + 1)), **kwargs)
        return join_page_texts(result.pages)

    def clear_cache(self, document_id: str) -> int:
        """Drop cached fallback results of a document.

        Returns:
            Number of cache entries removed
        """
        return self.cache.clear(document_id)

    def close(self) -> None:
        """Release the cache and backend resources."""
        self.cache.close()
        self.ocr_backend.close()
        self.vision_backend.close()

    def __enter__(self) -> "Ekamanam":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _extract(
        self,
        file_path: Path,
        document_id: str,
        page_number: int,
        language_hint: str | None,
        on_progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        page = _PdfPage(file_path, page_number, self.settings.render_dpi, self._pdf_lock)
        request = ExtractionRequest(
            document_id=document_id,
            page_number=page_number,
            language_hint=language_hint,
        )
        return self._extractor.extract(
            request,
            native_text=page.native_text,
            render_image=page.render,
            on_progress=on_progress,
        )

    def _page_count(self, file_path: Path) -> int:
        with self._pdf_lock:
            return get_page_count(file_path)

    @staticmethod
    def _check_file(file_path: str | Path) -> Path:
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        return file_path
