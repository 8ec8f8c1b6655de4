"""Hybrid extraction: native text first, OCR or vision for garbled pages."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import TYPE_CHECKING, Callable

from ekamanam.cache import InMemoryResultCache, ResultCache, make_cache_key
from ekamanam.config import PipelineSettings
from ekamanam.exceptions import ConfigurationError
from ekamanam.models import ExtractionRequest, ExtractionResult, ProgressCallback
from ekamanam.utils.language import guess_language_hint
from ekamanam.utils.text_quality import is_text_garbled

if TYPE_CHECKING:
    from PIL import Image

    from ekamanam.backends.base import OCRBackend

logger = logging.getLogger(__name__)

# Returns the page's native text layer; may raise
NativeTextProvider = Callable[[], str]

# Returns the rendered page image; only called when a fallback runs
ImageProvider = Callable[[], "Image.Image"]


class HybridExtractor:
    """Chooses the cheapest method that yields usable text for a page.

    The sequence is fixed: cache lookup, native extraction, garbled check,
    then a single fallback engine (OCR or vision) whose result is cached.
    ``extract`` always returns an ExtractionResult; engine, cache and
    provider failures are reported through ``method="failed"``.
    """

    def __init__(
        self,
        cache: ResultCache | None = None,
        ocr_backend: "OCRBackend | None" = None,
        vision_backend: "OCRBackend | None" = None,
        settings: PipelineSettings | None = None,
    ):
        """Initialize the extractor.

        Args:
            cache: Result cache for fallback text (in-memory if None)
            ocr_backend: Backend used when fallback_engine is "ocr"
            vision_backend: Backend used when fallback_engine is "vision"
            settings: Pipeline settings (defaults if None)
        """
        self.cache = cache if cache is not None else InMemoryResultCache()
        self.ocr_backend = ocr_backend
        self.vision_backend = vision_backend
        self.settings = settings or PipelineSettings()

        # Fallbacks currently running, so concurrent callers for the
        # same page share one engine call
        self._inflight: dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def extract(
        self,
        request: ExtractionRequest,
        native_text: NativeTextProvider,
        render_image: ImageProvider | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Extract the text of one page.

        Args:
            request: Page to extract
            native_text: Callable returning the page's native text layer
            render_image: Callable returning the page image when the request has none
            on_progress: Optional progress callback forwarded to the fallback engine

        Returns:
            ExtractionResult with the text and the method used
        """
        start_time = time.time()
        document_id, page_number = request.document_id, request.page_number

        try:
            cached = self.cache.get(document_id, page_number)
        except Exception as e:
            logger.warning("Cache lookup failed for page %d of %s: %s", page_number, document_id, e)
            cached = None
        if cached is not None:
            logger.info("Page %d of %s served from cache", page_number, document_id)
            return self._result(cached, "cache", request, start_time)

        try:
            text = native_text() or ""
        except Exception as e:
            logger.warning(
                "Native extraction failed for page %d of %s: %s", page_number, document_id, e
            )
            text = ""

        if not is_text_garbled(text, self.settings.garbled_threshold):
            logger.debug("Native text of page %d is clean, using it", page_number)
            return self._result(text, "native", request, start_time)

        if not self.settings.fallback_enabled:
            logger.info(
                "Page %d of %s is garbled but fallback is disabled, keeping native text",
                page_number,
                document_id,
            )
            return self._result(text, "native-garbled", request, start_time)

        logger.info(
            "Native text of page %d is garbled, falling back to %s",
            page_number,
            self.settings.fallback_engine,
        )
        if request.language_hint is None:
            hint = guess_language_hint(text)
            if hint is not None:
                logger.debug("Guessed %s for page %d from its native text", hint, page_number)
                request = request.model_copy(update={"language_hint": hint})
        return self._coalesced_fallback(request, render_image, on_progress, start_time)

    def get_backend(self) -> "OCRBackend":
        """Return the backend selected by settings.fallback_engine.

        Raises:
            ConfigurationError: If no backend is configured for the engine
        """
        engine = self.settings.fallback_engine
        backend = self.ocr_backend if engine == "ocr" else self.vision_backend
        if backend is None:
            raise ConfigurationError(f"No {engine} backend configured for fallback")
        return backend

    def _coalesced_fallback(
        self,
        request: ExtractionRequest,
        render_image: ImageProvider | None,
        on_progress: ProgressCallback | None,
        start_time: float,
    ) -> ExtractionResult:
        """Run the fallback, or wait for an identical one already running."""
        key = make_cache_key(request.document_id, request.page_number)

        with self._inflight_lock:
            pending = self._inflight.get(key)
            if pending is None:
                future: Future = Future()
                self._inflight[key] = future

        if pending is not None:
            logger.debug("Waiting for in-flight fallback of %s", key)
            result = pending.result()
            return result.model_copy(update={"elapsed_seconds": time.time() - start_time})

        try:
            result = self._run_fallback(request, render_image, on_progress, start_time)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
        return result

    def _run_fallback(
        self,
        request: ExtractionRequest,
        render_image: ImageProvider | None,
        on_progress: ProgressCallback | None,
        start_time: float,
    ) -> ExtractionResult:
        """Recognize the page with the configured engine and cache the text."""
        try:
            backend = self.get_backend()
            image = request.image
            if image is None:
                if render_image is None:
                    raise ConfigurationError("No page image supplied and no renderer given")
                image = render_image()
            ocr_result = backend.ocr_image(image, request.language_hint, on_progress)
        except Exception as e:
            logger.warning(
                "Fallback extraction failed for page %d of %s: %s",
                request.page_number,
                request.document_id,
                e,
            )
            return self._result("", "failed", request, start_time, error=str(e))

        method = backend.name
        if ocr_result.text:
            try:
                cached = self.cache.put(
                    request.document_id, request.page_number, ocr_result.text, method=method
                )
            except Exception as e:
                logger.warning("Cache write raised for page %d: %s", request.page_number, e)
                cached = False
            if not cached:
                logger.warning("Result for page %d was not cached", request.page_number)
        else:
            logger.warning(
                "%s returned no text for page %d, not caching", method, request.page_number
            )

        return self._result(ocr_result.text, method, request, start_time)

    @staticmethod
    def _result(
        text: str,
        method: str,
        request: ExtractionRequest,
        start_time: float,
        error: str | None = None,
    ) -> ExtractionResult:
        return ExtractionResult(
            text=text,
            method=method,
            page_number=request.page_number,
            error=error,
            elapsed_seconds=time.time() - start_time,
        )
