"""Tests for the hybrid extractor."""

import threading
import time
from unittest.mock import Mock

import pytest

from ekamanam.backends.gemini import GeminiBackend
from ekamanam.cache import InMemoryResultCache
from ekamanam.config import PipelineSettings
from ekamanam.exceptions import EngineError
from ekamanam.models import ExtractionRequest
from ekamanam.router import HybridExtractor

from conftest import GARBLED_TEXT, TELUGU_TEXT, FakeBackend

# 80% of the non-whitespace characters are outside the allowed sets
EIGHTY_PERCENT_GARBAGE = "ab@#$%^&*~ cd|{}<>[]§¶"


def make_request(page_image, page_number=1, hint=None):
    return ExtractionRequest(
        document_id="doc1",
        page_number=page_number,
        image=page_image,
        language_hint=hint,
    )


class TestHybridExtractorInit:
    def test_defaults(self):
        extractor = HybridExtractor()
        assert isinstance(extractor.cache, InMemoryResultCache)
        assert extractor.ocr_backend is None
        assert extractor.vision_backend is None
        assert extractor.settings.fallback_engine == "ocr"

    def test_get_backend_follows_settings(self):
        ocr, vision = FakeBackend("ocr"), FakeBackend("vision")
        extractor = HybridExtractor(
            ocr_backend=ocr,
            vision_backend=vision,
            settings=PipelineSettings(fallback_engine="vision"),
        )
        assert extractor.get_backend() is vision


class TestNativePath:
    def test_clean_native_text_is_used(self, page_image):
        cache = InMemoryResultCache()
        backend = FakeBackend()
        extractor = HybridExtractor(cache=cache, ocr_backend=backend)

        result = extractor.extract(make_request(page_image), lambda: "The cat sat on the mat.")

        assert result.text == "The cat sat on the mat."
        assert result.method == "native"
        assert result.page_number == 1
        assert backend.calls == []
        # Native results are not cached
        assert cache.get("doc1", 1) is None

    def test_native_exception_treated_as_empty(self, page_image):
        backend = FakeBackend(text="recovered")
        extractor = HybridExtractor(ocr_backend=backend)

        def broken():
            raise RuntimeError("text layer unreadable")

        result = extractor.extract(make_request(page_image), broken)

        assert result.method == "ocr"
        assert result.text == "recovered"

    def test_native_none_treated_as_empty(self, page_image):
        extractor = HybridExtractor(
            ocr_backend=FakeBackend(), settings=PipelineSettings(fallback_enabled=False)
        )
        result = extractor.extract(make_request(page_image), lambda: None)
        assert result.method == "native-garbled"
        assert result.text == ""


class TestFallbackPath:
    def test_garbled_native_uses_ocr_then_cache(self, page_image):
        backend = FakeBackend(text=TELUGU_TEXT)
        extractor = HybridExtractor(ocr_backend=backend)
        request = make_request(page_image, hint="Telugu")

        first = extractor.extract(request, lambda: EIGHTY_PERCENT_GARBAGE)
        assert first.method == "ocr"
        assert first.text == TELUGU_TEXT
        assert backend.calls == [(page_image, "Telugu")]

        second = extractor.extract(request, lambda: EIGHTY_PERCENT_GARBAGE)
        assert second.method == "cache"
        assert second.text == TELUGU_TEXT
        assert len(backend.calls) == 1

    def test_language_guessed_from_native_script(self, page_image):
        backend = FakeBackend()
        extractor = HybridExtractor(ocr_backend=backend)
        # Telugu letters buried in symbol noise
        native = "పిల్లి @#$%^&*{}[]<>|~ @#$%^&*"

        extractor.extract(make_request(page_image), lambda: native)

        assert backend.calls == [(page_image, "Telugu")]

    def test_cache_hit_skips_native_extraction(self, page_image):
        cache = InMemoryResultCache()
        cache.put("doc1", 1, "cached text")
        native = Mock(return_value="The cat sat on the mat.")
        extractor = HybridExtractor(cache=cache, ocr_backend=FakeBackend())

        result = extractor.extract(make_request(page_image), native)

        assert result.method == "cache"
        assert result.text == "cached text"
        native.assert_not_called()

    def test_vision_engine(self, page_image):
        cache = InMemoryResultCache()
        ocr, vision = FakeBackend("ocr"), FakeBackend("vision", text="from vision")
        extractor = HybridExtractor(
            cache=cache,
            ocr_backend=ocr,
            vision_backend=vision,
            settings=PipelineSettings(fallback_engine="vision"),
        )

        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        assert result.method == "vision"
        assert result.text == "from vision"
        assert ocr.calls == []
        assert cache.get_entry("doc1", 1).method == "vision"

    def test_fallback_disabled_keeps_garbled_text(self, page_image):
        backend = FakeBackend()
        extractor = HybridExtractor(
            ocr_backend=backend, settings=PipelineSettings(fallback_enabled=False)
        )

        result = extractor.extract(make_request(page_image), lambda: EIGHTY_PERCENT_GARBAGE)

        assert result.method == "native-garbled"
        assert result.text == EIGHTY_PERCENT_GARBAGE
        assert result.is_degraded
        assert backend.calls == []

    def test_engine_failure_returns_failed(self, page_image):
        cache = InMemoryResultCache()
        backend = FakeBackend(error=EngineError("ocr", "tesseract crashed"))
        extractor = HybridExtractor(cache=cache, ocr_backend=backend)

        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        assert result.method == "failed"
        assert result.text == ""
        assert "tesseract crashed" in result.error
        assert cache.get("doc1", 1) is None

    def test_missing_vision_key_returns_failed(self, page_image, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        client = Mock()
        vision = GeminiBackend(api_key=None, client=client)
        extractor = HybridExtractor(
            vision_backend=vision, settings=PipelineSettings(fallback_engine="vision")
        )

        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        assert result.method == "failed"
        assert result.text == ""
        assert "API key" in result.error
        client.post.assert_not_called()

    def test_no_backend_configured_returns_failed(self, page_image):
        extractor = HybridExtractor()
        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)
        assert result.method == "failed"
        assert "No ocr backend" in result.error

    def test_renders_image_lazily(self, page_image):
        backend = FakeBackend()
        extractor = HybridExtractor(ocr_backend=backend)
        render = Mock(return_value=page_image)
        request = ExtractionRequest(document_id="doc1", page_number=2)

        clean = extractor.extract(
            ExtractionRequest(document_id="doc1", page_number=1),
            lambda: "Clean text.",
            render_image=render,
        )
        assert clean.method == "native"
        render.assert_not_called()

        result = extractor.extract(request, lambda: GARBLED_TEXT, render_image=render)
        assert result.method == "ocr"
        render.assert_called_once()
        assert backend.calls[0][0] is page_image

    def test_render_failure_returns_failed(self, page_image):
        extractor = HybridExtractor(ocr_backend=FakeBackend())
        request = ExtractionRequest(document_id="doc1", page_number=1)

        def render():
            raise ValueError("cannot render")

        result = extractor.extract(request, lambda: GARBLED_TEXT, render_image=render)
        assert result.method == "failed"

    def test_empty_fallback_text_not_cached(self, page_image):
        cache = InMemoryResultCache()
        extractor = HybridExtractor(cache=cache, ocr_backend=FakeBackend(text=""))

        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        assert result.method == "ocr"
        assert result.text == ""
        assert cache.get("doc1", 1) is None

    def test_cache_errors_do_not_change_result(self, page_image):
        cache = Mock()
        cache.get.side_effect = OSError("disk gone")
        cache.put.side_effect = OSError("disk gone")
        extractor = HybridExtractor(cache=cache, ocr_backend=FakeBackend(text="ok"))

        result = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        assert result.method == "ocr"
        assert result.text == "ok"

    def test_idempotent_after_clear(self, page_image):
        cache = InMemoryResultCache()
        backend = FakeBackend(text="text")
        extractor = HybridExtractor(cache=cache, ocr_backend=backend)
        request = make_request(page_image)

        extractor.extract(request, lambda: GARBLED_TEXT)
        cache.clear("doc1")
        again = extractor.extract(request, lambda: GARBLED_TEXT)

        assert again.method == "ocr"
        assert len(backend.calls) == 2


class BlockingBackend(FakeBackend):
    """Backend that waits for a release signal before answering."""

    def __init__(self):
        super().__init__(text="slow text")
        self.started = threading.Event()
        self.release = threading.Event()

    def ocr_image(self, image, language_hint=None, on_progress=None):
        self.started.set()
        self.release.wait(timeout=5)
        return super().ocr_image(image, language_hint, on_progress)


class TestConcurrentFallback:
    def test_same_page_runs_engine_once(self, page_image):
        backend = BlockingBackend()
        extractor = HybridExtractor(ocr_backend=backend)
        second_reached_native = threading.Event()
        results = {}

        def first():
            results["first"] = extractor.extract(make_request(page_image), lambda: GARBLED_TEXT)

        def second_native():
            second_reached_native.set()
            return GARBLED_TEXT

        def second():
            results["second"] = extractor.extract(make_request(page_image), second_native)

        t1 = threading.Thread(target=first)
        t1.start()
        assert backend.started.wait(timeout=5)

        t2 = threading.Thread(target=second)
        t2.start()
        assert second_reached_native.wait(timeout=5)
        time.sleep(0.1)
        backend.release.set()

        t1.join(timeout=5)
        t2.join(timeout=5)

        assert len(backend.calls) == 1
        assert results["first"].text == results["second"].text == "slow text"
        assert results["first"].method == "ocr"
        assert results["second"].method in ("ocr", "cache")

    def test_different_pages_run_independently(self, page_image):
        backend = FakeBackend(text="t")
        extractor = HybridExtractor(ocr_backend=backend)

        extractor.extract(make_request(page_image, page_number=1), lambda: GARBLED_TEXT)
        extractor.extract(make_request(page_image, page_number=2), lambda: GARBLED_TEXT)

        assert len(backend.calls) == 2
