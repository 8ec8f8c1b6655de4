"""Tests for Ekamanam Pydantic models."""

import pytest

from ekamanam.models import (
    CacheEntry,
    DocumentText,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStats,
)


class TestExtractionRequest:
    def test_create_request(self):
        request = ExtractionRequest(document_id="doc1", page_number=3, language_hint="Telugu")
        assert request.page_number == 3
        assert request.image is None

    def test_page_number_must_be_positive(self):
        with pytest.raises(ValueError):
            ExtractionRequest(document_id="doc1", page_number=0)

    def test_document_id_required(self):
        with pytest.raises(ValueError):
            ExtractionRequest(document_id="", page_number=1)

    def test_image_not_serialized(self):
        request = ExtractionRequest(document_id="doc1", page_number=1, image=object())
        assert "image" not in request.model_dump()


class TestExtractionResult:
    def test_create_result(self):
        result = ExtractionResult(text="hello", method="native", page_number=1)
        assert result.text == "hello"
        assert result.error is None
        assert not result.is_degraded

    def test_method_validation(self):
        with pytest.raises(ValueError):
            ExtractionResult(text="x", method="pdfjs")

    @pytest.mark.parametrize("method", ["native-garbled", "failed"])
    def test_degraded_methods(self, method):
        assert ExtractionResult(text="", method=method).is_degraded


class TestCacheEntry:
    def test_create_entry(self):
        entry = CacheEntry(key="doc1_page_1", document_id="doc1", page_number=1, text="t")
        assert entry.method == "ocr"
        assert entry.timestamp.tzinfo is not None

    def test_only_fallback_methods(self):
        with pytest.raises(ValueError):
            CacheEntry(
                key="doc1_page_1", document_id="doc1", page_number=1, text="t", method="native"
            )


class TestDocumentText:
    def test_text_uses_page_separators(self):
        document = DocumentText(
            document_id="doc1",
            pages=[
                ExtractionResult(text="one", method="native", page_number=1),
                ExtractionResult(text="two", method="ocr", page_number=2),
            ],
            stats=ExtractionStats(pages_processed=2, methods={"native": 1, "ocr": 1}),
        )
        assert document.text == "\n\n--- Page 1 ---\n\none\n\n--- Page 2 ---\n\ntwo"

    def test_failed_pages(self):
        stats = ExtractionStats(methods={"failed": 2, "native": 1})
        assert stats.failed_pages == 2
