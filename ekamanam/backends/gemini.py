"""Google Gemini vision backend implementation."""

from __future__ import annotations

import logging
import os
import time
from typing import TYPE_CHECKING

import httpx

from ekamanam.backends.base import OCRBackend, OCRResult
from ekamanam.exceptions import ConfigurationError, EngineError
from ekamanam.utils.images import image_to_base64, resize_for_vlm

if TYPE_CHECKING:
    from PIL import Image

    from ekamanam.models import ProgressCallback

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = """You are reading a page from an educational textbook.

TASK:
1. Extract ALL text from this image in the exact order it appears
2. Keep the original language and script; do not translate or transliterate
3. Preserve formatting (paragraphs, bullet points, headings)
4. Include titles, body text, captions and labels

{language_instruction}

IMPORTANT:
- Return ONLY the extracted text
- NO explanations, NO descriptions, NO commentary"""


class GeminiBackend(OCRBackend):
    """Vision backend that asks a Gemini model to transcribe a page image.

    Used when native extraction yields garbled text and a cloud model is
    preferred over local OCR (better on complex Indic layouts).
    """

    API_BASE = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        api_key: str | None = None,
        timeout: float = 30.0,
        image_quality: float = 0.8,
        client: httpx.Client | None = None,
    ):
        """Initialize Gemini backend.

        Args:
            model: Model name (gemini-2.0-flash, gemini-1.5-flash, ...)
            api_key: Google API key (defaults to GEMINI_API_KEY or GOOGLE_API_KEY env var)
            timeout: Request timeout in seconds
            image_quality: JPEG quality factor for the uploaded page (0.1-1.0)
            client: Optional preconfigured HTTP client
        """
        self.model = model
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get(
            "GOOGLE_API_KEY"
        )
        self.timeout = timeout
        self.image_quality = image_quality
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        """Return backend name."""
        return "vision"

    @staticmethod
    def build_prompt(language_hint: str | None = None) -> str:
        """Build the transcription prompt for a page.

        Args:
            language_hint: Human-readable language name, if known

        Returns:
            Prompt string for the model
        """
        if language_hint:
            instruction = (
                f"This page is in {language_hint}. "
                f"Extract and return all text in {language_hint}."
            )
        else:
            instruction = (
                "Detect the language and extract all text in the original language "
                "(Telugu/Hindi/Tamil/English or any other)."
            )
        return TRANSCRIPTION_PROMPT.format(language_instruction=instruction)

    def ocr_image(
        self,
        image: Image.Image,
        language_hint: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> OCRResult:
        """Transcribe a page image using Gemini.

        Args:
            image: PIL Image to process
            language_hint: Language name included in the prompt
            on_progress: Optional progress callback, reports ("vision", step, 1)

        Returns:
            OCRResult with extracted text

        Raises:
            ConfigurationError: If API key is not set (no request is made)
            EngineError: If the request fails or the response is malformed
        """
        if not self.api_key:
            raise ConfigurationError(
                "Gemini API key not set. Pass api_key or set GEMINI_API_KEY env var."
            )

        if on_progress:
            on_progress("vision", 0, 1)

        image_base64 = image_to_base64(
            resize_for_vlm(image), format="JPEG", quality=self.image_quality
        )

        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": self.build_prompt(language_hint)},
                        {
                            "inline_data": {
                                "mime_type": "image/jpeg",
                                "data": image_base64,
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {
                "temperature": 0.3,
                "maxOutputTokens": 4096,
            },
        }

        url = f"{self.API_BASE}/models/{self.model}:generateContent"
        start_time = time.time()
        try:
            response = self._client.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EngineError(
                self.name,
                f"Gemini API error: {e.response.status_code} - {e.response.text[:500]}",
            ) from e
        except httpx.HTTPError as e:
            raise EngineError(self.name, f"Gemini request failed: {e!r}") from e

        try:
            text = self._parse_response(response.json())
        except ValueError as e:
            raise EngineError(self.name, f"Malformed Gemini response: {e}") from e

        if on_progress:
            on_progress("vision", 1, 1)

        logger.info(
            "Gemini vision completed in %.2fs, extracted %d chars",
            time.time() - start_time,
            len(text),
        )
        return OCRResult(text=text, confidence=None)

    @staticmethod
    def _parse_response(result: object) -> str:
        """Pull the transcription out of a generateContent response."""
        if not isinstance(result, dict):
            raise ValueError("response body is not a JSON object")

        candidates = result.get("candidates")
        if not candidates:
            feedback = result.get("promptFeedback", {})
            raise ValueError(f"no candidates in response (feedback: {feedback})")

        candidate = candidates[0] if isinstance(candidates, list) else None
        if not isinstance(candidate, dict):
            raise ValueError("malformed candidates list")

        content = candidate.get("content") or {}
        parts = content.get("parts")
        if not isinstance(parts, list):
            raise ValueError("candidate has no content parts")

        text = ""
        for part in parts:
            if isinstance(part, dict) and "text" in part:
                text += part["text"]
        return text.strip()

    def is_available(self) -> bool:
        """Check if Gemini API is available.

        Returns:
            True if API key is set and API is reachable
        """
        if not self.api_key:
            return False

        try:
            response = self._client.get(
                f"{self.API_BASE}/models", params={"key": self.api_key}
            )
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
