"""Pipeline settings and their persistence."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from ekamanam.models import FallbackEngine

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path("~/.cache/ekamanam/ocr-cache.sqlite3")

# Environment variable for each settings field
ENV_VARS = {
    "fallback_enabled": "EKAMANAM_FALLBACK_ENABLED",
    "fallback_engine": "EKAMANAM_FALLBACK_ENGINE",
    "garbled_threshold": "EKAMANAM_GARBLED_THRESHOLD",
    "image_quality": "EKAMANAM_IMAGE_QUALITY",
    "fallback_timeout": "EKAMANAM_FALLBACK_TIMEOUT",
    "vision_model": "EKAMANAM_VISION_MODEL",
    "cache_path": "EKAMANAM_CACHE_PATH",
    "render_dpi": "EKAMANAM_RENDER_DPI",
}

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


class PipelineSettings(BaseModel):
    """Settings read by the extraction pipeline."""

    fallback_enabled: bool = Field(
        default=True,
        description="Re-derive garbled pages with OCR or vision (False keeps garbled text)",
    )
    fallback_engine: FallbackEngine = Field(
        default="ocr", description="Engine used when native text is garbled"
    )
    garbled_threshold: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Special-character ratio above which text counts as garbled",
    )
    image_quality: float = Field(
        default=0.8,
        ge=0.1,
        le=1.0,
        description="JPEG quality for images sent to the vision model",
    )
    fallback_timeout: float = Field(
        default=30.0, gt=0.0, description="Timeout in seconds for one OCR or vision call"
    )
    vision_api_key: str | None = Field(
        default=None, exclude=True, repr=False, description="Gemini API key"
    )
    vision_model: str = Field(default="gemini-2.0-flash", description="Gemini model name")
    cache_path: Path = Field(
        default=DEFAULT_CACHE_PATH, description="SQLite file holding cached fallback results"
    )
    render_dpi: int = Field(default=200, ge=36, le=600, description="Page rendering resolution")

    @classmethod
    def from_env(cls, **overrides) -> "PipelineSettings":
        """Build settings from ``EKAMANAM_*`` environment variables.

        Args:
            **overrides: Explicit values that take precedence over the environment

        Returns:
            Validated settings

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        values: dict[str, object] = {}
        for field_name, env_var in ENV_VARS.items():
            raw = os.environ.get(env_var)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        for env_var in API_KEY_ENV_VARS:
            if os.environ.get(env_var):
                values["vision_api_key"] = os.environ[env_var]
                break

        values.update(overrides)
        return cls.model_validate(values)


class SettingsStore:
    """JSON file holding user-adjustable pipeline settings.

    The API key is never written to the file; it always comes from the
    defaults passed in (usually the environment).
    """

    def __init__(self, path: Path | str, defaults: PipelineSettings | None = None):
        self.path = Path(path).expanduser()
        self.defaults = defaults or PipelineSettings()

    def load(self) -> PipelineSettings:
        """Load settings, falling back to defaults for anything not stored."""
        stored: dict = {}
        if self.path.exists():
            try:
                stored = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
                stored = {}
            if not isinstance(stored, dict):
                logger.warning("Ignoring settings file %s: expected a JSON object", self.path)
                stored = {}

        merged = {**self.defaults.model_dump(), **stored}
        merged["vision_api_key"] = self.defaults.vision_api_key
        return PipelineSettings.model_validate(merged)

    def update(self, **changes) -> PipelineSettings:
        """Validate and persist changed settings.

        Args:
            **changes: Field values to change

        Returns:
            The updated settings

        Raises:
            pydantic.ValidationError: If a value is invalid (nothing is written)
            ValueError: If a name is not a settings field, or is the API key
        """
        unknown = set(changes) - set(PipelineSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "vision_api_key" in changes:
            raise ValueError("The vision API key is not stored; set GEMINI_API_KEY instead")

        current = self.load()
        updated = PipelineSettings.model_validate(
            {**current.model_dump(), **changes, "vision_api_key": current.vision_api_key}
        )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(updated.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return updated
