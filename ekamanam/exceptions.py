"""Exceptions raised by Ekamanam components."""

from __future__ import annotations


class EkamanamError(Exception):
    """Base class for Ekamanam errors."""


class ConfigurationError(EkamanamError, ValueError):
    """A required setting or credential is missing or invalid."""


class EngineError(EkamanamError, RuntimeError):
    """An OCR or vision engine failed to produce text."""

    def __init__(self, engine: str, message: str):
        super().__init__(f"{engine}: {message}")
        self.engine = engine
