"""Image utility functions."""

from __future__ import annotations

import base64
import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from PIL import Image


def resize_for_vlm(
    image: "Image.Image",
    max_dimension: int = 2048,
) -> "Image.Image":
    """Resize image to fit within VLM context limits.

    Maintains aspect ratio while ensuring neither dimension
    exceeds max_dimension.

    Args:
        image: PIL Image to resize
        max_dimension: Maximum width or height

    Returns:
        Resized PIL Image (or original if already small enough)
    """
    width, height = image.size

    if width <= max_dimension and height <= max_dimension:
        return image

    scale = min(max_dimension / width, max_dimension / height)
    new_width = int(width * scale)
    new_height = int(height * scale)

    from PIL import Image as PILImage

    return image.resize((new_width, new_height), PILImage.Resampling.LANCZOS)


def jpeg_quality(quality: float) -> int:
    """Convert a 0.1-1.0 quality factor to Pillow's 1-95 JPEG scale."""
    if not 0.0 < quality <= 1.0:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    return max(1, min(95, round(quality * 100)))


def image_to_base64(
    image: "Image.Image",
    format: str = "JPEG",
    quality: float = 0.8,
) -> str:
    """Convert PIL Image to base64 string.

    Args:
        image: PIL Image to convert
        format: Output format (JPEG, PNG, etc.)
        quality: JPEG quality factor (0.1-1.0), ignored for other formats

    Returns:
        Base64 encoded string
    """
    buffer = io.BytesIO()

    if format.upper() == "JPEG":
        # JPEG has no alpha or palette modes
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=jpeg_quality(quality))
    else:
        image.save(buffer, format=format)

    return base64.b64encode(buffer.getvalue()).decode("utf-8")
