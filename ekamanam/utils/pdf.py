"""PDF utility functions."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import fitz  # PyMuPDF

if TYPE_CHECKING:
    from PIL import Image


def get_page_count(file_path: Path) -> int:
    """Get the number of pages in a PDF.

    Args:
        file_path: Path to PDF file

    Returns:
        Number of pages
    """
    with fitz.open(file_path) as doc:
        return len(doc)


def get_page_text(file_path: Path, page_number: int) -> str:
    """Read the native text layer of a page.

    Args:
        file_path: Path to PDF file
        page_number: 0-indexed page number

    Returns:
        Text in reading order (may be garbled for custom-encoded fonts)
    """
    with fitz.open(file_path) as doc:
        page = doc[page_number]
        return page.get_text("text", sort=True)


def render_page_to_image(
    file_path: Path,
    page_number: int,
    dpi: int = 200,
) -> "Image.Image":
    """Render a PDF page to a PIL Image.

    Args:
        file_path: Path to PDF file
        page_number: 0-indexed page number
        dpi: Resolution for rendering

    Returns:
        PIL Image of the rendered page
    """
    from PIL import Image as PILImage

    with fitz.open(file_path) as doc:
        page = doc[page_number]

        # 72 is the PDF default resolution
        zoom = dpi / 72
        matrix = fitz.Matrix(zoom, zoom)

        pixmap = page.get_pixmap(matrix=matrix, alpha=False)

        return PILImage.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
