"""Rasterize PDF pages into base64 PNGs for the vision model."""

from __future__ import annotations

import base64
import io
import logging
from typing import List, Optional

import pdfplumber

from .scan_types import PageImage

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 144


class PdfRenderError(RuntimeError):
    """The document could not be opened or one of its pages failed to render."""


def _page_to_base64(page, resolution: int) -> str:
    page_image = page.to_image(resolution=resolution).original.convert("RGB")
    buffer = io.BytesIO()
    page_image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def render_pdf_pages(
    document_bytes: bytes,
    *,
    resolution: int = DEFAULT_RESOLUTION,
    max_pages: Optional[int] = None,
) -> List[PageImage]:
    """Render every page in document order.

    A page that fails to render fails the whole document; a partial page
    list would shift every later page index.
    """
    if not document_bytes:
        raise PdfRenderError("Empty document")
    pages: List[PageImage] = []
    try:
        with pdfplumber.open(io.BytesIO(document_bytes)) as pdf:
            total = len(pdf.pages)
            if max_pages is not None and total > max_pages:
                raise PdfRenderError(f"Document has {total} pages, limit is {max_pages}")
            for index, page in enumerate(pdf.pages):
                pages.append(PageImage(page_index=index, data_b64=_page_to_base64(page, resolution)))
    except PdfRenderError:
        raise
    except Exception as exc:
        raise PdfRenderError(f"Failed to render PDF: {exc}") from exc
    logger.info("Rendered %s pages at %s dpi", len(pages), resolution)
    return pages
