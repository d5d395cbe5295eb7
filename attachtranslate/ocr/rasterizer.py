# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
from pathlib import Path
from typing import Protocol

import fitz  # PyMuPDF
from PIL import Image

from attachtranslate.errors import RenderError

DEFAULT_DPI = 200


class PdfRasterizer(Protocol):
    def page_count(self, source: Path | bytes) -> int: ...

    def render_page(self, source: Path | bytes, page_no: int, dpi: int = DEFAULT_DPI) -> bytes: ...


def _open(source: Path | bytes):
    try:
        if isinstance(source, (bytes, bytearray)):
            return fitz.open(stream=bytes(source), filetype="pdf")
        return fitz.open(str(source))
    except (RuntimeError, ValueError) as e:
        raise RenderError(f"cannot open PDF: {e}") from e


class PyMuPDFRasterizer:
    """Renders PDF pages to PNG with PyMuPDF (72 dpi is zoom 1.0)."""

    def page_count(self, source: Path | bytes) -> int:
        with _open(source) as doc:
            return len(doc)

    def render_page(self, source: Path | bytes, page_no: int, dpi: int = DEFAULT_DPI) -> bytes:
        zoom = dpi / 72.0
        with _open(source) as doc:
            if page_no < 0 or page_no >= len(doc):
                raise RenderError(f"page {page_no + 1} out of range (document has {len(doc)} pages)")
            pix = doc[page_no].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
            return pix.tobytes("png")


def encode_pdf(pages: list[bytes], dpi: int = DEFAULT_DPI) -> bytes:
    """Re-encode rendered page images as an image-only PDF."""
    if not pages:
        raise RenderError("PDF has no pages")
    images = []
    for data in pages:
        image = Image.open(io.BytesIO(data))
        images.append(image.convert("RGB"))
    out = io.BytesIO()
    images[0].save(out, format="PDF", save_all=True, append_images=images[1:], resolution=float(dpi))
    return out.getvalue()
