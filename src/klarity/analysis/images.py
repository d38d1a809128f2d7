from __future__ import annotations

import base64
import mimetypes
import os

import fitz  # PyMuPDF

from ..errors import AnalysisError
from ..logging import get_logger


LOG = get_logger("analysis-images")

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
PDF_RENDER_DPI = 150


def render_pdf_first_page(path: str, dpi: int = PDF_RENDER_DPI) -> bytes:
    """Render page 1 of a PDF quote to PNG bytes."""
    LOG.debug(f"Rendering first page of PDF to PNG: {path}")
    with fitz.open(path) as doc:
        if doc.page_count == 0:
            raise AnalysisError(f"PDF has no pages: {path}")
        page = doc.load_page(0)
        mat = fitz.Matrix(dpi / 72, dpi / 72)
        pix = page.get_pixmap(matrix=mat)
        return pix.tobytes("png")


def bytes_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def data_url_from_path(path: str) -> str:
    """Base64 data URL for a quote image; PDFs are rasterised first."""
    if not os.path.isfile(path):
        raise AnalysisError(f"File not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext == ".pdf":
        url = bytes_data_url(render_pdf_first_page(path), "image/png")
    elif ext in IMAGE_EXTENSIONS:
        mime, _ = mimetypes.guess_type(path)
        with open(path, "rb") as f:
            url = bytes_data_url(f.read(), mime or "image/png")
    else:
        raise AnalysisError(f"Unsupported quote file type: {ext or '(none)'}")
    LOG.debug("Built data URL for %s (~%.2f MiB)", os.path.basename(path), len(url) / (1024 * 1024))
    return url
