from __future__ import annotations

import io
from typing import List

from pypdf import PdfReader

from ..exceptions import InputValidationError


def count_pdf_pages(data: bytes) -> int:
    """Count pages of a PDF from raw bytes.

    Raises InputValidationError on invalid or unreadable PDFs.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        return len(reader.pages)
    except Exception as exc:  # noqa: BLE001 broad, returns user error
        raise InputValidationError("Invalid or unreadable PDF") from exc


def extract_pdf_text(data: bytes) -> List[str]:
    """Text layer of each page (empty strings for image-only pages)."""
    try:
        reader = PdfReader(io.BytesIO(data))
        return [(page.extract_text() or "") for page in reader.pages]
    except Exception as exc:  # noqa: BLE001
        raise InputValidationError("Invalid or unreadable PDF") from exc
