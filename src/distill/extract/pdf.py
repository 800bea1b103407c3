"""PDF extractor: page text layer via pypdf."""

from __future__ import annotations

import io

import pypdf
from pypdf.errors import PyPdfError

from distill.errors import ExtractionError
from distill.extract.base import BaseExtractor


class PdfExtractor(BaseExtractor):
    """Extract the text layer of a PDF.

    Strategy:
    - Read the document from memory with ``pypdf.PdfReader``.
    - Extract text page by page; pages that yield nothing (scanned images)
      are skipped.
    - Join page texts with a blank line.

    Encrypted or corrupt files, and files with no text layer at all, raise
    :class:`ExtractionError`. None of these are retried.
    """

    formats = ("pdf",)

    def extract(self, data: bytes) -> str:
        try:
            reader = pypdf.PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                raise ExtractionError("PDF is encrypted; cannot extract text")
            parts: list[str] = []
            for page in reader.pages:
                page_text = (page.extract_text() or "").strip()
                if page_text:
                    parts.append(page_text)
        except ExtractionError:
            raise
        except (PyPdfError, ValueError, KeyError, TypeError, OSError) as exc:
            raise ExtractionError(f"Failed to read PDF: {exc}") from exc

        if not parts:
            raise ExtractionError("PDF has no extractable text layer")
        return "\n\n".join(parts)
