"""Plain text and markdown extractor: verbatim UTF-8."""

from __future__ import annotations

from distill.extract.base import BaseExtractor


class PlainTextExtractor(BaseExtractor):
    """Return the document text unchanged.

    Markdown is summarised as-is; no rendering or stripping is applied.
    """

    formats = ("txt", "md")

    def extract(self, data: bytes) -> str:
        return self._decode(data)
