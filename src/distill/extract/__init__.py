"""distill format extractors: raw bytes to plain text, one class per format."""

from __future__ import annotations

from distill.errors import UnsupportedFormat
from distill.extract.base import BaseExtractor
from distill.extract.pdf import PdfExtractor
from distill.extract.plaintext import PlainTextExtractor
from distill.extract.srt import SrtExtractor
from distill.extract.vtt import VttExtractor

_EXTRACTORS: dict[str, BaseExtractor] = {}
for _extractor in (PlainTextExtractor(), VttExtractor(), SrtExtractor(), PdfExtractor()):
    for _fmt in _extractor.formats:
        _EXTRACTORS[_fmt] = _extractor

SUPPORTED_FORMATS: frozenset[str] = frozenset(_EXTRACTORS)


def extract(data: bytes, fmt: str) -> str:
    """Extract plain text from *data* according to its format tag.

    Raises:
        UnsupportedFormat: *fmt* is not one of txt, md, vtt, srt, pdf.
        ExtractionError: The extractor could not read the bytes.
    """
    extractor = _EXTRACTORS.get(fmt)
    if extractor is None:
        raise UnsupportedFormat(fmt)
    return extractor.extract(data)


__all__ = [
    "BaseExtractor",
    "PdfExtractor",
    "PlainTextExtractor",
    "SrtExtractor",
    "SUPPORTED_FORMATS",
    "VttExtractor",
    "extract",
]
