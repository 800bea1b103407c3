"""Base extractor interface for all distill source formats."""

from __future__ import annotations

from abc import ABC, abstractmethod

from distill.errors import ExtractionError


class BaseExtractor(ABC):
    """Abstract base for all format extractors.

    Subclasses implement ``extract()``; transcript formats can use
    ``_decode()`` and ``_keep_lines()`` for the shared line-filter path.
    """

    #: Format tags this extractor handles.
    formats: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, data: bytes) -> str:
        """Convert raw document *data* into plain text.

        Raises:
            ExtractionError: The bytes cannot be turned into text.
        """

    @staticmethod
    def _decode(data: bytes) -> str:
        """Strict UTF-8 decode; a leading BOM is dropped."""
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(f"File is not valid UTF-8 text: {exc}") from exc

    @staticmethod
    def _keep_lines(lines: list[str]) -> str:
        """Join the surviving stripped, non-blank lines with newlines."""
        return "\n".join(line for line in lines if line)
