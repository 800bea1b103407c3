"""SubRip (SRT) extractor."""

from __future__ import annotations

import re

from distill.extract.base import BaseExtractor

_SEQUENCE_RE = re.compile(r"^\d+$")


class SrtExtractor(BaseExtractor):
    """Drop sequence numbers and ``-->`` timing lines; keep dialogue in order."""

    formats = ("srt",)

    def extract(self, data: bytes) -> str:
        kept: list[str] = []
        for raw in self._decode(data).splitlines():
            line = raw.strip()
            if not line or _SEQUENCE_RE.match(line) or "-->" in line:
                continue
            kept.append(line)
        return self._keep_lines(kept)
