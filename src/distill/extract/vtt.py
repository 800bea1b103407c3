"""WebVTT extractor: keeps spoken lines, drops cue scaffolding."""

from __future__ import annotations

import re

from distill.extract.base import BaseExtractor

_CUE_ID_RE = re.compile(r"^\d+$")


class VttExtractor(BaseExtractor):
    """Strip a WebVTT file down to its dialogue.

    Removed: the ``WEBVTT`` header line, ``NOTE`` blocks (up to the next
    blank line), numeric cue identifiers and ``-->`` timing lines. Speaker
    labels (``Alice: ...`` or ``<v Alice>``) stay with their dialogue.
    """

    formats = ("vtt",)

    def extract(self, data: bytes) -> str:
        kept: list[str] = []
        in_note = False
        for raw in self._decode(data).splitlines():
            line = raw.strip()
            if not line:
                in_note = False
                continue
            if in_note:
                continue
            if line.startswith("WEBVTT"):
                continue
            if line == "NOTE" or line.startswith(("NOTE ", "NOTE\t")):
                in_note = True
                continue
            if "-->" in line or _CUE_ID_RE.match(line):
                continue
            kept.append(line)
        return self._keep_lines(kept)
