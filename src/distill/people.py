"""Helpers for turning raw transcript and mail text into roster entries."""

from __future__ import annotations

import re

_SPEAKER_RE = re.compile(r"^([A-Za-z][A-Za-z0-9_ ]+?):\s")
_GENERIC_SPEAKER_RE = re.compile(r"^SPEAKER_\d+$", re.IGNORECASE)
_ADDRESS_RE = re.compile(r"^(.+?)\s*<([^>]+)>$")


def parse_speaker_label(line: str) -> str | None:
    """Speaker name from a ``Name: text`` transcript line.

    Diarisation placeholders such as ``SPEAKER_00`` are not names and
    yield None.
    """
    match = _SPEAKER_RE.match(line)
    if not match:
        return None
    label = match.group(1).strip()
    if _GENERIC_SPEAKER_RE.match(label):
        return None
    return label


def parse_email_address(raw: str) -> tuple[str, str]:
    """Split ``Display Name <addr>`` into ``(name, addr)``.

    A bare address gets a name derived from its local part
    (``jane.doe@x.com`` → ``jane doe``).
    """
    match = _ADDRESS_RE.match(raw.strip())
    if match:
        name = match.group(1).strip().strip("\"'")
        return name, match.group(2).strip()
    address = raw.strip()
    name = re.sub(r"[._-]", " ", address.split("@")[0])
    return name, address


def speakers_in(text: str) -> list[str]:
    """Distinct speaker labels in *text*, in first-seen order."""
    seen: dict[str, None] = {}
    for line in text.splitlines():
        label = parse_speaker_label(line)
        if label and label.lower() not in (s.lower() for s in seen):
            seen[label] = None
    return list(seen)
