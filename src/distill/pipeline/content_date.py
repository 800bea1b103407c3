"""Content-date inference: when was this document's substance created?

Priority, first match wins:
  1. In-content header: ``Date:`` for raw email, ``DTSTART`` for calendar
     invites. Transcripts (vtt/srt) never carry a trustworthy in-file date.
  2. Filename: ISO ``YYYY-MM-DD``, compact ``YYYYMMDD``, then
     ``Month D, YYYY`` with an English month name.
  3. Nothing → ``(None, None)``; the caller falls back to upload time.

Every candidate must land in years 2000–2100 inclusive, which filters out
false positives from arbitrary digit runs.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import PurePath

from distill.db.models import DATE_SOURCE_EXTRACTED

_MIN_YEAR = 2000
_MAX_YEAR = 2100

_EMAIL_HEADER_BYTES = 4096
_ICS_HEADER_BYTES = 8192

_EMAIL_DATE_RE = re.compile(r"^Date:[ \t]*(.+?)[ \t]*$", re.IGNORECASE | re.MULTILINE)
_ICS_DTSTART_RE = re.compile(
    r"^DTSTART(?:;[^:\r\n]+)?:(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z?)",
    re.IGNORECASE | re.MULTILINE,
)

_ISO_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_COMPACT_RE = re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)")

_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_RE = re.compile(
    r"(?<![A-Za-z])(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
    r"\s+(\d{1,2})(?:st|nd|rd|th)?[,\s]+(\d{4})(?!\d)",
    re.IGNORECASE,
)


def infer_content_date(
    data: bytes, fmt: str, filename: str
) -> tuple[datetime | None, str | None]:
    """Infer the content date of a document.

    Args:
        data: Raw document bytes.
        fmt: Format tag (txt, md, vtt, srt, pdf, or the synthetic email / ics).
        filename: Original filename, used for the filename-pattern fallback.

    Returns:
        ``(date, "extracted")`` on success, ``(None, None)`` otherwise.
    """
    found = _from_content(data, fmt) or _from_filename(filename)
    if found is None:
        return None, None
    return found, DATE_SOURCE_EXTRACTED


def _valid(value: datetime | None) -> datetime | None:
    if value is None or not _MIN_YEAR <= value.year <= _MAX_YEAR:
        return None
    return value


def _at_noon(year: int, month: int, day: int) -> datetime | None:
    """Filename dates carry no time; place them at 12:00 UTC."""
    try:
        return _valid(datetime(year, month, day, 12, tzinfo=timezone.utc))
    except ValueError:
        return None


# ------------------------------------------------------------------
# In-content headers
# ------------------------------------------------------------------


def _from_content(data: bytes, fmt: str) -> datetime | None:
    if fmt == "email":
        return _from_email(data)
    if fmt == "ics":
        return _from_ics(data)
    return None


def _from_email(data: bytes) -> datetime | None:
    head = data[:_EMAIL_HEADER_BYTES].decode("utf-8", errors="replace")
    match = _EMAIL_DATE_RE.search(head)
    if not match:
        return None
    return _valid(_parse_calendar_date(match.group(1)))


def _parse_calendar_date(raw: str) -> datetime | None:
    """RFC 2822 first (mail headers), ISO 8601 second."""
    parsed: datetime | None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _from_ics(data: bytes) -> datetime | None:
    head = data[:_ICS_HEADER_BYTES].decode("utf-8", errors="replace")
    match = _ICS_DTSTART_RE.search(head)
    if not match:
        return None
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    try:
        # Floating and TZID times are read as UTC.
        value = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None
    return _valid(value)


# ------------------------------------------------------------------
# Filename patterns
# ------------------------------------------------------------------


def _from_filename(filename: str) -> datetime | None:
    base = PurePath(filename).stem

    match = _ISO_RE.search(base)
    if match:
        found = _at_noon(*(int(g) for g in match.groups()))
        if found:
            return found

    match = _COMPACT_RE.search(base)
    if match:
        found = _at_noon(*(int(g) for g in match.groups()))
        if found:
            return found

    match = _MONTH_RE.search(base)
    if match:
        month = _MONTHS[match.group(1)[:3].lower()]
        found = _at_noon(int(match.group(3)), month, int(match.group(2)))
        if found:
            return found

    return None
