"""Deterministic input truncation ahead of summarisation."""

from __future__ import annotations

from dataclasses import dataclass

# ~180K tokens at 4 chars/token.
MAX_CHARS = 720_000


@dataclass(frozen=True)
class TruncationResult:
    text: str
    truncated: bool
    percent_covered: int


def truncate(text: str, max_chars: int = MAX_CHARS) -> TruncationResult:
    """Cut *text* to its first *max_chars* characters.

    Character truncation, not sentence-aware. The boundary is inclusive: a
    text of exactly *max_chars* is returned untouched. ``percent_covered`` is
    rounded half-up.
    """
    length = len(text)
    if length <= max_chars:
        return TruncationResult(text=text, truncated=False, percent_covered=100)

    percent = (max_chars * 200 + length) // (2 * length)
    return TruncationResult(text=text[:max_chars], truncated=True, percent_covered=percent)


def truncation_notice(percent_covered: int) -> str:
    """Blockquote prepended to summaries built from truncated input."""
    return (
        "> Note: The source document was truncated to fit processing limits. "
        f"This summary covers approximately the first {percent_covered}% of the document."
    )
