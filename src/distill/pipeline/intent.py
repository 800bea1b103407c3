"""Plain-text intent detection: meeting transcript or general document?

Only consulted for ``txt`` sources; vtt/srt are always transcripts and
pdf/md always documents. One short model call on the first few hundred
characters decides. Any failure resolves to ``"document"`` and never
aborts the pipeline.
"""

from __future__ import annotations

import logging
from typing import Literal

from distill import llm_client
from distill.errors import ClassifierError, DistillError

logger = logging.getLogger(__name__)

Intent = Literal["transcript", "document"]

TRANSCRIPT: Intent = "transcript"
DOCUMENT: Intent = "document"

_DEFAULT_MODEL = "anthropic/claude-haiku-4-5-20251001"
_SAMPLE_CHARS = 500

_CLASSIFY_PROMPT = """\
Look at this text sample and respond with ONE word only: either "transcript" \
(if it appears to be a meeting transcript, interview, or conversation with speaker \
labels or timestamps) or "document" (if it appears to be a report, article, email, \
or general document).

TEXT:
{sample}"""


def classify_intent(
    text: str,
    model: str = _DEFAULT_MODEL,
    sample_chars: int = _SAMPLE_CHARS,
    max_tokens: int = 5,
) -> Intent:
    """Classify *text* as ``"transcript"`` or ``"document"``. Never raises."""
    try:
        answer = _ask(text[:sample_chars], model, max_tokens)
    except ClassifierError as exc:
        logger.warning("intent.failed model=%s: %s", model, exc)
        return DOCUMENT
    return TRANSCRIPT if "transcript" in answer.lower() else DOCUMENT


def _ask(sample: str, model: str, max_tokens: int) -> str:
    try:
        result = llm_client.complete(
            model,
            _CLASSIFY_PROMPT.format(sample=sample),
            max_tokens=max_tokens,
        )
    except DistillError as exc:
        raise ClassifierError(str(exc)) from exc
    except Exception as exc:
        raise ClassifierError(f"{type(exc).__name__}: {exc}") from exc
    return result.text.strip()
