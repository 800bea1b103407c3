"""Summarization invoker: one model call per prompt, no retries."""

from __future__ import annotations

from dataclasses import dataclass

from distill import llm_client

_DEFAULT_MODEL = "anthropic/claude-sonnet-4-20250514"
_DEFAULT_MAX_TOKENS = 8_192


@dataclass(frozen=True)
class SummaryResult:
    content: str
    model: str
    input_tokens: int
    output_tokens: int


def summarize(
    prompt: str,
    model: str = _DEFAULT_MODEL,
    max_output_tokens: int = _DEFAULT_MAX_TOKENS,
    timeout: float | None = None,
) -> SummaryResult:
    """Send *prompt* to the completion service and return its markdown.

    Raises:
        NoTextContent: The response carried no text block.
        InvocationError: Provider failure. The orchestrator decides on retry.
    """
    result = llm_client.complete(
        model,
        prompt,
        max_tokens=max_output_tokens,
        timeout=timeout,
        num_retries=0,
    )
    return SummaryResult(
        content=result.text,
        model=result.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
    )
