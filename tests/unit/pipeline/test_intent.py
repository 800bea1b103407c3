"""Tests for the plain-text intent classifier."""

from __future__ import annotations

from unittest.mock import patch

from distill.pipeline.intent import DOCUMENT, TRANSCRIPT, classify_intent

_COMPLETION = "distill.llm_client.litellm.completion"


def test_transcript_answer(llm_response):
    with patch(_COMPLETION, return_value=llm_response("transcript")):
        assert classify_intent("Alice: hi\nBob: hello") == TRANSCRIPT


def test_answer_is_case_and_noise_insensitive(llm_response):
    with patch(_COMPLETION, return_value=llm_response(' "Transcript".')):
        assert classify_intent("x") == TRANSCRIPT


def test_document_answer(llm_response):
    with patch(_COMPLETION, return_value=llm_response("document")):
        assert classify_intent("Quarterly report") == DOCUMENT


def test_unexpected_answer_is_document(llm_response):
    with patch(_COMPLETION, return_value=llm_response("maybe")):
        assert classify_intent("x") == DOCUMENT


def test_provider_error_fails_safe_to_document():
    with patch(_COMPLETION, side_effect=RuntimeError("rate limited")):
        assert classify_intent("Alice: hi") == DOCUMENT


def test_empty_response_fails_safe_to_document(llm_response):
    with patch(_COMPLETION, return_value=llm_response(None)):
        assert classify_intent("Alice: hi") == DOCUMENT


def test_only_sample_is_sent(llm_response):
    text = "A" * 500 + "B" * 1000
    with patch(_COMPLETION, return_value=llm_response("document")) as mock_c:
        classify_intent(text)
    prompt = mock_c.call_args[1]["messages"][-1]["content"]
    assert "A" * 500 in prompt
    assert "B" not in prompt


def test_small_token_budget_and_no_retries(llm_response):
    with patch(_COMPLETION, return_value=llm_response("document")) as mock_c:
        classify_intent("x", model="openai/gpt-4o-mini")
    kwargs = mock_c.call_args[1]
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["max_tokens"] == 5
    assert kwargs["num_retries"] == 0
