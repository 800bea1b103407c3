"""Tests for prompt selection, template resolution and interpolation."""

from __future__ import annotations

import pytest

from distill.db.models import PromptTemplate, RosterEntry
from distill.pipeline.prompts import (
    GENERAL_CONTENT_PROMPT,
    MEETING_TRANSCRIPT_PROMPT,
    SLUG_GENERAL_CONTENT,
    SLUG_KB_COMPRESSION,
    SLUG_KB_COMPRESSION_SALES,
    SLUG_MEETING_TRANSCRIPT,
    build_prompt,
    format_people,
    resolve_template,
    seed_system_templates,
    select_prompt_slug,
)

_PLACEHOLDERS = ("{{filename}}", "{{fileType}}", "{{people}}", "{{extractedText}}")


# ------------------------------------------------------------------
# Slug selection
# ------------------------------------------------------------------


@pytest.mark.parametrize("fmt", ["vtt", "srt"])
def test_caption_formats_use_transcript_prompt(fmt):
    assert select_prompt_slug(fmt) == SLUG_MEETING_TRANSCRIPT


def test_txt_transcript_intent_uses_transcript_prompt():
    assert select_prompt_slug("txt", "transcript") == SLUG_MEETING_TRANSCRIPT


def test_txt_document_intent_uses_general_prompt():
    assert select_prompt_slug("txt", "document") == SLUG_GENERAL_CONTENT


@pytest.mark.parametrize("fmt", ["pdf", "md"])
def test_documents_use_general_prompt(fmt):
    assert select_prompt_slug(fmt, "transcript") == SLUG_GENERAL_CONTENT


# ------------------------------------------------------------------
# Interpolation
# ------------------------------------------------------------------


def test_build_prompt_substitutes_all_placeholders():
    text = "Alice: hello\nBob: hi"
    prompt = build_prompt("Weekly Sync.txt", "txt", text)
    assert "Weekly Sync.txt" in prompt
    assert "FILE TYPE: txt" in prompt
    assert text in prompt
    for token in _PLACEHOLDERS:
        assert token not in prompt


def test_build_prompt_with_custom_template():
    template = "{{fileType}}|{{filename}}|{{extractedText}}|{{filename}}{{people}}"
    assert build_prompt("a.md", "md", "BODY", template) == "md|a.md|BODY|a.md"


def test_build_prompt_people_block():
    prompt = build_prompt("a.txt", "txt", "x", "{{people}}", people="- Alice")
    assert prompt == "\nPROJECT PEOPLE:\n- Alice\n"


def test_build_prompt_empty_people_renders_nothing():
    assert build_prompt("a.txt", "txt", "x", "[{{people}}]", people=None) == "[]"


def test_build_prompt_does_not_rescan_substituted_text():
    text = "literal {{filename}} inside the source"
    prompt = build_prompt("real.txt", "txt", text, "{{extractedText}}")
    assert prompt == text


def test_build_prompt_leaves_unknown_tokens():
    assert build_prompt("a", "txt", "b", "{{unknown}} {{filename}}") == "{{unknown}} a"


def test_builtin_templates_carry_all_placeholders():
    for template in (GENERAL_CONTENT_PROMPT, MEETING_TRANSCRIPT_PROMPT):
        for token in _PLACEHOLDERS:
            assert token in template


# ------------------------------------------------------------------
# Roster formatting
# ------------------------------------------------------------------


def test_format_people_full_entry():
    roster = [RosterEntry(name="Alice Smith", email="alice@acme.com", role="PM", organization="Acme")]
    assert format_people(roster) == "- Alice Smith <alice@acme.com> (PM) — Acme"


def test_format_people_omits_missing_fields():
    roster = [RosterEntry(name="Bob"), RosterEntry(name="Carol", organization="Globex")]
    assert format_people(roster) == "- Bob\n- Carol — Globex"


def test_format_people_empty_roster():
    assert format_people([]) is None


# ------------------------------------------------------------------
# Template resolution
# ------------------------------------------------------------------


def test_resolve_falls_back_to_builtin(repo):
    resolved = resolve_template(repo, SLUG_MEETING_TRANSCRIPT)
    assert resolved.content == GENERAL_CONTENT_PROMPT
    assert resolved.template_id is None


def test_resolve_prefers_slugged_template(repo):
    repo.add_template(PromptTemplate(id="t-default", name="Default", content="D", is_default=True))
    repo.add_template(PromptTemplate(id="t-mt", name="MT", content="M", slug=SLUG_MEETING_TRANSCRIPT))
    resolved = resolve_template(repo, SLUG_MEETING_TRANSCRIPT)
    assert resolved.template_id == "t-mt"
    assert resolved.content == "M"


def test_resolve_uses_default_when_slug_missing(repo):
    repo.add_template(PromptTemplate(id="t-default", name="Default", content="D", is_default=True))
    resolved = resolve_template(repo, SLUG_MEETING_TRANSCRIPT)
    assert resolved.template_id == "t-default"


# ------------------------------------------------------------------
# Seeding
# ------------------------------------------------------------------


def test_seed_creates_system_templates(repo):
    created = seed_system_templates(repo)
    assert set(created) == {
        SLUG_MEETING_TRANSCRIPT,
        SLUG_GENERAL_CONTENT,
        SLUG_KB_COMPRESSION,
        SLUG_KB_COMPRESSION_SALES,
    }
    assert repo.get_default_template().slug == SLUG_GENERAL_CONTENT


def test_seed_is_idempotent_and_keeps_edits(repo):
    seed_system_templates(repo)
    edited = repo.get_template_by_slug(SLUG_MEETING_TRANSCRIPT)
    repo.update_template_content(edited.id, "custom {{extractedText}}")

    assert seed_system_templates(repo) == []
    assert repo.get_template_by_slug(SLUG_MEETING_TRANSCRIPT).content == "custom {{extractedText}}"


def test_seed_keeps_existing_default(repo):
    repo.add_template(PromptTemplate(id="mine", name="Mine", content="X", is_default=True))
    seed_system_templates(repo)
    assert repo.get_default_template().id == "mine"
