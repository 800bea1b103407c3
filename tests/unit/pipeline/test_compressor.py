"""Tests for knowledge-base compression."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from distill.db.models import BusinessUnit, Company, Project, PromptTemplate, SourceDocument
from distill.errors import CompressionError
from distill.pipeline import compressor
from distill.pipeline.compressor import (
    SALES_QUALIFICATION_PROMPT,
    SYNTHESIS_PROMPT,
    CompressionStyle,
    KnowledgeBaseCompressor,
    build_compression_message,
    order_summaries,
    register_style,
    render_section,
    style_for_category,
)

_COMPLETION = "distill.llm_client.litellm.completion"
_NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _summarised(repo, project_id, doc_id, filename, content_date=None, body=None, uploaded_at=None):
    """Insert a document whose summary is already complete."""
    repo.enqueue_document(
        SourceDocument(
            id=doc_id,
            project_id=project_id,
            filename=filename,
            file_type="md",
            file_size=10,
            blob_url=f"file:///blobs/{doc_id}",
            uploaded_by="test",
            uploaded_at=uploaded_at or _utc(2024, 5, 1),
            content_date=content_date,
            content_date_source="extracted" if content_date else None,
        )
    )
    repo.transition_summary(doc_id, "queued", "processing")
    repo.complete_summary(
        doc_id,
        content=body or f"Summary of {filename}",
        blob_url=f"file:///blobs/{doc_id}.md",
        model="m",
        token_count=100,
        truncated=False,
        prompt_template_id=None,
        when=_NOW,
    )


def _messages(mock_c):
    return mock_c.call_args[1]["messages"]


@pytest.fixture
def kb(repo):
    return KnowledgeBaseCompressor(repo, clock=lambda: _NOW)


@pytest.fixture
def three_summaries(repo, project):
    _summarised(repo, project.id, "d-jan1", "kickoff.md", _utc(2024, 1, 1, 12))
    _summarised(repo, project.id, "d-feb1", "review.md", _utc(2024, 2, 1, 12))
    _summarised(repo, project.id, "d-jan15", "checkin.md", _utc(2024, 1, 15, 12))
    return project


# ------------------------------------------------------------------
# Message construction
# ------------------------------------------------------------------


def test_sections_ordered_oldest_first(repo, kb, three_summaries, llm_response):
    with patch(_COMPLETION, return_value=llm_response("# KB")) as mock_c:
        kb.compress(three_summaries.id, 2000)

    user = _messages(mock_c)[-1]["content"]
    positions = [user.index(f"## {name}") for name in ("kickoff.md", "checkin.md", "review.md")]
    assert positions == sorted(positions)
    assert "_Content date: 2024-01-15 (extracted)_" in user
    assert user.count("\n\n---\n\n") == 2
    assert "approximately 2000 tokens" in user


def test_order_breaks_ties_by_filename(repo, project):
    same_day = _utc(2024, 1, 1, 12)
    _summarised(repo, project.id, "d-b", "b.md", same_day)
    _summarised(repo, project.id, "d-a", "a.md", same_day)
    ordered = order_summaries(repo.list_complete_summaries(project.id))
    assert [d.filename for d, _ in ordered] == ["a.md", "b.md"]


def test_undated_document_uses_upload_time(repo, project):
    _summarised(repo, project.id, "d-1", "notes.md", uploaded_at=_utc(2024, 2, 9, 8))
    doc, summary = repo.list_complete_summaries(project.id)[0]
    section = render_section(doc, summary)
    assert section.startswith("## notes.md\n_Content date: 2024-02-09 (upload-fallback)_\n\n")
    assert section.endswith("Summary of notes.md")


def test_org_context_precedes_summaries(repo, llm_response):
    repo.add_company(Company(id="c1", name="Acme", context="Acme sells widgets."))
    repo.add_business_unit(BusinessUnit(id="b1", company_id="c1", name="EMEA", context="EMEA team."))
    repo.add_project(Project(id="p1", name="Rollout", company_id="c1", business_unit_id="b1"))
    _summarised(repo, "p1", "d-1", "a.md", _utc(2024, 1, 1))

    with patch(_COMPLETION, return_value=llm_response("# KB")) as mock_c:
        KnowledgeBaseCompressor(repo).compress("p1", 1000)

    user = _messages(mock_c)[-1]["content"]
    assert user.startswith("# Organizational context: Company: Acme\n\nAcme sells widgets.")
    assert user.index("Business unit: EMEA") < user.index("ordered from oldest to most recent")
    assert user.index("ordered from oldest to most recent") < user.index("## a.md")


def test_message_without_org_context_starts_with_intro():
    message = build_compression_message([], 500)
    assert message.startswith("The following are document summaries")


# ------------------------------------------------------------------
# Model call and persistence
# ------------------------------------------------------------------


def test_compress_persists_result(repo, kb, three_summaries, llm_response):
    response = llm_response("# Knowledge Base", prompt_tokens=5000, completion_tokens=1800)
    with patch(_COMPLETION, return_value=response):
        result = kb.compress(three_summaries.id, 2000, actor="alice")

    assert result.content == "# Knowledge Base"
    assert result.summary_count == 3
    assert result.style == "synthesis"

    project = repo.get_project(three_summaries.id)
    assert project.compressed_kb == "# Knowledge Base"
    assert project.compressed_kb_tokens == 1800
    assert project.compressed_kb_at == _NOW
    assert project.compression_started_at is None

    usage = repo.list_llm_usage(three_summaries.id)
    assert len(usage) == 1
    assert usage[0].document_id is None

    entry = repo.list_activity(three_summaries.id)[-1]
    assert entry.action == "kb_compressed"
    assert entry.actor == "alice"
    assert entry.metadata_dict == {"targetTokens": 2000, "outputTokens": 1800, "summaryCount": 3}


@pytest.mark.parametrize("target,expected", [(1000, 2000), (4096, 8192), (20_000, 8192)])
def test_output_ceiling(repo, kb, three_summaries, llm_response, target, expected):
    with patch(_COMPLETION, return_value=llm_response("# KB")) as mock_c:
        kb.compress(three_summaries.id, target)
    assert mock_c.call_args[1]["max_tokens"] == expected


def test_default_style_system_prompt(repo, kb, three_summaries, llm_response):
    with patch(_COMPLETION, return_value=llm_response("# KB")) as mock_c:
        kb.compress(three_summaries.id, 1000)
    assert _messages(mock_c)[0] == {"role": "system", "content": SYNTHESIS_PROMPT}


def test_sales_project_uses_sales_style(repo, llm_response):
    repo.add_project(Project(id="p-sales", name="Globex deal", category="sales"))
    _summarised(repo, "p-sales", "d-1", "discovery.md", _utc(2024, 1, 1))
    with patch(_COMPLETION, return_value=llm_response("# Deal")) as mock_c:
        result = KnowledgeBaseCompressor(repo).compress("p-sales", 1000)
    assert result.style == "sales_qualification"
    assert _messages(mock_c)[0]["content"] == SALES_QUALIFICATION_PROMPT


def test_stored_template_overrides_style_prompt(repo, kb, three_summaries, llm_response):
    repo.add_template(PromptTemplate(id="t1", name="Mine", content="CUSTOM SYSTEM", slug="kb_compression"))
    with patch(_COMPLETION, return_value=llm_response("# KB")) as mock_c:
        kb.compress(three_summaries.id, 1000)
    assert _messages(mock_c)[0]["content"] == "CUSTOM SYSTEM"


# ------------------------------------------------------------------
# Preconditions and failure
# ------------------------------------------------------------------


def test_unknown_project(kb):
    with pytest.raises(CompressionError, match="Project not found"):
        kb.compress("nope", 1000)


@pytest.mark.parametrize("target", [99, 50_001])
def test_target_out_of_bounds(kb, three_summaries, target):
    with patch(_COMPLETION) as mock_c:
        with pytest.raises(CompressionError, match="between 100 and 50000"):
            kb.compress(three_summaries.id, target)
    mock_c.assert_not_called()


def test_no_complete_summaries(repo, kb, project):
    with pytest.raises(CompressionError, match="no complete summaries"):
        kb.compress(project.id, 1000)


def test_concurrent_compression_is_rejected(repo, kb, three_summaries):
    assert repo.claim_compression(three_summaries.id) is True
    with patch(_COMPLETION) as mock_c:
        with pytest.raises(CompressionError, match="already running"):
            kb.compress(three_summaries.id, 1000)
    mock_c.assert_not_called()
    # the other caller's claim is left alone
    assert repo.get_project(three_summaries.id).compression_started_at is not None


def test_abandoned_claim_does_not_block_compression(repo, kb, three_summaries, llm_response):
    # a worker killed mid-compression a month ago never released its claim
    assert repo.claim_compression(three_summaries.id, _utc(2024, 5, 1)) is True
    with patch(_COMPLETION, return_value=llm_response("# KB")):
        result = kb.compress(three_summaries.id, 1000)
    assert result.content == "# KB"
    assert repo.get_project(three_summaries.id).compression_started_at is None


def test_usage_write_failure_leaves_previous_kb(repo, kb, three_summaries, llm_response, monkeypatch):
    repo.set_compressed_kb(three_summaries.id, "# Old KB", 42, _utc(2024, 3, 1))

    def broken_usage(usage):
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(repo, "add_llm_usage", broken_usage)
    with patch(_COMPLETION, return_value=llm_response("# New KB")):
        with pytest.raises(CompressionError, match="disk I/O error"):
            kb.compress(three_summaries.id, 1000)

    project = repo.get_project(three_summaries.id)
    assert project.compressed_kb == "# Old KB"
    assert project.compressed_kb_tokens == 42
    assert project.compression_started_at is None


def test_model_failure_leaves_previous_kb(repo, kb, three_summaries):
    repo.set_compressed_kb(three_summaries.id, "# Old KB", 42, _utc(2024, 3, 1))
    with patch(_COMPLETION, side_effect=RuntimeError("overloaded")):
        with pytest.raises(CompressionError, match="overloaded"):
            kb.compress(three_summaries.id, 1000)

    project = repo.get_project(three_summaries.id)
    assert project.compressed_kb == "# Old KB"
    assert project.compressed_kb_tokens == 42
    assert project.compression_started_at is None
    assert repo.list_llm_usage(three_summaries.id) == []


# ------------------------------------------------------------------
# Style registry
# ------------------------------------------------------------------


def test_style_for_unknown_category_is_synthesis():
    assert style_for_category("engineering").name == "synthesis"
    assert style_for_category(None).name == "synthesis"


def test_category_lookup_is_case_insensitive():
    assert style_for_category("Sales").name == "sales_qualification"


def test_register_style(monkeypatch):
    monkeypatch.setattr(compressor, "COMPRESSION_STYLES", dict(compressor.COMPRESSION_STYLES))
    monkeypatch.setattr(compressor, "_CATEGORY_STYLES", dict(compressor._CATEGORY_STYLES))
    legal = CompressionStyle(name="legal", slug="kb_compression_legal", title="Legal", system_prompt="L")
    register_style(legal, categories=("Legal",))
    assert style_for_category("legal") is legal
