"""Knowledge-base compression: many dated summaries in, one document out.

Summaries are ordered oldest → newest by effective date (content date, else
upload time) so the model can let later material supersede earlier material.
The system prompt comes from a :class:`CompressionStyle` picked by project
category; new styles are added with :func:`register_style`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from distill import llm_client
from distill.activity import record_activity
from distill.config import DistillConfig
from distill.db.models import (
    DATE_SOURCE_UPLOAD_FALLBACK,
    LlmUsage,
    SourceDocument,
    SummaryArtifact,
    utcnow,
)
from distill.db.repository import Repository
from distill.errors import CompressionError

logger = logging.getLogger(__name__)

SYNTHESIS_PROMPT = """\
You are a knowledge base curator. Your task is to compress and synthesize a \
collection of document summaries into a single, coherent knowledge base document.

Guidelines:
- Preserve all critical information: key decisions, action items, facts, names, dates, and outcomes
- Eliminate redundancy across summaries and consolidate repeated themes
- Organize by topic or theme rather than preserving per-document structure
- Use clear Markdown formatting with headers, bullets, and emphasis where helpful
- Maintain chronological context where it matters (reference specific dates for key events)
- Deprioritize older content when it conflicts with or has been superseded by more recent content
- Write in a dense, reference-friendly style; this will be fed into AI systems, not read casually
- Do NOT include a preamble like "Here is your compressed knowledge base"; start directly with content"""

SALES_QUALIFICATION_PROMPT = """\
You are a sales intelligence analyst. Compress a collection of account document \
summaries into a single deal-qualification knowledge base for the account team.

Organize the output under these headings, in this order:
- Account Overview: who the customer is and what they do
- Pain Points & Business Drivers: problems stated in their own words where possible
- Stakeholders & Buying Roles: champion, economic buyer, decision makers, blockers
- Decision Criteria & Process: how they will evaluate and decide, including timeline
- Budget & Commercials: pricing discussed, budget signals, procurement steps
- Competition & Alternatives
- Risks & Open Questions
- Next Steps & Commitments: owner and date for each

Guidelines:
- Preserve names, titles, dates, figures, and commitments exactly
- Prefer the most recent information when sources conflict and note what changed
- Mark anything inferred rather than stated with "(inferred)"
- Use dense Markdown bullets; no preamble, start directly with content"""


@dataclass(frozen=True)
class CompressionStyle:
    name: str
    slug: str  # prompt_templates.slug that overrides system_prompt
    title: str
    system_prompt: str


COMPRESSION_STYLES: dict[str, CompressionStyle] = {}
_CATEGORY_STYLES: dict[str, str] = {}
_DEFAULT_STYLE = "synthesis"

# A claim older than the provider timeout plus this grace belongs to a dead worker.
_CLAIM_GRACE = timedelta(minutes=5)


def register_style(style: CompressionStyle, categories: tuple[str, ...] = ()) -> None:
    """Add *style* to the registry and route *categories* to it."""
    COMPRESSION_STYLES[style.name] = style
    for category in categories:
        _CATEGORY_STYLES[category.lower()] = style.name


register_style(
    CompressionStyle(
        name="synthesis",
        slug="kb_compression",
        title="Knowledge Base Compression",
        system_prompt=SYNTHESIS_PROMPT,
    )
)
register_style(
    CompressionStyle(
        name="sales_qualification",
        slug="kb_compression_sales",
        title="Knowledge Base Compression (Sales)",
        system_prompt=SALES_QUALIFICATION_PROMPT,
    ),
    categories=("sales",),
)


def style_for_category(category: str | None) -> CompressionStyle:
    name = _CATEGORY_STYLES.get((category or "").lower(), _DEFAULT_STYLE)
    return COMPRESSION_STYLES[name]


@dataclass
class CompressionResult:
    project_id: str
    content: str
    style: str
    summary_count: int
    target_tokens: int
    input_tokens: int
    output_tokens: int
    model: str


def order_summaries(
    pairs: list[tuple[SourceDocument, SummaryArtifact]],
) -> list[tuple[SourceDocument, SummaryArtifact]]:
    """Oldest effective date first; filename breaks ties."""
    return sorted(pairs, key=lambda p: (p[0].effective_date, p[0].filename))


def render_section(doc: SourceDocument, summary: SummaryArtifact) -> str:
    date_str = doc.effective_date.date().isoformat()
    source = doc.content_date_source or DATE_SOURCE_UPLOAD_FALLBACK
    return f"## {doc.filename}\n_Content date: {date_str} ({source})_\n\n{summary.content}"


def build_compression_message(
    pairs: list[tuple[SourceDocument, SummaryArtifact]],
    target_tokens: int,
    org_context: list[tuple[str, str]] | None = None,
) -> str:
    """User message for the compression call. *pairs* must already be ordered."""
    parts: list[str] = []
    for label, markdown in org_context or []:
        parts.append(f"# Organizational context: {label}\n\n{markdown.strip()}")
    parts.append(
        "The following are document summaries from a project knowledge base, ordered "
        "from oldest to most recent. Please compress them into a single unified "
        f"knowledge base document of approximately {target_tokens} tokens."
    )
    parts.append("\n\n---\n\n".join(render_section(d, s) for d, s in pairs))
    return "\n\n".join(parts)


class KnowledgeBaseCompressor:
    """Compress a project's complete summaries into its stored knowledge base."""

    def __init__(
        self,
        repo: Repository,
        config: DistillConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repo
        self._cfg = config or DistillConfig()
        self._clock = clock

    def compress(self, project_id: str, target_tokens: int, actor: str = "system") -> CompressionResult:
        """Run one compression for *project_id*.

        Raises:
            CompressionError: A precondition failed, another compression is in
                flight, or the model call failed. Stored state is unchanged.
        """
        cfg = self._cfg.compression
        project = self._repo.get_project(project_id)
        if project is None:
            raise CompressionError(f"Project not found: {project_id}")
        if not cfg.min_target_tokens <= target_tokens <= cfg.max_target_tokens:
            raise CompressionError(
                f"target_tokens must be between {cfg.min_target_tokens} and "
                f"{cfg.max_target_tokens}, got {target_tokens}"
            )
        pairs = self._repo.list_complete_summaries(project_id)
        if not pairs:
            raise CompressionError(
                f"Project '{project.name}' has no complete summaries to compress"
            )
        now = self._clock()
        stale_before = now - timedelta(seconds=cfg.timeout_seconds) - _CLAIM_GRACE
        if not self._repo.claim_compression(project_id, now, stale_before):
            raise CompressionError(
                f"A compression is already running for project '{project.name}'"
            )

        try:
            return self._run(project_id, project.category, target_tokens, pairs, actor)
        except CompressionError:
            raise
        except Exception as exc:
            logger.error("compress.failed project=%s: %s", project_id, exc)
            raise CompressionError(f"Compression failed: {exc}") from exc
        finally:
            self._repo.release_compression(project_id)

    def _run(
        self,
        project_id: str,
        category: str | None,
        target_tokens: int,
        pairs: list[tuple[SourceDocument, SummaryArtifact]],
        actor: str,
    ) -> CompressionResult:
        cfg = self._cfg.compression
        style = style_for_category(category)
        override = self._repo.get_template_by_slug(style.slug)
        system_prompt = override.content if override is not None else style.system_prompt

        ordered = order_summaries(pairs)
        message = build_compression_message(
            ordered, target_tokens, self._repo.get_org_context(project_id)
        )
        logger.info(
            "compress.calling-model project=%s style=%s summaries=%d target=%d",
            project_id, style.name, len(ordered), target_tokens,
        )

        started = time.monotonic()
        result = llm_client.complete(
            cfg.model,
            message,
            system=system_prompt,
            max_tokens=min(2 * target_tokens, cfg.max_output_tokens),
            timeout=cfg.timeout_seconds,
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        # The KB is only replaced once its usage row is stored.
        self._repo.add_llm_usage(
            LlmUsage(
                project_id=project_id,
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                duration_ms=duration_ms,
            )
        )
        self._repo.set_compressed_kb(project_id, result.text, result.output_tokens, self._clock())
        record_activity(
            self._repo,
            project_id,
            "kb_compressed",
            metadata={
                "targetTokens": target_tokens,
                "outputTokens": result.output_tokens,
                "summaryCount": len(ordered),
            },
            actor=actor,
        )
        logger.info(
            "compress.completed project=%s output_tokens=%d ms=%d",
            project_id, result.output_tokens, duration_ms,
        )
        return CompressionResult(
            project_id=project_id,
            content=result.text,
            style=style.name,
            summary_count=len(ordered),
            target_tokens=target_tokens,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            model=result.model,
        )
