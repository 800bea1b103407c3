"""Document processing pipeline: the per-document state machine.

  queued → processing → complete | failed

Stages, in order, inside one claimed run:
  1. fetch source bytes from the blob store and extract text
  2. infer the content date (skipped when a manual date is pinned)
  3. truncate to the character ceiling
  4. pick a prompt path (intent classifier for plain text only)
  5. resolve the project people roster
  6. build the prompt, invoke the model, log usage
  7. persist the summary, finish the run, touch the project

A single handler wraps stages 1–7. Retryable errors re-run the stages up to
``pipeline.max_retries`` times inside the same claim; anything else, or an
exhausted retry budget, marks both the summary and the run ``failed``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from distill.activity import record_activity
from distill.config import DistillConfig
from distill.db.models import (
    DATE_SOURCE_MANUAL,
    DATE_SOURCE_UPLOAD_FALLBACK,
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_PROCESSING,
    STATUS_QUEUED,
    LlmUsage,
    ProcessingRun,
    SourceDocument,
    utcnow,
)
from distill.db.repository import Repository
from distill.errors import (
    DistillError,
    DocumentNotFound,
    InvalidTransition,
    RunTimeout,
    UnsupportedFormat,
)
from distill.extract import SUPPORTED_FORMATS, extract
from distill.pipeline.content_date import infer_content_date
from distill.pipeline.intent import classify_intent
from distill.pipeline.invoker import summarize
from distill.pipeline.prompts import (
    build_prompt,
    format_people,
    resolve_template,
    select_prompt_slug,
)
from distill.pipeline.truncation import truncate, truncation_notice
from distill.storage import BlobStore

logger = logging.getLogger(__name__)

STATUS_SKIPPED = "skipped"

ABANDONED_MESSAGE = "Run abandoned after stalling in processing; requeued by reprocess"


@dataclass
class RunOutcome:
    document_id: str
    status: str  # complete | failed | skipped
    run_id: str | None = None
    attempts: int = 0
    error: str | None = None


class PipelineOrchestrator:
    """Drive documents through the summarisation pipeline.

    Args:
        repo:      Repository over the workspace database (one per worker).
        blobs:     Durable store holding source files and generated summaries.
        config:    Loaded configuration; defaults when omitted.
        clock:     Wall-clock source for persisted timestamps.
        monotonic: Monotonic clock for run timeouts and call durations.
    """

    def __init__(
        self,
        repo: Repository,
        blobs: BlobStore,
        config: DistillConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repo = repo
        self._blobs = blobs
        self._cfg = config or DistillConfig()
        self._clock = clock
        self._monotonic = monotonic

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, document_id: str) -> RunOutcome:
        """Run the pipeline for one queued document. Never raises for stage errors."""
        doc = self._repo.get_document(document_id)
        if doc is None:
            logger.warning("pipeline.missing-document document=%s", document_id)
            return RunOutcome(document_id, STATUS_SKIPPED)

        run = self._claim(doc)
        if run is None:
            logger.info("pipeline.skipped document=%s (not queued)", document_id)
            return RunOutcome(document_id, STATUS_SKIPPED)

        logger.info(
            "pipeline.started document=%s run=%s filename=%s type=%s",
            doc.id, run.id, doc.filename, doc.file_type,
        )

        max_retries = self._cfg.pipeline.max_retries
        attempt = 1
        while True:
            try:
                self._execute(doc, run)
            except Exception as exc:
                retryable = isinstance(exc, DistillError) and exc.retryable
                if retryable and attempt <= max_retries:
                    attempt += 1
                    self._repo.bump_run_attempts(run.id)
                    logger.warning(
                        "pipeline.retrying document=%s attempt=%d: %s", doc.id, attempt, exc
                    )
                    continue
                message = self._fail(doc, run, exc)
                return RunOutcome(doc.id, STATUS_FAILED, run.id, attempt, message)
            logger.info("pipeline.completed document=%s filename=%s", doc.id, doc.filename)
            return RunOutcome(doc.id, STATUS_COMPLETE, run.id, attempt)

    def process_pending(self, project_id: str | None = None) -> list[RunOutcome]:
        """Process every queued document (oldest upload first)."""
        return [self.process(doc_id) for doc_id in self._repo.list_queued_document_ids(project_id)]

    def reprocess(self, document_id: str, actor: str = "system") -> ProcessingRun:
        """Reset a document to queued with a fresh run.

        Complete and failed documents are always accepted. A processing
        document is accepted only once its run has stalled; that run is
        closed as ``failed`` first.

        Raises:
            DocumentNotFound: Unknown document.
            InvalidTransition: The document is queued or still actively processing.
        """
        doc = self._repo.get_document(document_id)
        if doc is None:
            raise DocumentNotFound(f"Document not found: {document_id}")
        if not self._repo.reset_summary(document_id) and not self._abandon_stalled(doc):
            summary = self._repo.get_summary(document_id)
            status = summary.status if summary else "missing"
            raise InvalidTransition(
                f"Document {document_id} is {status}; only complete or failed "
                "documents can be reprocessed (or processing ones stalled for "
                f"over {self._cfg.pipeline.stall_minutes} minutes)"
            )
        run = self._repo.create_run(document_id)
        record_activity(
            self._repo, doc.project_id, "reprocessed", doc.id,
            {"filename": doc.filename}, actor=actor,
        )
        logger.info("pipeline.reprocess-queued document=%s run=%s", doc.id, run.id)
        return run

    def stalled_runs(self) -> list[ProcessingRun]:
        """Runs stuck in processing beyond ``pipeline.stall_minutes``."""
        cutoff = self._clock() - timedelta(minutes=self._cfg.pipeline.stall_minutes)
        return self._repo.list_stalled_runs(cutoff)

    # ------------------------------------------------------------------
    # Claim / fail
    # ------------------------------------------------------------------

    def _abandon_stalled(self, doc: SourceDocument) -> bool:
        """Fail the stalled run of a processing document and requeue its summary."""
        stalled = [r for r in self.stalled_runs() if r.document_id == doc.id]
        if not stalled:
            return False
        for run in stalled:
            self._repo.finish_run(run.id, STATUS_FAILED, self._clock(), ABANDONED_MESSAGE)
        logger.warning(
            "pipeline.abandoned-stalled document=%s runs=%s",
            doc.id, ",".join(r.id for r in stalled),
        )
        return self._repo.reset_summary(doc.id, include_processing=True)

    def _claim(self, doc: SourceDocument) -> ProcessingRun | None:
        """queued → processing for the summary and the latest queued run."""
        if not self._repo.transition_summary(doc.id, STATUS_QUEUED, STATUS_PROCESSING):
            return None
        run = self._repo.get_latest_run(doc.id, STATUS_QUEUED)
        if run is None:
            run = self._repo.create_run(doc.id)
        self._repo.start_run(run.id, self._clock())
        return self._repo.get_run(run.id) or run

    def _fail(self, doc: SourceDocument, run: ProcessingRun, exc: BaseException) -> str:
        limit = self._cfg.pipeline.error_max_chars
        if isinstance(exc, DistillError):
            message = str(exc) or type(exc).__name__
        else:
            message = f"{type(exc).__name__}: {exc}"
        message = message[:limit]
        logger.error("pipeline.failed document=%s run=%s: %s", doc.id, run.id, message)

        try:
            self._repo.fail_summary(doc.id, message)
            self._repo.finish_run(run.id, STATUS_FAILED, self._clock(), message)
        except Exception as update_exc:
            logger.error(
                "pipeline.failure-handler.db-update-failed document=%s: %s", doc.id, update_exc
            )
        record_activity(
            self._repo, doc.project_id, "summary_failed", doc.id,
            {"filename": doc.filename, "error": message},
        )
        return message

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _execute(self, doc: SourceDocument, run: ProcessingRun) -> None:
        deadline = self._monotonic() + self._cfg.pipeline.run_timeout_seconds

        if doc.file_type not in SUPPORTED_FORMATS:
            raise UnsupportedFormat(doc.file_type)

        self._check_deadline(deadline, "extract")
        data = self._blobs.get(doc.blob_url)
        text = extract(data, doc.file_type)
        logger.info("pipeline.text-extracted document=%s chars=%d", doc.id, len(text))

        self._check_deadline(deadline, "content-date")
        self._store_content_date(doc, data)

        self._check_deadline(deadline, "prompt")
        truncation = truncate(text)

        intent = None
        if doc.file_type == "txt":
            cls_cfg = self._cfg.classifier
            intent = classify_intent(
                text, model=cls_cfg.model, sample_chars=cls_cfg.sample_chars,
                max_tokens=cls_cfg.max_tokens,
            )
            logger.info("pipeline.intent-detected document=%s intent=%s", doc.id, intent)
        slug = select_prompt_slug(doc.file_type, intent)
        template = resolve_template(self._repo, slug)

        roster = self._repo.list_roster(doc.project_id)
        prompt = build_prompt(
            doc.filename, doc.file_type, truncation.text, template.content, format_people(roster)
        )
        logger.info(
            "pipeline.prompt-selected document=%s slug=%s template=%s truncated=%s "
            "covered=%d%% people=%d",
            doc.id, slug, template.name, truncation.truncated,
            truncation.percent_covered, len(roster),
        )

        self._check_deadline(deadline, "summarize")
        sum_cfg = self._cfg.summarization
        started = self._monotonic()
        result = summarize(
            prompt,
            model=sum_cfg.model,
            max_output_tokens=sum_cfg.max_output_tokens,
            timeout=sum_cfg.timeout_seconds,
        )
        duration_ms = int((self._monotonic() - started) * 1000)
        logger.info(
            "pipeline.model-responded document=%s model=%s in=%d out=%d ms=%d",
            doc.id, result.model, result.input_tokens, result.output_tokens, duration_ms,
        )
        self._repo.add_llm_usage(
            LlmUsage(
                project_id=doc.project_id,
                document_id=doc.id,
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                duration_ms=duration_ms,
            )
        )

        content = result.content
        if truncation.truncated:
            content = f"{truncation_notice(truncation.percent_covered)}\n\n{content}"

        url = self._blobs.put(
            f"projects/{doc.project_id}/summaries/{doc.id}.md", content, "text/markdown"
        )
        now = self._clock()
        self._repo.complete_summary(
            doc.id,
            content=content,
            blob_url=url,
            model=result.model,
            token_count=result.input_tokens,
            truncated=truncation.truncated,
            prompt_template_id=template.template_id,
            when=now,
        )
        self._repo.finish_run(run.id, STATUS_COMPLETE, now)
        self._repo.touch_project(doc.project_id, now)
        record_activity(
            self._repo, doc.project_id, "summary_completed", doc.id, {"filename": doc.filename}
        )

    def _store_content_date(self, doc: SourceDocument, data: bytes) -> None:
        if doc.content_date_source == DATE_SOURCE_MANUAL:
            return
        date, source = infer_content_date(data, doc.file_type, doc.filename)
        if date is None:
            date, source = doc.uploaded_at, DATE_SOURCE_UPLOAD_FALLBACK
        self._repo.set_content_date(doc.id, date, source)
        logger.info("pipeline.content-date document=%s date=%s source=%s", doc.id, date, source)

    def _check_deadline(self, deadline: float, stage: str) -> None:
        if self._monotonic() > deadline:
            raise RunTimeout(
                f"Run exceeded {self._cfg.pipeline.run_timeout_seconds:g}s "
                f"before stage '{stage}'"
            )
