"""Repository pattern for all distill database operations.

Single interface for: projects, organisational context, source documents,
summaries, processing runs, prompt templates, people, LLM usage and activity.

Status transitions are compare-and-swap: every ``UPDATE`` that advances a
summary or run is conditioned on the status the caller expects, and the
caller inspects the row count to learn whether it won the transition.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime

from distill.db.models import (
    DATE_SOURCE_MANUAL,
    STATUS_COMPLETE,
    STATUS_FAILED,
    STATUS_PROCESSING,
    STATUS_QUEUED,
    ActivityEntry,
    BusinessUnit,
    Company,
    LlmUsage,
    ProcessingRun,
    Project,
    PromptTemplate,
    RosterEntry,
    SourceDocument,
    SummaryArtifact,
    from_iso,
    to_iso,
    utcnow,
)

_DOCUMENT_COLUMNS = (
    "id, project_id, filename, file_type, file_size, blob_url, uploaded_by, "
    "uploaded_at, content_date, content_date_source, ingest_source"
)
_SUMMARY_COLUMNS = (
    "document_id, project_id, status, content, blob_url, generated_at, model, "
    "token_count, truncated, error_message, prompt_template_id"
)
_RUN_COLUMNS = (
    "id, document_id, status, attempts, created_at, started_at, completed_at, error_message"
)
_PROJECT_COLUMNS = (
    "id, name, category, company_id, business_unit_id, compressed_kb, compressed_kb_at, "
    "compressed_kb_tokens, compression_started_at, created_at, updated_at"
)


class Repository:
    """Data access layer for all distill database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use; one Repository per worker.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see distill.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Organisational context
    # ------------------------------------------------------------------

    def add_company(self, company: Company) -> None:
        self._conn.execute(
            "INSERT INTO companies (id, name, context) VALUES (?, ?, ?)",
            (company.id, company.name, company.context),
        )
        self._conn.commit()

    def add_business_unit(self, unit: BusinessUnit) -> None:
        self._conn.execute(
            "INSERT INTO business_units (id, company_id, name, context) VALUES (?, ?, ?, ?)",
            (unit.id, unit.company_id, unit.name, unit.context),
        )
        self._conn.commit()

    def get_org_context(self, project_id: str) -> list[tuple[str, str]]:
        """Return ``[(label, markdown), ...]`` for the project's company and business unit.

        Company context comes first. Entities without context are skipped.
        """
        row = self._conn.execute(
            """
            SELECT c.name AS company_name, c.context AS company_context,
                   b.name AS unit_name, b.context AS unit_context
            FROM projects p
            LEFT JOIN companies c ON c.id = p.company_id
            LEFT JOIN business_units b ON b.id = p.business_unit_id
            WHERE p.id = ?
            """,
            (project_id,),
        ).fetchone()
        if row is None:
            return []
        blocks: list[tuple[str, str]] = []
        if row["company_context"]:
            blocks.append((f"Company: {row['company_name']}", row["company_context"]))
        if row["unit_context"]:
            blocks.append((f"Business unit: {row['unit_name']}", row["unit_context"]))
        return blocks

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> None:
        """Insert a new project. Timestamps default to now."""
        now = to_iso(utcnow())
        self._conn.execute(
            """
            INSERT INTO projects (id, name, category, company_id, business_unit_id,
                                  created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project.id,
                project.name,
                project.category,
                project.company_id,
                project.business_unit_id,
                to_iso(project.created_at) or now,
                to_iso(project.updated_at) or now,
            ),
        )
        self._conn.commit()

    def get_project(self, project_id: str) -> Project | None:
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def get_project_by_name(self, name: str) -> Project | None:
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE name = ? ORDER BY created_at LIMIT 1",
            (name,),
        ).fetchone()
        return _row_to_project(row) if row else None

    def list_projects(self) -> list[Project]:
        rows = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY updated_at DESC"
        ).fetchall()
        return [_row_to_project(r) for r in rows]

    def touch_project(self, project_id: str, when: datetime | None = None) -> None:
        """Bump ``updated_at``. Idempotent; concurrent writers are harmless."""
        self._conn.execute(
            "UPDATE projects SET updated_at = ? WHERE id = ?",
            (to_iso(when or utcnow()), project_id),
        )
        self._conn.commit()

    def claim_compression(
        self,
        project_id: str,
        when: datetime | None = None,
        stale_before: datetime | None = None,
    ) -> bool:
        """Mark a compression as in flight. Returns False if one already is.

        A claim stamped before *stale_before* belongs to a dead worker and is
        taken over.
        """
        sql = (
            "UPDATE projects SET compression_started_at = ? "
            "WHERE id = ? AND (compression_started_at IS NULL"
        )
        params: list = [to_iso(when or utcnow()), project_id]
        if stale_before is not None:
            sql += " OR compression_started_at < ?"
            params.append(to_iso(stale_before))
        cur = self._conn.execute(sql + ")", params)
        self._conn.commit()
        return cur.rowcount == 1

    def release_compression(self, project_id: str) -> None:
        self._conn.execute(
            "UPDATE projects SET compression_started_at = NULL WHERE id = ?", (project_id,)
        )
        self._conn.commit()

    def set_compressed_kb(
        self, project_id: str, content: str, token_count: int, when: datetime
    ) -> None:
        """Overwrite the project's compressed knowledge base in one statement."""
        stamp = to_iso(when)
        self._conn.execute(
            """
            UPDATE projects SET compressed_kb = ?, compressed_kb_at = ?,
                                compressed_kb_tokens = ?, updated_at = ?
            WHERE id = ?
            """,
            (content, stamp, token_count, stamp, project_id),
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Source documents
    # ------------------------------------------------------------------

    def enqueue_document(self, document: SourceDocument) -> ProcessingRun:
        """Insert a document with a queued summary and a queued run, atomically.

        Also touches the owning project's ``updated_at``.

        Returns:
            The newly created ProcessingRun.
        """
        now = utcnow()
        run = ProcessingRun(id=str(uuid.uuid4()), document_id=document.id, created_at=now)
        with self._conn:
            self._conn.execute(
                f"INSERT INTO source_documents ({_DOCUMENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.project_id,
                    document.filename,
                    document.file_type,
                    document.file_size,
                    document.blob_url,
                    document.uploaded_by,
                    to_iso(document.uploaded_at),
                    to_iso(document.content_date),
                    document.content_date_source,
                    document.ingest_source,
                ),
            )
            self._conn.execute(
                "INSERT INTO summaries (document_id, project_id, status) VALUES (?, ?, ?)",
                (document.id, document.project_id, STATUS_QUEUED),
            )
            self._insert_run(run)
            self._conn.execute(
                "UPDATE projects SET updated_at = ? WHERE id = ?",
                (to_iso(now), document.project_id),
            )
        return run

    def get_document(self, document_id: str) -> SourceDocument | None:
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM source_documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, project_id: str) -> list[SourceDocument]:
        rows = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM source_documents "
            "WHERE project_id = ? ORDER BY uploaded_at",
            (project_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def set_content_date(
        self, document_id: str, content_date: datetime, source: str
    ) -> bool:
        """Persist an automatically inferred content date.

        Never overwrites a manual date. Returns True if the row was updated.
        """
        cur = self._conn.execute(
            """
            UPDATE source_documents SET content_date = ?, content_date_source = ?
            WHERE id = ? AND (content_date_source IS NULL OR content_date_source != ?)
            """,
            (to_iso(content_date), source, document_id, DATE_SOURCE_MANUAL),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def set_manual_content_date(self, document_id: str, content_date: datetime) -> bool:
        """Pin a user-supplied content date; later inference will not touch it."""
        cur = self._conn.execute(
            "UPDATE source_documents SET content_date = ?, content_date_source = ? WHERE id = ?",
            (to_iso(content_date), DATE_SOURCE_MANUAL, document_id),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def delete_document(self, document_id: str) -> list[str]:
        """Delete a document and (via cascade) its summary, runs, usage and activity.

        Returns:
            Blob URLs that belonged to the document, for the caller to delete.
        """
        urls: list[str] = []
        doc = self.get_document(document_id)
        if doc is None:
            return urls
        urls.append(doc.blob_url)
        summary = self.get_summary(document_id)
        if summary is not None and summary.blob_url:
            urls.append(summary.blob_url)
        self._conn.execute("DELETE FROM source_documents WHERE id = ?", (document_id,))
        self._conn.commit()
        return urls

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def get_summary(self, document_id: str) -> SummaryArtifact | None:
        row = self._conn.execute(
            f"SELECT {_SUMMARY_COLUMNS} FROM summaries WHERE document_id = ?", (document_id,)
        ).fetchone()
        return _row_to_summary(row) if row else None

    def transition_summary(self, document_id: str, expected: str, new: str) -> bool:
        """Move a summary from *expected* to *new* status. False if someone else moved it."""
        cur = self._conn.execute(
            "UPDATE summaries SET status = ? WHERE document_id = ? AND status = ?",
            (new, document_id, expected),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def complete_summary(
        self,
        document_id: str,
        *,
        content: str,
        blob_url: str,
        model: str,
        token_count: int,
        truncated: bool,
        prompt_template_id: str | None,
        when: datetime,
    ) -> bool:
        cur = self._conn.execute(
            """
            UPDATE summaries SET status = ?, content = ?, blob_url = ?, generated_at = ?,
                                 model = ?, token_count = ?, truncated = ?,
                                 prompt_template_id = ?, error_message = NULL
            WHERE document_id = ? AND status = ?
            """,
            (
                STATUS_COMPLETE,
                content,
                blob_url,
                to_iso(when),
                model,
                token_count,
                int(truncated),
                prompt_template_id,
                document_id,
                STATUS_PROCESSING,
            ),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def fail_summary(self, document_id: str, error_message: str) -> bool:
        cur = self._conn.execute(
            """
            UPDATE summaries SET status = ?, error_message = ?
            WHERE document_id = ? AND status = ?
            """,
            (STATUS_FAILED, error_message, document_id, STATUS_PROCESSING),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def reset_summary(self, document_id: str, include_processing: bool = False) -> bool:
        """Return a complete or failed summary to ``queued`` and clear its output.

        *include_processing* also resets a ``processing`` summary; the caller
        must already know its worker is gone.

        Returns False when nothing was reset.
        """
        statuses = [STATUS_COMPLETE, STATUS_FAILED]
        if include_processing:
            statuses.append(STATUS_PROCESSING)
        marks = ", ".join("?" * len(statuses))
        cur = self._conn.execute(
            f"""
            UPDATE summaries SET status = ?, content = NULL, blob_url = NULL,
                                 generated_at = NULL, model = NULL, token_count = NULL,
                                 truncated = 0, error_message = NULL,
                                 prompt_template_id = NULL
            WHERE document_id = ? AND status IN ({marks})
            """,
            (STATUS_QUEUED, document_id, *statuses),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def list_complete_summaries(
        self, project_id: str
    ) -> list[tuple[SourceDocument, SummaryArtifact]]:
        """Return complete summaries with content, paired with their documents.

        Unordered; the compressor applies its own effective-date ordering.
        """
        rows = self._conn.execute(
            """
            SELECT d.id, d.project_id, d.filename, d.file_type, d.file_size, d.blob_url,
                   d.uploaded_by, d.uploaded_at, d.content_date, d.content_date_source,
                   d.ingest_source,
                   s.document_id, s.project_id AS s_project_id, s.status, s.content,
                   s.blob_url AS s_blob_url, s.generated_at, s.model, s.token_count,
                   s.truncated, s.error_message, s.prompt_template_id
            FROM summaries s
            JOIN source_documents d ON d.id = s.document_id
            WHERE s.project_id = ? AND s.status = ? AND s.content IS NOT NULL
            """,
            (project_id, STATUS_COMPLETE),
        ).fetchall()
        pairs: list[tuple[SourceDocument, SummaryArtifact]] = []
        for r in rows:
            doc = _row_to_document(r)
            summary = SummaryArtifact(
                document_id=r["document_id"],
                project_id=r["s_project_id"],
                status=r["status"],
                content=r["content"],
                blob_url=r["s_blob_url"],
                generated_at=from_iso(r["generated_at"]),
                model=r["model"],
                token_count=r["token_count"],
                truncated=bool(r["truncated"]),
                error_message=r["error_message"],
                prompt_template_id=r["prompt_template_id"],
            )
            pairs.append((doc, summary))
        return pairs

    def count_summaries(self, project_id: str, status: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM summaries WHERE project_id = ? AND status = ?",
            (project_id, status),
        ).fetchone()[0]

    def list_queued_document_ids(self, project_id: str | None = None) -> list[str]:
        """Documents whose summary is queued, oldest upload first."""
        sql = (
            "SELECT s.document_id FROM summaries s "
            "JOIN source_documents d ON d.id = s.document_id WHERE s.status = ?"
        )
        params: list = [STATUS_QUEUED]
        if project_id is not None:
            sql += " AND s.project_id = ?"
            params.append(project_id)
        sql += " ORDER BY d.uploaded_at"
        return [r[0] for r in self._conn.execute(sql, params).fetchall()]

    # ------------------------------------------------------------------
    # Processing runs
    # ------------------------------------------------------------------

    def create_run(self, document_id: str) -> ProcessingRun:
        run = ProcessingRun(id=str(uuid.uuid4()), document_id=document_id, created_at=utcnow())
        self._insert_run(run)
        self._conn.commit()
        return run

    def _insert_run(self, run: ProcessingRun) -> None:
        self._conn.execute(
            "INSERT INTO processing_runs (id, document_id, status, attempts, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (run.id, run.document_id, run.status, run.attempts, to_iso(run.created_at)),
        )

    def get_run(self, run_id: str) -> ProcessingRun | None:
        row = self._conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM processing_runs WHERE id = ?", (run_id,)
        ).fetchone()
        return _row_to_run(row) if row else None

    def get_latest_run(
        self, document_id: str, status: str | None = None
    ) -> ProcessingRun | None:
        """Newest run for *document_id*, optionally restricted to one status."""
        sql = f"SELECT {_RUN_COLUMNS} FROM processing_runs WHERE document_id = ?"
        params: list = [document_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT 1"
        row = self._conn.execute(sql, params).fetchone()
        return _row_to_run(row) if row else None

    def list_runs(self, document_id: str) -> list[ProcessingRun]:
        rows = self._conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM processing_runs WHERE document_id = ? "
            "ORDER BY created_at, rowid",
            (document_id,),
        ).fetchall()
        return [_row_to_run(r) for r in rows]

    def start_run(self, run_id: str, when: datetime) -> bool:
        cur = self._conn.execute(
            """
            UPDATE processing_runs SET status = ?, started_at = ?, attempts = 1
            WHERE id = ? AND status = ?
            """,
            (STATUS_PROCESSING, to_iso(when), run_id, STATUS_QUEUED),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def bump_run_attempts(self, run_id: str) -> None:
        self._conn.execute(
            "UPDATE processing_runs SET attempts = attempts + 1 WHERE id = ?", (run_id,)
        )
        self._conn.commit()

    def finish_run(
        self,
        run_id: str,
        status: str,
        when: datetime,
        error_message: str | None = None,
    ) -> bool:
        """Move a processing run to ``complete`` or ``failed`` and stamp ``completed_at``."""
        cur = self._conn.execute(
            """
            UPDATE processing_runs SET status = ?, completed_at = ?, error_message = ?
            WHERE id = ? AND status = ?
            """,
            (status, to_iso(when), error_message, run_id, STATUS_PROCESSING),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def list_recent_runs(
        self, project_id: str | None = None, limit: int = 20
    ) -> list[tuple[ProcessingRun, SourceDocument, SummaryArtifact | None]]:
        """Newest runs with their documents and current summaries (status view)."""
        sql = (
            "SELECT r.id FROM processing_runs r "
            "JOIN source_documents d ON d.id = r.document_id"
        )
        params: list = []
        if project_id is not None:
            sql += " WHERE d.project_id = ?"
            params.append(project_id)
        sql += " ORDER BY r.created_at DESC, r.rowid DESC LIMIT ?"
        params.append(limit)
        result = []
        for (run_id,) in self._conn.execute(sql, params).fetchall():
            run = self.get_run(run_id)
            doc = self.get_document(run.document_id)
            result.append((run, doc, self.get_summary(run.document_id)))
        return result

    def list_stalled_runs(self, started_before: datetime) -> list[ProcessingRun]:
        """Runs stuck in ``processing`` since before *started_before*."""
        rows = self._conn.execute(
            f"SELECT {_RUN_COLUMNS} FROM processing_runs "
            "WHERE status = ? AND started_at IS NOT NULL AND started_at < ? "
            "ORDER BY started_at",
            (STATUS_PROCESSING, to_iso(started_before)),
        ).fetchall()
        return [_row_to_run(r) for r in rows]

    # ------------------------------------------------------------------
    # Prompt templates
    # ------------------------------------------------------------------

    def add_template(self, template: PromptTemplate) -> None:
        """Insert a template; a default flag clears any previous default."""
        with self._conn:
            if template.is_default:
                self._conn.execute(
                    "UPDATE prompt_templates SET is_default = 0 WHERE is_default = 1"
                )
            self._conn.execute(
                "INSERT INTO prompt_templates (id, name, slug, content, is_default) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    template.id,
                    template.name,
                    template.slug,
                    template.content,
                    int(template.is_default),
                ),
            )

    def get_template_by_slug(self, slug: str) -> PromptTemplate | None:
        row = self._conn.execute(
            "SELECT id, name, slug, content, is_default FROM prompt_templates WHERE slug = ?",
            (slug,),
        ).fetchone()
        return _row_to_template(row) if row else None

    def get_default_template(self) -> PromptTemplate | None:
        row = self._conn.execute(
            "SELECT id, name, slug, content, is_default FROM prompt_templates "
            "WHERE is_default = 1"
        ).fetchone()
        return _row_to_template(row) if row else None

    def list_templates(self) -> list[PromptTemplate]:
        rows = self._conn.execute(
            "SELECT id, name, slug, content, is_default FROM prompt_templates ORDER BY name"
        ).fetchall()
        return [_row_to_template(r) for r in rows]

    def update_template_content(self, template_id: str, content: str) -> None:
        self._conn.execute(
            "UPDATE prompt_templates SET content = ? WHERE id = ?", (content, template_id)
        )
        self._conn.commit()

    def set_default_template(self, template_id: str) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE prompt_templates SET is_default = 0 WHERE is_default = 1"
            )
            self._conn.execute(
                "UPDATE prompt_templates SET is_default = 1 WHERE id = ?", (template_id,)
            )

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def resolve_or_create_person(
        self,
        project_id: str,
        name: str,
        email: str | None = None,
        organization: str | None = None,
        role: str | None = None,
        auto_extracted: bool = False,
    ) -> str | None:
        """Find or create a person and make sure they are linked to *project_id*.

        Matching order: email (global), then case-insensitive name among the
        project's existing people. Missing email / organisation on a matched
        person are filled in.

        Returns:
            The person ID, or None if *name* is blank.
        """
        trimmed = name.strip()
        if not trimmed:
            return None

        with self._conn:
            row = None
            if email:
                row = self._conn.execute(
                    "SELECT id, email, organization FROM people WHERE email = ? LIMIT 1",
                    (email,),
                ).fetchone()
            if row is None:
                row = self._conn.execute(
                    """
                    SELECT p.id, p.email, p.organization FROM people p
                    JOIN project_people pp ON pp.person_id = p.id
                    WHERE pp.project_id = ? AND lower(p.name) = lower(?)
                    LIMIT 1
                    """,
                    (project_id, trimmed),
                ).fetchone()

            if row is None:
                person_id = str(uuid.uuid4())
                self._conn.execute(
                    "INSERT INTO people (id, name, email, organization, role) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (person_id, trimmed, email, organization, role),
                )
            else:
                person_id = row["id"]
                if (email and not row["email"]) or (organization and not row["organization"]):
                    self._conn.execute(
                        """
                        UPDATE people SET email = COALESCE(email, ?),
                                          organization = COALESCE(organization, ?)
                        WHERE id = ?
                        """,
                        (email, organization, person_id),
                    )

            self._conn.execute(
                """
                INSERT INTO project_people (project_id, person_id, role, auto_extracted)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(project_id, person_id) DO NOTHING
                """,
                (project_id, person_id, role, int(auto_extracted)),
            )
        return person_id

    def list_roster(self, project_id: str) -> list[RosterEntry]:
        rows = self._conn.execute(
            """
            SELECT p.name, p.email, p.organization,
                   COALESCE(pp.role, p.role) AS role, pp.auto_extracted
            FROM project_people pp
            JOIN people p ON p.id = pp.person_id
            WHERE pp.project_id = ?
            ORDER BY p.name COLLATE NOCASE
            """,
            (project_id,),
        ).fetchall()
        return [
            RosterEntry(
                name=r["name"],
                email=r["email"],
                organization=r["organization"],
                role=r["role"],
                auto_extracted=bool(r["auto_extracted"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def add_llm_usage(self, usage: LlmUsage) -> None:
        self._conn.execute(
            """
            INSERT INTO llm_usage (project_id, document_id, model, input_tokens,
                                   output_tokens, total_tokens, duration_ms, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                usage.project_id,
                usage.document_id,
                usage.model,
                usage.input_tokens,
                usage.output_tokens,
                usage.total_tokens,
                usage.duration_ms,
                to_iso(utcnow()),
            ),
        )
        self._conn.commit()

    def list_llm_usage(self, project_id: str) -> list[LlmUsage]:
        rows = self._conn.execute(
            "SELECT project_id, document_id, model, input_tokens, output_tokens, duration_ms "
            "FROM llm_usage WHERE project_id = ? ORDER BY id",
            (project_id,),
        ).fetchall()
        return [
            LlmUsage(
                project_id=r["project_id"],
                document_id=r["document_id"],
                model=r["model"],
                input_tokens=r["input_tokens"],
                output_tokens=r["output_tokens"],
                duration_ms=r["duration_ms"],
            )
            for r in rows
        ]

    def add_activity(self, entry: ActivityEntry) -> None:
        self._conn.execute(
            """
            INSERT INTO activity_log (project_id, action, document_id, actor, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.project_id,
                entry.action,
                entry.document_id,
                entry.actor,
                entry.metadata,
                to_iso(entry.created_at or utcnow()),
            ),
        )
        self._conn.commit()

    def list_activity(self, project_id: str) -> list[ActivityEntry]:
        rows = self._conn.execute(
            "SELECT project_id, action, document_id, actor, metadata, created_at "
            "FROM activity_log WHERE project_id = ? ORDER BY id",
            (project_id,),
        ).fetchall()
        return [
            ActivityEntry(
                project_id=r["project_id"],
                action=r["action"],
                document_id=r["document_id"],
                actor=r["actor"],
                metadata=r["metadata"],
                created_at=from_iso(r["created_at"]),
            )
            for r in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        company_id=row["company_id"],
        business_unit_id=row["business_unit_id"],
        compressed_kb=row["compressed_kb"],
        compressed_kb_at=from_iso(row["compressed_kb_at"]),
        compressed_kb_tokens=row["compressed_kb_tokens"],
        compression_started_at=from_iso(row["compression_started_at"]),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _row_to_document(row: sqlite3.Row) -> SourceDocument:
    return SourceDocument(
        id=row["id"],
        project_id=row["project_id"],
        filename=row["filename"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        blob_url=row["blob_url"],
        uploaded_by=row["uploaded_by"],
        uploaded_at=from_iso(row["uploaded_at"]),
        content_date=from_iso(row["content_date"]),
        content_date_source=row["content_date_source"],
        ingest_source=row["ingest_source"],
    )


def _row_to_summary(row: sqlite3.Row) -> SummaryArtifact:
    return SummaryArtifact(
        document_id=row["document_id"],
        project_id=row["project_id"],
        status=row["status"],
        content=row["content"],
        blob_url=row["blob_url"],
        generated_at=from_iso(row["generated_at"]),
        model=row["model"],
        token_count=row["token_count"],
        truncated=bool(row["truncated"]),
        error_message=row["error_message"],
        prompt_template_id=row["prompt_template_id"],
    )


def _row_to_run(row: sqlite3.Row) -> ProcessingRun:
    return ProcessingRun(
        id=row["id"],
        document_id=row["document_id"],
        status=row["status"],
        attempts=row["attempts"],
        created_at=from_iso(row["created_at"]),
        started_at=from_iso(row["started_at"]),
        completed_at=from_iso(row["completed_at"]),
        error_message=row["error_message"],
    )


def _row_to_template(row: sqlite3.Row) -> PromptTemplate:
    return PromptTemplate(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        content=row["content"],
        is_default=bool(row["is_default"]),
    )


def activity_metadata(data: dict | None) -> str:
    """Serialise activity metadata for storage."""
    return json.dumps(data or {}, sort_keys=True, default=str)
