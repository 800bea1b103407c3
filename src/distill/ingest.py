"""Ingest: validate a source file, store it, and enqueue it for processing.

Two entry points:
  ingest_document()    a user upload (txt, md, vtt, srt, pdf)
  ingest_transcript()  an externally produced meeting transcript, stored as
                       txt behind a ``Title:`` / ``Date:`` / ``Speakers:`` header

Both write the document, its queued summary and its queued run in one
transaction. Nothing here calls a model; processing happens later.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath

from distill.activity import record_activity
from distill.db.models import FILE_TYPES, ProcessingRun, SourceDocument, utcnow
from distill.db.repository import Repository
from distill.errors import IngestError
from distill.storage import BlobStore

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 50 * 1024 * 1024
TRANSCRIPT_PARTICIPANT_ROLE = "Meeting participant"

_CONTENT_TYPES = {
    "txt": "text/plain",
    "md": "text/markdown",
    "vtt": "text/vtt",
    "srt": "application/x-subrip",
    "pdf": "application/pdf",
}
_UNSAFE_TITLE_RE = re.compile(r"[^a-zA-Z0-9 ]")


@dataclass
class IngestResult:
    document: SourceDocument
    run: ProcessingRun


def validate_upload(filename: str, size: int, max_file_bytes: int = MAX_FILE_BYTES) -> str:
    """Return the format tag for *filename*, or raise IngestError.

    The extension is matched case-insensitively; the tag is the extension
    without its dot.
    """
    fmt = PurePath(filename).suffix.lower().lstrip(".")
    if fmt not in FILE_TYPES:
        allowed = ", ".join(f".{t}" for t in FILE_TYPES)
        raise IngestError(f"Unsupported file type for '{filename}'. Allowed: {allowed}")
    if size <= 0:
        raise IngestError(f"'{filename}' is empty")
    if size > max_file_bytes:
        raise IngestError(
            f"'{filename}' is {size / (1024 * 1024):.1f} MB; "
            f"the limit is {max_file_bytes / (1024 * 1024):.0f} MB"
        )
    return fmt


def ingest_document(
    repo: Repository,
    blobs: BlobStore,
    project_id: str,
    filename: str,
    data: bytes,
    uploaded_by: str = "cli",
    max_file_bytes: int = MAX_FILE_BYTES,
    now: datetime | None = None,
    ingest_source: str = "upload",
    activity: str = "file_uploaded",
    activity_metadata: dict | None = None,
) -> IngestResult:
    """Store *data* and enqueue it as a new document of *project_id*.

    Raises:
        IngestError: Unknown project, unsupported extension, or bad size.
    """
    if repo.get_project(project_id) is None:
        raise IngestError(f"Project not found: {project_id}")
    fmt = validate_upload(filename, len(data), max_file_bytes)

    doc_id = str(uuid.uuid4())
    url = blobs.put(
        f"projects/{project_id}/{uuid.uuid4()}-{filename}", data, _CONTENT_TYPES[fmt]
    )
    doc = SourceDocument(
        id=doc_id,
        project_id=project_id,
        filename=filename,
        file_type=fmt,
        file_size=len(data),
        blob_url=url,
        uploaded_by=uploaded_by,
        uploaded_at=now or utcnow(),
        ingest_source=ingest_source,
    )
    try:
        run = repo.enqueue_document(doc)
    except Exception:
        blobs.delete([url])
        raise

    logger.info(
        "ingest.enqueued document=%s project=%s filename=%s type=%s bytes=%d",
        doc.id, project_id, filename, fmt, len(data),
    )
    metadata = {"filename": filename, "fileType": fmt, "fileSize": len(data)}
    metadata.update(activity_metadata or {})
    record_activity(repo, project_id, activity, doc.id, metadata, actor=uploaded_by)
    return IngestResult(document=doc, run=run)


def transcript_filename(title: str, now: datetime) -> str:
    """``<title[:50] with unsafe characters as _>_<epoch ms>.txt``."""
    safe = _UNSAFE_TITLE_RE.sub("_", title[:50])
    return f"{safe}_{int(now.timestamp() * 1000)}.txt"


def build_transcript_text(
    title: str, transcript: str, speakers: list[str] | None = None, meeting_date: str | None = None
) -> str:
    lines = [f"Title: {title}"]
    if meeting_date:
        lines.append(f"Date: {meeting_date}")
    if speakers:
        lines.append(f"Speakers: {', '.join(speakers)}")
    lines += ["", transcript]
    return "\n".join(lines)


def ingest_transcript(
    repo: Repository,
    blobs: BlobStore,
    project_id: str,
    title: str,
    transcript: str,
    speakers: list[str] | None = None,
    meeting_date: str | None = None,
    uploaded_by: str = "transcript-import",
    max_file_bytes: int = MAX_FILE_BYTES,
    now: datetime | None = None,
) -> IngestResult:
    """Store an external transcript as a txt document and link its speakers.

    Speakers become project people with role ``Meeting participant`` and the
    auto-extracted flag set.

    Raises:
        IngestError: Missing title or transcript, or unknown project.
    """
    if not title.strip():
        raise IngestError("A transcript title is required")
    if not transcript.strip():
        raise IngestError("Transcript text is empty")
    if repo.get_project(project_id) is None:
        raise IngestError(f"Project not found: {project_id}")

    names = [s.strip() for s in speakers or [] if s.strip()]
    for name in names:
        repo.resolve_or_create_person(
            project_id, name, role=TRANSCRIPT_PARTICIPANT_ROLE, auto_extracted=True
        )

    when = now or utcnow()
    data = build_transcript_text(title, transcript, names, meeting_date).encode("utf-8")
    return ingest_document(
        repo,
        blobs,
        project_id,
        transcript_filename(title, when),
        data,
        uploaded_by=uploaded_by,
        max_file_bytes=max_file_bytes,
        now=when,
        ingest_source="transcript",
        activity="transcript_ingested",
        activity_metadata={"title": title, "speakers": len(names)},
    )
