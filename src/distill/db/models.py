"""Domain models for the distill database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone

# Format tags accepted for stored documents.
FILE_TYPES: tuple[str, ...] = ("txt", "md", "vtt", "srt", "pdf")

# Summary / run lifecycle.
STATUS_QUEUED = "queued"
STATUS_PROCESSING = "processing"
STATUS_COMPLETE = "complete"
STATUS_FAILED = "failed"

# Where a document's content date came from.
DATE_SOURCE_EXTRACTED = "extracted"
DATE_SOURCE_MANUAL = "manual"
DATE_SOURCE_UPLOAD_FALLBACK = "upload-fallback"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """Serialise *value* as a UTC ISO-8601 string (sortable as text)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Company:
    id: str
    name: str
    context: str | None = None


@dataclass
class BusinessUnit:
    id: str
    company_id: str
    name: str
    context: str | None = None


@dataclass
class Project:
    id: str
    name: str
    category: str = "general"
    company_id: str | None = None
    business_unit_id: str | None = None
    compressed_kb: str | None = None
    compressed_kb_at: datetime | None = None
    compressed_kb_tokens: int | None = None
    compression_started_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class SourceDocument:
    id: str
    project_id: str
    filename: str
    file_type: str  # txt | md | vtt | srt | pdf
    file_size: int
    blob_url: str
    uploaded_by: str
    uploaded_at: datetime
    content_date: datetime | None = None
    content_date_source: str | None = None  # extracted | manual | upload-fallback
    ingest_source: str = "upload"  # upload | transcript

    @property
    def effective_date(self) -> datetime:
        """Content date when known, upload time otherwise."""
        return self.content_date or self.uploaded_at


@dataclass
class SummaryArtifact:
    document_id: str
    project_id: str
    status: str = STATUS_QUEUED
    content: str | None = None
    blob_url: str | None = None
    generated_at: datetime | None = None
    model: str | None = None
    token_count: int | None = None
    truncated: bool = False
    error_message: str | None = None
    prompt_template_id: str | None = None


@dataclass
class ProcessingRun:
    id: str
    document_id: str
    status: str = STATUS_QUEUED
    attempts: int = 0
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None


@dataclass
class PromptTemplate:
    id: str
    name: str
    content: str
    slug: str | None = None
    is_default: bool = False


@dataclass
class RosterEntry:
    """A person as seen from one project (project role wins over person role)."""

    name: str
    email: str | None = None
    organization: str | None = None
    role: str | None = None
    auto_extracted: bool = False


@dataclass
class LlmUsage:
    project_id: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int
    document_id: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ActivityEntry:
    project_id: str
    action: str
    document_id: str | None = None
    actor: str = "system"
    metadata: str = field(default_factory=lambda: "{}")
    created_at: datetime | None = None

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata)
