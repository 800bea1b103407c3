"""Forward-only migration runner for distill's database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS companies (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    context     TEXT
);

CREATE TABLE IF NOT EXISTS business_units (
    id          TEXT PRIMARY KEY,
    company_id  TEXT NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    context     TEXT
);

CREATE TABLE IF NOT EXISTS projects (
    id                      TEXT PRIMARY KEY,
    name                    TEXT NOT NULL,
    category                TEXT NOT NULL DEFAULT 'general',
    company_id              TEXT REFERENCES companies(id) ON DELETE SET NULL,
    business_unit_id        TEXT REFERENCES business_units(id) ON DELETE SET NULL,
    compressed_kb           TEXT,
    compressed_kb_at        TEXT,
    compressed_kb_tokens    INTEGER,
    compression_started_at  TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS prompt_templates (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    slug        TEXT UNIQUE,
    content     TEXT NOT NULL,
    is_default  INTEGER NOT NULL DEFAULT 0
);

-- At most one default template.
CREATE UNIQUE INDEX IF NOT EXISTS prompt_templates_one_default
    ON prompt_templates(is_default) WHERE is_default = 1;

CREATE TABLE IF NOT EXISTS source_documents (
    id                   TEXT PRIMARY KEY,
    project_id           TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    filename             TEXT NOT NULL,
    file_type            TEXT NOT NULL CHECK (file_type IN ('txt', 'md', 'vtt', 'srt', 'pdf')),
    file_size            INTEGER NOT NULL CHECK (file_size > 0),
    blob_url             TEXT NOT NULL,
    uploaded_by          TEXT NOT NULL,
    uploaded_at          TEXT NOT NULL,
    content_date         TEXT,
    content_date_source  TEXT CHECK (
        content_date_source IS NULL
        OR content_date_source IN ('extracted', 'manual', 'upload-fallback')
    ),
    ingest_source        TEXT NOT NULL DEFAULT 'upload'
);

CREATE TABLE IF NOT EXISTS summaries (
    document_id         TEXT PRIMARY KEY REFERENCES source_documents(id) ON DELETE CASCADE,
    project_id          TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    status              TEXT NOT NULL DEFAULT 'queued'
                        CHECK (status IN ('queued', 'processing', 'complete', 'failed')),
    content             TEXT,
    blob_url            TEXT,
    generated_at        TEXT,
    model               TEXT,
    token_count         INTEGER,
    truncated           INTEGER NOT NULL DEFAULT 0,
    error_message       TEXT,
    prompt_template_id  TEXT REFERENCES prompt_templates(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS processing_runs (
    id             TEXT PRIMARY KEY,
    document_id    TEXT NOT NULL REFERENCES source_documents(id) ON DELETE CASCADE,
    status         TEXT NOT NULL DEFAULT 'queued'
                   CHECK (status IN ('queued', 'processing', 'complete', 'failed')),
    attempts       INTEGER NOT NULL DEFAULT 0,
    created_at     TEXT NOT NULL,
    started_at     TEXT,
    completed_at   TEXT,
    error_message  TEXT
);

CREATE INDEX IF NOT EXISTS processing_runs_document
    ON processing_runs(document_id, created_at);

CREATE TABLE IF NOT EXISTS people (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    email         TEXT,
    organization  TEXT,
    role          TEXT
);

CREATE TABLE IF NOT EXISTS project_people (
    project_id      TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    person_id       TEXT NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    role            TEXT,
    auto_extracted  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (project_id, person_id)
);

CREATE TABLE IF NOT EXISTS llm_usage (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id     TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    document_id    TEXT REFERENCES source_documents(id) ON DELETE CASCADE,
    model          TEXT NOT NULL,
    input_tokens   INTEGER NOT NULL,
    output_tokens  INTEGER NOT NULL,
    total_tokens   INTEGER NOT NULL,
    duration_ms    INTEGER NOT NULL,
    created_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id   TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    action       TEXT NOT NULL,
    document_id  TEXT REFERENCES source_documents(id) ON DELETE CASCADE,
    actor        TEXT NOT NULL DEFAULT 'system',
    metadata     TEXT NOT NULL DEFAULT '{}',
    created_at   TEXT NOT NULL
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
