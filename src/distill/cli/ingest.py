"""distill ingest / ingest-transcript: bring source material into a project.

  distill ingest --project P --source a.pdf --source notes.txt
  distill ingest-transcript --project P --title "Weekly Sync" --file sync.txt

Each file is validated (extension .txt .vtt .srt .pdf .md, size 1 B – 50 MiB),
stored in the blob store and enqueued. Unless --no-process is given the
queued documents are summarized straight away.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from distill.cli.errors import err_operation
from distill.cli.process import run_pipeline
from distill.cli.workspace import (
    DEFAULT_DB,
    blob_store,
    load_workspace_config,
    open_db,
    require_project,
)
from distill.db.repository import Repository
from distill.errors import DistillError
from distill.ingest import ingest_document, ingest_transcript
from distill.people import speakers_in

console = Console()


def ingest_cmd(
    project: Annotated[str, typer.Option("--project", "-p", help="Project name or ID.")],
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="File to ingest (repeatable)."),
    ] = None,
    no_process: Annotated[
        bool,
        typer.Option("--no-process", help="Only enqueue; run `distill process` later."),
    ] = False,
    uploaded_by: Annotated[
        str,
        typer.Option("--uploaded-by", help="Recorded as the uploader."),
    ] = "cli",
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Ingest one or more files into a project."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH.")
        raise typer.Exit(1)

    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        proj = require_project(repo, project, console)
        blobs = blob_store(db, cfg)

        queued: list[str] = []
        rejected = 0
        for path in sources:
            console.print(f"\n[bold]→ {path}[/]")
            if not path.is_file():
                console.print("  [red]✗ File not found[/]: skipping")
                rejected += 1
                continue
            try:
                result = ingest_document(
                    repo,
                    blobs,
                    proj.id,
                    path.name,
                    path.read_bytes(),
                    uploaded_by=uploaded_by,
                    max_file_bytes=cfg.ingest.max_file_bytes,
                )
            except DistillError as exc:
                console.print(f"  [red]✗[/] {exc}")
                rejected += 1
                continue
            console.print(f"  [green]✓[/] Queued as {result.document.id}")
            queued.append(result.document.id)

        if queued and not no_process:
            console.print()
            outcomes = run_pipeline(repo, blobs, cfg, queued)
            rejected += sum(1 for o in outcomes if o.status == "failed")
    finally:
        conn.close()

    if rejected:
        raise typer.Exit(1)


def ingest_transcript_cmd(
    project: Annotated[str, typer.Option("--project", "-p", help="Project name or ID.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Meeting title.")],
    file: Annotated[
        Path,
        typer.Option("--file", "-f", help="Plain-text transcript file."),
    ],
    speaker: Annotated[
        list[str] | None,
        typer.Option(
            "--speaker",
            help="Meeting participant (repeatable). Detected from 'Name:' lines if omitted.",
        ),
    ] = None,
    meeting_date: Annotated[
        str | None,
        typer.Option("--date", help="Meeting date as written into the header."),
    ] = None,
    no_process: Annotated[
        bool,
        typer.Option("--no-process", help="Only enqueue; run `distill process` later."),
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Ingest an externally produced meeting transcript."""
    if not file.is_file():
        console.print(f"[red]Error:[/] Transcript file not found: '{file}'")
        raise typer.Exit(1)
    transcript = file.read_text(encoding="utf-8", errors="replace")
    speakers = speaker or speakers_in(transcript)

    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        proj = require_project(repo, project, console)
        blobs = blob_store(db, cfg)
        try:
            result = ingest_transcript(
                repo,
                blobs,
                proj.id,
                title,
                transcript,
                speakers=speakers,
                meeting_date=meeting_date,
                max_file_bytes=cfg.ingest.max_file_bytes,
            )
        except DistillError as exc:
            console.print(err_operation(exc))
            raise typer.Exit(1)

        console.print(
            f"[green]✓[/] Transcript queued as {result.document.filename} "
            f"({len(speakers)} speaker{'s' if len(speakers) != 1 else ''} linked)"
        )
        if not no_process:
            outcomes = run_pipeline(repo, blobs, cfg, [result.document.id])
            if any(o.status == "failed" for o in outcomes):
                raise typer.Exit(1)
    finally:
        conn.close()
