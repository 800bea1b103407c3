"""distill process / reprocess / set-date: drive documents through the pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from distill.cli.errors import (
    err_document_not_found,
    err_invalid_date,
    err_no_api_key,
    err_operation,
)
from distill.cli.workspace import (
    DEFAULT_DB,
    blob_store,
    load_workspace_config,
    open_db,
    require_project,
)
from distill.config import DistillConfig
from distill.db.repository import Repository
from distill.errors import DistillError
from distill.llm_client import validate_api_key
from distill.pipeline.orchestrator import PipelineOrchestrator, RunOutcome
from distill.storage import BlobStore

console = Console()


def run_pipeline(
    repo: Repository,
    blobs: BlobStore,
    cfg: DistillConfig,
    document_ids: list[str],
) -> list[RunOutcome]:
    """Process *document_ids* in order and print one line per outcome."""
    if not document_ids:
        console.print("[dim]Nothing queued.[/]")
        return []
    require_api_key(cfg.summarization.model)

    orchestrator = PipelineOrchestrator(repo, blobs, cfg)
    outcomes: list[RunOutcome] = []
    for doc_id in document_ids:
        doc = repo.get_document(doc_id)
        label = doc.filename if doc else doc_id
        with console.status(f"Summarizing {label}…"):
            outcome = orchestrator.process(doc_id)
        outcomes.append(outcome)
        if outcome.status == "complete":
            summary = repo.get_summary(doc_id)
            note = " [yellow](truncated)[/]" if summary and summary.truncated else ""
            console.print(f"  [green]✓[/] {label}{note}")
        elif outcome.status == "failed":
            console.print(f"  [red]✗[/] {label}: {outcome.error}")
        else:
            console.print(f"  [dim]↷ {label}: not queued, skipped[/]")

    done = sum(1 for o in outcomes if o.status == "complete")
    failed = sum(1 for o in outcomes if o.status == "failed")
    console.print(f"\n  {done} complete · {failed} failed")
    return outcomes


def require_api_key(model: str) -> None:
    try:
        validate_api_key(model)
    except EnvironmentError:
        console.print(err_no_api_key(model))
        raise typer.Exit(1)


def process_cmd(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only process this project (name or ID)."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Process every queued document, oldest upload first."""
    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        project_id = require_project(repo, project, console).id if project else None
        outcomes = run_pipeline(
            repo, blob_store(db, cfg), cfg, repo.list_queued_document_ids(project_id)
        )
    finally:
        conn.close()

    if any(o.status == "failed" for o in outcomes):
        raise typer.Exit(1)


def reprocess_cmd(
    document_id: Annotated[str, typer.Argument(help="Document ID (see distill status).")],
    no_process: Annotated[
        bool,
        typer.Option("--no-process", help="Only reset to queued; do not run the pipeline now."),
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Reset a complete or failed document to queued and summarize it again."""
    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        blobs = blob_store(db, cfg)
        if repo.get_document(document_id) is None:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1)
        try:
            PipelineOrchestrator(repo, blobs, cfg).reprocess(document_id, actor="cli")
        except DistillError as exc:
            console.print(err_operation(exc))
            raise typer.Exit(1)
        console.print(f"[green]✓[/] Queued for reprocessing: {document_id}")

        if not no_process:
            outcomes = run_pipeline(repo, blobs, cfg, [document_id])
            if any(o.status == "failed" for o in outcomes):
                raise typer.Exit(1)
    finally:
        conn.close()


def set_date_cmd(
    document_id: Annotated[str, typer.Argument(help="Document ID (see distill status).")],
    content_date: Annotated[str, typer.Argument(help="Content date, YYYY-MM-DD.")],
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Pin a document's content date. Automatic inference never overrides it."""
    try:
        parsed = datetime.strptime(content_date, "%Y-%m-%d").replace(
            hour=12, tzinfo=timezone.utc
        )
    except ValueError:
        console.print(err_invalid_date(content_date))
        raise typer.Exit(1)

    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        if not repo.set_manual_content_date(document_id, parsed):
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Content date set to {parsed:%Y-%m-%d} (manual)")
