"""distill status: recent processing runs and stalled work.

Shows a table of the newest runs with the document's summary status, model,
token count, truncation flag and error, plus a panel listing runs that have
been ``processing`` for longer than ``pipeline.stall_minutes``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from distill.cli.workspace import (
    DEFAULT_DB,
    blob_store,
    load_workspace_config,
    open_db,
    require_project,
)
from distill.db.repository import Repository
from distill.pipeline.orchestrator import PipelineOrchestrator

console = Console()

_STATUS_STYLE = {
    "queued": "[yellow]queued[/]",
    "processing": "[cyan]processing[/]",
    "complete": "[green]complete[/]",
    "failed": "[red]failed[/]",
}


def status_cmd(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only show this project (name or ID)."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of runs to show.")] = 20,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Show recent processing runs and stalled work."""
    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        project_id = require_project(repo, project, console).id if project else None
        rows = repo.list_recent_runs(project_id, limit)
        stalled = PipelineOrchestrator(repo, blob_store(db, cfg), cfg).stalled_runs()
        stalled_docs = {run.id: repo.get_document(run.document_id) for run in stalled}
    finally:
        conn.close()

    if not rows:
        console.print("[yellow]No documents ingested yet.[/]  Run:  distill ingest --project P --source FILE")
        raise typer.Exit(0)

    table = Table(title="Processing runs", show_header=True, header_style="bold")
    table.add_column("Document", style="bold")
    table.add_column("Summary")
    table.add_column("Run")
    table.add_column("Tries", justify="right")
    table.add_column("Content date")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Trunc.")
    table.add_column("Error", overflow="fold")
    table.add_column("ID", style="dim")

    for run, doc, summary in rows:
        content_date = (
            f"{doc.content_date:%Y-%m-%d} ({doc.content_date_source})" if doc.content_date else "—"
        )
        table.add_row(
            doc.filename,
            _STATUS_STYLE.get(summary.status, summary.status) if summary else "—",
            run.status,
            str(run.attempts),
            content_date,
            (summary.model or "—") if summary else "—",
            f"{summary.token_count:,}" if summary and summary.token_count else "—",
            "[yellow]yes[/]" if summary and summary.truncated else "",
            (run.error_message or "")[:120],
            doc.id,
        )
    console.print(table)

    if stalled:
        lines = [
            f"  {stalled_docs[run.id].filename if stalled_docs[run.id] else run.document_id}"
            f": processing since {run.started_at:%Y-%m-%d %H:%M} UTC"
            for run in stalled
        ]
        console.print(
            Panel(
                "\n".join(lines)
                + f"\n\n[dim]Stalled for more than {cfg.pipeline.stall_minutes} minutes. "
                "Not recovered automatically; run [bold]distill reprocess[/] to requeue.[/]",
                title="[bold yellow]Stalled runs[/]",
                expand=False,
            )
        )
