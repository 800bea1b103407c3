"""distill remove: delete a document and everything derived from it.

Removes:
  - the source blob and the summary blob
  - the summary, processing runs, usage rows and activity (cascade)
  - the document record

Usage:
  distill remove <DOCUMENT_ID>
  distill remove <DOCUMENT_ID> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from distill.activity import record_activity
from distill.cli.errors import err_document_not_found, warn_stale_knowledge_base
from distill.cli.workspace import DEFAULT_DB, blob_store, load_workspace_config, open_db
from distill.db.repository import Repository

console = Console()


def remove_cmd(
    document_id: Annotated[str, typer.Argument(help="Document ID (see distill status).")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Remove a document, its summary and its blobs."""
    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        doc = repo.get_document(document_id)
        if doc is None:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1)

        summary = repo.get_summary(doc.id)
        console.print(f"\nRemove document: [bold]{doc.filename}[/]")
        console.print(
            f"  Type: {doc.file_type}  |  Size: {doc.file_size:,} bytes  |  "
            f"Summary: {summary.status if summary else 'none'}"
        )

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        urls = repo.delete_document(doc.id)
        blob_store(db, cfg).delete(urls)
        record_activity(
            repo, doc.project_id, "file_deleted", metadata={"filename": doc.filename}, actor="cli"
        )
        project = repo.get_project(doc.project_id)
    finally:
        conn.close()

    console.print(f"\n[green]✓[/] Removed: {doc.filename} ({len(urls)} blob(s) deleted)")
    if project is not None and project.compressed_kb:
        console.print(f"\n{warn_stale_knowledge_base(project.name)}")
