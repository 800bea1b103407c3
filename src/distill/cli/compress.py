"""distill compress: fold a project's summaries into one knowledge base."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown

from distill.cli.errors import err_operation
from distill.cli.process import require_api_key
from distill.cli.workspace import DEFAULT_DB, load_workspace_config, open_db, require_project
from distill.db.repository import Repository
from distill.errors import CompressionError
from distill.pipeline.compressor import KnowledgeBaseCompressor

console = Console()


def compress_cmd(
    project: Annotated[str, typer.Option("--project", "-p", help="Project name or ID.")],
    target_tokens: Annotated[
        int,
        typer.Option("--target-tokens", "-t", help="Approximate size of the knowledge base."),
    ],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also write the knowledge base to this file."),
    ] = None,
    show: Annotated[
        bool,
        typer.Option("--show", help="Render the knowledge base in the terminal."),
    ] = False,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Compress all complete summaries of a project, oldest to newest."""
    cfg = load_workspace_config(db, console)
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        proj = require_project(repo, project, console)
        require_api_key(cfg.compression.model)
        with console.status(f"Compressing knowledge base for {proj.name}…"):
            try:
                result = KnowledgeBaseCompressor(repo, cfg).compress(
                    proj.id, target_tokens, actor="cli"
                )
            except CompressionError as exc:
                console.print(err_operation(exc))
                raise typer.Exit(1)
    finally:
        conn.close()

    console.print(
        f"[green]✓[/] Knowledge base compressed: {result.summary_count} summaries → "
        f"{result.output_tokens:,} tokens (target {result.target_tokens:,}, "
        f"style {result.style})"
    )
    if output is not None:
        output.write_text(result.content, encoding="utf-8")
        console.print(f"  [green]✓[/] Written to {output}")
    if show:
        console.print(Markdown(result.content))
