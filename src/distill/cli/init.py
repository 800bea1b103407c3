"""distill init: create a workspace.

Creates:
  .distill.db             : database with schema and seeded system prompt templates
  distill.yaml            : per-workspace config (left alone if present)
  ~/.distill/config.yaml  : global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from distill.config import ensure_global_config
from distill.db.repository import Repository
from distill.db.schema import open_database
from distill.pipeline.prompts import seed_system_templates

console = Console()

_DEFAULT_WORKSPACE = Path(".")

_WORKSPACE_YAML = """\
# distill workspace configuration. Values here override ~/.distill/config.yaml.
# API keys belong in environment variables, never in this file.

summarization:
  # model: anthropic/claude-sonnet-4-20250514
  max_output_tokens: 8192
  timeout_seconds: 120

classifier:
  # model: anthropic/claude-haiku-4-5-20251001
  sample_chars: 500

compression:
  min_target_tokens: 100
  max_target_tokens: 50000

pipeline:
  max_retries: 1
  run_timeout_seconds: 600
  stall_minutes: 10

storage:
  blob_dir: .distill/blobs
"""


def init_cmd(
    workspace: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_WORKSPACE,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a distill workspace: database, templates and config."""
    workspace = workspace.resolve()
    workspace.mkdir(parents=True, exist_ok=True)

    console.print(f"\n[bold]Initializing distill workspace in {workspace} …[/]\n")

    db_path = workspace / ".distill.db"
    existed = db_path.exists()
    conn = open_database(db_path)
    try:
        created = seed_system_templates(Repository(conn))
    finally:
        conn.close()
    console.print(f"  [green]✓[/] .distill.db{' (existing, migrated)' if existed else ''}")
    if created:
        console.print(f"  [green]✓[/] prompt templates: {', '.join(created)}")

    yaml_path = workspace / "distill.yaml"
    if yaml_path.exists():
        console.print("  [dim]↷ distill.yaml already exists: left unchanged[/]")
    else:
        yaml_path.write_text(_WORKSPACE_YAML, encoding="utf-8")
        console.print("  [green]✓[/] distill.yaml")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\nNext steps:")
    console.print('  1. distill project create "My Project"')
    console.print('  2. distill ingest --project "My Project" --source <file>')
    console.print('  3. distill compress --project "My Project" --target-tokens 4000')
