"""distill project / people commands.

Commands:
  distill project create NAME [--category C]  : register a project
  distill project list                        : projects with summary counts
  distill people add --project P NAME         : link a person to a project
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from distill.cli.workspace import DEFAULT_DB, open_db, require_project
from distill.db.models import STATUS_COMPLETE, STATUS_FAILED, Project
from distill.db.repository import Repository
from distill.people import parse_email_address

console = Console()

project_app = typer.Typer(
    name="project",
    help="Manage projects (create, list).",
    add_completion=False,
)

people_app = typer.Typer(
    name="people",
    help="Manage the people roster of a project.",
    add_completion=False,
)


@project_app.command("create")
def project_create_cmd(
    name: Annotated[str, typer.Argument(help="Project name.")],
    category: Annotated[
        str,
        typer.Option("--category", "-c", help="Project category (e.g. general, sales)."),
    ] = "general",
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Create a project."""
    if not name.strip():
        console.print("[red]Error:[/] Project name must not be empty.")
        raise typer.Exit(1)

    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        if repo.get_project_by_name(name) is not None:
            console.print(f"[yellow]Project '{name}' already exists.[/]")
            raise typer.Exit(0)
        project = Project(id=str(uuid.uuid4()), name=name.strip(), category=category.lower())
        repo.add_project(project)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Project created: [bold]{project.name}[/] ({project.id})")


@project_app.command("list")
def project_list_cmd(
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """List projects, most recently active first."""
    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        projects = repo.list_projects()
        if not projects:
            console.print('[yellow]No projects yet.[/]  Run:  distill project create "<name>"')
            raise typer.Exit(0)

        table = Table(title="Projects", show_header=True, header_style="bold")
        table.add_column("Name", style="bold")
        table.add_column("Category")
        table.add_column("Complete", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Knowledge base")
        table.add_column("ID", style="dim")
        for p in projects:
            kb = (
                f"{p.compressed_kb_tokens or 0:,} tokens · {p.compressed_kb_at:%Y-%m-%d}"
                if p.compressed_kb_at
                else "[dim]—[/]"
            )
            table.add_row(
                p.name,
                p.category,
                str(repo.count_summaries(p.id, STATUS_COMPLETE)),
                str(repo.count_summaries(p.id, STATUS_FAILED)),
                kb,
                p.id,
            )
    finally:
        conn.close()

    console.print(table)


@people_app.command("add")
def people_add_cmd(
    name: Annotated[
        str,
        typer.Argument(help='Person name, or "Name <email>".'),
    ],
    project: Annotated[str, typer.Option("--project", "-p", help="Project name or ID.")],
    email: Annotated[str | None, typer.Option("--email", help="Email address.")] = None,
    org: Annotated[str | None, typer.Option("--org", help="Organization.")] = None,
    role: Annotated[str | None, typer.Option("--role", help="Role in this project.")] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .distill.db.")] = DEFAULT_DB,
) -> None:
    """Add a person to a project's roster (matched by email, then by name)."""
    if "<" in name and email is None:
        name, email = parse_email_address(name)

    conn = open_db(db, console)
    try:
        repo = Repository(conn)
        proj = require_project(repo, project, console)
        person_id = repo.resolve_or_create_person(
            proj.id, name, email=email, organization=org, role=role
        )
    finally:
        conn.close()

    if person_id is None:
        console.print("[red]Error:[/] Person name must not be empty.")
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {name.strip()} linked to [bold]{proj.name}[/]")
