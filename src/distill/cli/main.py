"""distill CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from distill.cli.compress import compress_cmd
from distill.cli.ingest import ingest_cmd, ingest_transcript_cmd
from distill.cli.init import init_cmd
from distill.cli.process import process_cmd, reprocess_cmd, set_date_cmd
from distill.cli.project import people_app, project_app
from distill.cli.remove import remove_cmd
from distill.cli.status import status_cmd
from distill.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("distill")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"distill {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="distill",
    help=(
        "distill: project documents in, dated knowledge base out.\n\n"
        "  distill ingest    Store files and summarize them one by one.\n"
        "  distill compress  Fold all summaries into one knowledge base."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline events to stderr."),
    ] = False,
) -> None:
    """distill: project documents in, dated knowledge base out."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("ingest-transcript")(ingest_transcript_cmd)
app.command("process")(process_cmd)
app.command("reprocess")(reprocess_cmd)
app.command("set-date")(set_date_cmd)
app.command("status")(status_cmd)
app.command("compress")(compress_cmd)
app.command("remove")(remove_cmd)
app.add_typer(project_app, name="project")
app.add_typer(people_app, name="people")


@app.command("version")
def version_cmd() -> None:
    """Show the installed distill version."""
    typer.echo(f"distill {_installed_version()}")


if __name__ == "__main__":
    app()
