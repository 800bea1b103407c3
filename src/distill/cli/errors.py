"""distill rich error messages: what went wrong, and the command that fixes it.

Usage:
    from distill.cli.errors import err_no_db
    console.print(err_no_db(str(db)))
    raise typer.Exit(1)
"""

from __future__ import annotations

from distill.llm_client import provider_of


def err_no_api_key(model: str) -> str:
    """No API key for the provider behind *model*.

    Example:
        No API key for 'anthropic' (model anthropic/claude-...). Set:  export ANTHROPIC_API_KEY=...
    """
    provider = provider_of(model)
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    env_var = env_map.get(provider, f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}' (model {model}).\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str = ".distill.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  distill init"
    )


def err_project_not_found(project: str) -> str:
    return (
        f"[red]Error:[/] Project not found: '{project}'.\n"
        "  List projects:   distill project list\n"
        f"  Create it:       distill project create \"{project}\""
    )


def err_document_not_found(document_id: str) -> str:
    return (
        f"[red]Error:[/] Document not found: '{document_id}'.\n"
        "  Run:  distill status   (shows document IDs)"
    )


def err_invalid_date(value: str) -> str:
    return (
        f"[red]Error:[/] Invalid date '{value}'.\n"
        "  Use the YYYY-MM-DD format, e.g.  distill set-date <DOCUMENT_ID> 2024-01-15"
    )


def err_config(exc: Exception) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {exc}\n"
        "  Fix distill.yaml or ~/.distill/config.yaml and retry."
    )


def err_operation(exc: Exception) -> str:
    """A pipeline / ingest / compression error with its own actionable message."""
    return f"[red]Error:[/] {exc}"


def warn_stale_knowledge_base(project: str) -> str:
    return (
        "[yellow]Note:[/] The compressed knowledge base no longer matches the summaries.\n"
        f"  Re-run:  distill compress --project \"{project}\" --target-tokens <N>"
    )
