"""Shared plumbing for CLI commands: database, config, blob store, project lookup."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from distill.cli.errors import err_config, err_no_db, err_project_not_found
from distill.config import ConfigError, DistillConfig, load_config
from distill.db.models import Project
from distill.db.repository import Repository
from distill.db.schema import open_database
from distill.storage import LocalBlobStore

DEFAULT_DB = Path(".distill.db")


def open_db(db_path: Path, console: Console, must_exist: bool = True) -> sqlite3.Connection:
    """Open the workspace database (running migrations), or exit with a hint."""
    if must_exist and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return open_database(db_path)


def load_workspace_config(db_path: Path, console: Console) -> DistillConfig:
    """Config layered for the directory that holds *db_path*."""
    try:
        return load_config(db_path.resolve().parent)
    except ConfigError as exc:
        console.print(err_config(exc))
        raise typer.Exit(1)


def blob_store(db_path: Path, cfg: DistillConfig) -> LocalBlobStore:
    root = Path(cfg.storage.blob_dir)
    if not root.is_absolute():
        root = db_path.resolve().parent / root
    return LocalBlobStore(root)


def require_project(repo: Repository, project: str, console: Console) -> Project:
    """Look *project* up by ID, then by name; exit if neither matches."""
    found = repo.get_project(project) or repo.get_project_by_name(project)
    if found is None:
        console.print(err_project_not_found(project))
        raise typer.Exit(1)
    return found
