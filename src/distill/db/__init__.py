"""distill database layer."""

from distill.db.connection import Database
from distill.db.migrations import MIGRATIONS, run_migrations
from distill.db.repository import Repository
from distill.db.schema import initialize, open_database

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "open_database",
    "run_migrations",
    "MIGRATIONS",
]
