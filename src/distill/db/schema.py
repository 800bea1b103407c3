"""Schema initialisation entry point."""

from __future__ import annotations

import sqlite3

CURRENT_VERSION = 1


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from distill.db.migrations import run_migrations

    run_migrations(conn)


def open_database(db_path) -> sqlite3.Connection:
    """Open (or create) the workspace database and run migrations."""
    from distill.db.connection import Database

    conn = Database(db_path).connect()
    initialize(conn)
    return conn
