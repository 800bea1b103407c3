"""Shared pytest fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from distill.db.connection import Database
from distill.db.models import Project
from distill.db.repository import Repository
from distill.db.schema import initialize
from distill.storage import LocalBlobStore


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".distill.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def project(repo):
    p = Project(id="proj-1", name="Acme Rollout")
    repo.add_project(p)
    return repo.get_project("proj-1")


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(tmp_path / "blobs")


def completion_response(
    text: str | None,
    model: str = "claude-sonnet-4-20250514",
    prompt_tokens: int = 1200,
    completion_tokens: int = 300,
):
    """A litellm.completion() return value with one text choice and usage."""
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    mock.model = model
    mock.usage.prompt_tokens = prompt_tokens
    mock.usage.completion_tokens = completion_tokens
    return mock


@pytest.fixture
def llm_response():
    """Factory fixture: ``llm_response("text", prompt_tokens=...)``."""
    return completion_response
