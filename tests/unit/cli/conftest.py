"""Fixtures shared by the CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from distill.storage import LocalBlobStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ~/.distill and real model overrides out of CLI runs."""
    monkeypatch.setattr("distill.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    for name in ("DISTILL_SUMMARY_MODEL", "DISTILL_CLASSIFIER_MODEL", "DISTILL_COMPRESSION_MODEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path: Path, project) -> Path:
    """Workspace database (same file as the ``repo`` fixture) holding one project."""
    return tmp_path / ".distill.db"


@pytest.fixture
def workspace_blobs(tmp_path: Path) -> LocalBlobStore:
    """Blob store at the default location the CLI derives from ``db_path``."""
    return LocalBlobStore(tmp_path / ".distill" / "blobs")


@pytest.fixture(autouse=True)
def wide_consoles(monkeypatch: pytest.MonkeyPatch) -> None:
    """Stop Rich from wrapping long lines at the 80-column default."""
    from distill.cli import compress, ingest, init, process, project, remove, status

    for module in (compress, ingest, init, process, project, remove, status):
        monkeypatch.setattr(module.console, "width", 200)
