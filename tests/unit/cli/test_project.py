"""Tests for the distill project and people commands."""

from __future__ import annotations

from typer.testing import CliRunner

from distill.cli.main import app

runner = CliRunner()


def test_project_create(tmp_path, repo):
    db = tmp_path / ".distill.db"
    result = runner.invoke(app, ["project", "create", "Globex Deal", "-c", "Sales", "--db", str(db)])
    assert result.exit_code == 0, result.output
    project = repo.get_project_by_name("Globex Deal")
    assert project.category == "sales"
    assert project.id in result.output


def test_project_create_duplicate(db_path, repo):
    result = runner.invoke(app, ["project", "create", "Acme Rollout", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert len(repo.list_projects()) == 1


def test_project_create_blank_name(db_path):
    result = runner.invoke(app, ["project", "create", "  ", "--db", str(db_path)])
    assert result.exit_code == 1


def test_project_create_without_db(tmp_path):
    result = runner.invoke(app, ["project", "create", "X", "--db", str(tmp_path / "none.db")])
    assert result.exit_code == 1
    assert "distill init" in result.output


def test_project_list_empty(tmp_path, repo):
    result = runner.invoke(app, ["project", "list", "--db", str(tmp_path / ".distill.db")])
    assert result.exit_code == 0
    assert "No projects yet" in result.output


def test_project_list(db_path):
    result = runner.invoke(app, ["project", "list", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Acme Rollout" in result.output


def test_people_add_with_address(db_path, repo, project):
    result = runner.invoke(
        app,
        ["people", "add", "Dana Whitfield <dana@acme.com>", "-p", "Acme Rollout",
         "--role", "CTO", "--db", str(db_path)],
    )
    assert result.exit_code == 0, result.output
    (entry,) = repo.list_roster(project.id)
    assert (entry.name, entry.email, entry.role) == ("Dana Whitfield", "dana@acme.com", "CTO")
    assert entry.auto_extracted is False


def test_people_add_unknown_project(db_path):
    result = runner.invoke(app, ["people", "add", "Dana", "-p", "Nope", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Project not found" in result.output


def test_people_add_blank_name(db_path):
    result = runner.invoke(app, ["people", "add", " ", "-p", "Acme Rollout", "--db", str(db_path)])
    assert result.exit_code == 1
