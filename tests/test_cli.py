"""Tests for the command-line interface."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from aichat_builder.cli import main
from aichat_builder.projects import ProjectStore
from aichat_builder.storage import SqliteKeyValueStore


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("AICHAT_BUILDER_DATA_PATH", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture
def saved_projects(data_dir, sample_projects):
    store = ProjectStore(SqliteKeyValueStore(data_dir / "state.db"))
    for project in sample_projects:
        store.create(project)
    return sample_projects


def test_projects_empty(data_dir):
    result = CliRunner().invoke(main, ["projects"])
    assert result.exit_code == 0
    assert "No projects found." in result.output


def test_projects_listing(saved_projects):
    result = CliRunner().invoke(main, ["projects"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert [line.split()[0] for line in lines] == ["p-charlie", "p-bravo", "p-alpha"]
    assert "2025-01-12 14:30" in lines[1]


def test_projects_search_and_sort(saved_projects):
    result = CliRunner().invoke(main, ["projects", "--search", "dark", "--sort", "name-asc"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert [line.split()[0] for line in lines] == ["p-alpha", "p-charlie"]


def test_export_writes_files(saved_projects, tmp_path):
    out = tmp_path / "out"
    result = CliRunner().invoke(main, ["export", "p-alpha", "ghost", "--out", str(out)])
    assert result.exit_code == 0
    assert (out / "Portfolio-dark.html").read_text(encoding="utf-8") == saved_projects[0].content
    assert "Skipped 1 unknown or failed project(s)." in result.output


def test_export_nothing(data_dir, tmp_path):
    result = CliRunner().invoke(main, ["export", "ghost", "--out", str(tmp_path / "out")])
    assert result.exit_code != 0
    assert "Nothing was exported" in result.output


def test_serve_requires_api_key(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    with (
        patch("aichat_builder.config.load_dotenv"),
        patch("aichat_builder.cli.uvicorn.run") as run,
    ):
        result = CliRunner().invoke(main, ["serve"])
    assert result.exit_code != 0
    assert "GROQ_API_KEY" in result.output
    run.assert_not_called()


def test_serve_starts_uvicorn(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    with patch("aichat_builder.cli.uvicorn.run") as run:
        result = CliRunner().invoke(main, ["serve", "--port", "9000"])
    assert result.exit_code == 0
    assert "http://127.0.0.1:9000" in result.output
    assert run.call_args.args[0] == "aichat_builder.server:app"
    assert run.call_args.kwargs["port"] == 9000
