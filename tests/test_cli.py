"""Smoke tests for the CLI."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import FakeLLM
from typer.testing import CliRunner

from digitaldna.cli import app

CATEGORIZE_RESPONSE = {
    "fileType": "notes",
    "summary": "Personal notes",
    "categories": {"professional": {"relevance": 6, "dataPoints": ["Works at Acme"]}},
    "extractedProfile": {"professional": {"employer": "Acme"}},
}
PERSONA_RESPONSE = {"summary": "Engineer at Acme", "completeness": 25}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """Run from an empty directory with no config env vars set."""
    for key in (
        "DIGITALDNA_STORAGE_BACKEND",
        "DIGITALDNA_STORAGE_ROOT",
        "S3_BUCKET_NAME",
        "ANTHROPIC_API_KEY",
        "DIGITALDNA_MODEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch("digitaldna.config.GLOBAL_CONFIG_PATH", tmp_path / "no-global.toml"):
        yield


@pytest.fixture
def root(tmp_path: Path) -> Path:
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def fake_llm():
    llm = FakeLLM(CATEGORIZE_RESPONSE, PERSONA_RESPONSE)
    with patch("digitaldna.pipeline.runtime.build_llm", return_value=llm):
        yield llm


def _write(root: Path, key: str, content: str) -> None:
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


class TestCLI:
    """Tests for the CLI entry point."""

    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("normalize", "categorize", "backlog", "personas", "route", "ingest", "serve"):
            assert command in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "digitaldna 0.1.0" in result.output

    def test_missing_storage_root(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["categorize", "u", "a.txt"])
        assert result.exit_code == 1
        assert "CONFIGURATION_ERROR" in result.output


class TestNormalizeCommand:
    def test_writes_normalized_text(self, runner, root):
        _write(root, "u/raw/notes.txt", "hello")
        result = runner.invoke(app, ["--root", str(root), "normalize", "u", "notes.txt"])
        assert result.exit_code == 0, result.output
        assert "u/normalized/notes.txt" in result.output
        assert (root / "u/normalized/notes.txt").read_text() == "hello"

    def test_missing_object(self, runner, root):
        result = runner.invoke(app, ["--root", str(root), "normalize", "u", "nope.txt"])
        assert result.exit_code == 1
        assert "BLOB_NOT_FOUND" in result.output


class TestCategorizeCommand:
    def test_categorizes(self, runner, root, fake_llm):
        _write(root, "u/normalized/notes.txt", "I work at Acme")
        result = runner.invoke(app, ["--root", str(root), "categorize", "u", "notes.txt"])
        assert result.exit_code == 0, result.output
        assert "Categorized notes.txt" in result.output
        assert "professional" in result.output
        saved = json.loads((root / "u/categorized/notes.txt.json").read_text())
        assert saved["categories"]["professional"]["relevance"] == 6

    def test_without_credential(self, runner, root):
        _write(root, "u/normalized/notes.txt", "text")
        result = runner.invoke(app, ["--root", str(root), "categorize", "u", "notes.txt"])
        assert result.exit_code == 1
        assert "CONFIGURATION_ERROR" in result.output


class TestBacklogCommand:
    def test_processes_all(self, runner, root, fake_llm):
        _write(root, "u/normalized/a.txt", "a")
        _write(root, "u/normalized/b.txt", "b")
        result = runner.invoke(app, ["--root", str(root), "backlog", "u"])
        assert result.exit_code == 0, result.output
        assert "2 succeeded, 0 skipped, 0 failed" in result.output

        rerun = runner.invoke(app, ["--root", str(root), "backlog", "u"])
        assert "0 succeeded, 2 skipped, 0 failed" in rerun.output

    def test_failures_exit_nonzero(self, runner, root, fake_llm):
        _write(root, "u/normalized/a.txt", "a")
        with patch(
            "digitaldna.categorizer.services.Categorizer.categorize_file",
            side_effect=RuntimeError("boom"),
        ):
            result = runner.invoke(app, ["--root", str(root), "backlog", "u"])
        assert result.exit_code == 1
        assert "0 succeeded, 0 skipped, 1 failed" in result.output


class TestPersonasCommand:
    def test_updates_personas(self, runner, root, fake_llm):
        _write(root, "u/normalized/notes.txt", "I work at Acme")
        runner.invoke(app, ["--root", str(root), "categorize", "u", "notes.txt"])

        result = runner.invoke(app, ["--root", str(root), "personas", "u", "notes.txt.json"])

        assert result.exit_code == 0, result.output
        assert "Updated personas: professional" in result.output
        personas = json.loads((root / "u/personas/personas.json").read_text())
        assert personas["professional"]["summary"] == "Engineer at Acme"


class TestRouteCommand:
    def test_routes_event(self, runner, root, tmp_path, fake_llm):
        _write(root, "u/raw/notes.txt", "I work at Acme")
        event_file = tmp_path / "event.json"
        event_file.write_text(
            json.dumps({"Records": [{"s3": {"object": {"key": "u/raw/notes.txt", "size": 14}}}]})
        )

        result = runner.invoke(app, ["--root", str(root), "route", str(event_file)])

        assert result.exit_code == 0, result.output
        assert (root / "u/normalized/notes.txt").exists()
        assert (root / "u/categorized/notes.txt.json").exists()

    def test_invalid_event(self, runner, root, tmp_path):
        event_file = tmp_path / "event.json"
        event_file.write_text("{not json")
        result = runner.invoke(app, ["--root", str(root), "route", str(event_file)])
        assert result.exit_code == 1
        assert "Invalid event JSON" in result.output


class TestIngestCommand:
    def test_runs_whole_pipeline(self, runner, root, tmp_path, fake_llm):
        upload = tmp_path / "notes.txt"
        upload.write_text("I work at Acme")

        result = runner.invoke(app, ["--root", str(root), "ingest", "u", str(upload)])

        assert result.exit_code == 0, result.output
        assert "Ingested 1 file(s) for u" in result.output
        assert (root / "u/raw/notes.txt").exists()
        assert (root / "u/normalized/notes.txt").exists()
        master = json.loads((root / "u/categorized/user_master_profile.json").read_text())
        assert master["fileCount"] == 1
        personas = json.loads((root / "u/personas/personas.json").read_text())
        assert list(personas) == ["professional"]
        # Categorize once, then one persona update
        assert len(fake_llm.calls) == 2
