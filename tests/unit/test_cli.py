"""Tests for the typer CLI."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from smile_report.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def intake_file(tmp_path, anxious_pain_intake):
    path = tmp_path / "intake.json"
    path.write_text(anxious_pain_intake.model_dump_json(), encoding="utf-8")
    return path


@pytest.fixture
def content_file(tmp_path, content_store):
    path = tmp_path / "content.yaml"
    content_store.save(path)
    return path


class TestDerive:
    def test_prints_tags_and_tone(self, intake_file):
        result = runner.invoke(app, ["derive", str(intake_file)])
        assert result.exit_code == 0, result.output
        assert "severe_anxiety" in result.output
        assert "TP-04 Stability-Frame" in result.output
        assert "active_pain" in result.output

    def test_unreadable_intake(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["derive", str(bad)])
        assert result.exit_code != 0


class TestScore:
    def test_ranking(self, intake_file):
        result = runner.invoke(app, ["score", str(intake_file)])
        assert result.exit_code == 0, result.output
        assert "Scenarios (HIGH)" in result.output
        assert "S16" in result.output


class TestGenerate:
    def test_report_without_evaluation(self, intake_file, content_file, tmp_path):
        output = tmp_path / "result.json"
        result = runner.invoke(
            app,
            [
                "generate",
                str(intake_file),
                "--content",
                str(content_file),
                "--no-evaluate",
                "--output",
                str(output),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "QA: PASS" in result.output

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["report"]["scenario_id"] == "S16"
        assert data["evaluation"]["outcome"] == "SKIPPED"

    def test_missing_content_file(self, intake_file, tmp_path):
        result = runner.invoke(
            app, ["generate", str(intake_file), "--content", str(tmp_path / "nope.yaml"), "--no-evaluate"]
        )
        assert result.exit_code == 1
        assert "ContentStoreError" in result.output


class TestServe:
    def test_uses_configured_bind(self, monkeypatch):
        monkeypatch.setenv("SMILE_API_PORT", "9123")
        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--host", "0.0.0.0"])
        assert result.exit_code == 0, result.output
        run.assert_called_once_with("smile_report.api.app:app", host="0.0.0.0", port=9123, log_config=None)
