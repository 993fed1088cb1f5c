"""Tests for the cellcalc command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from cellcalc import __version__
from cellcalc.cli import main
from cellcalc.logging import reset_sink


@pytest.fixture(autouse=True)
def _no_event_sink():
    reset_sink()
    yield
    reset_sink()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def sheet_file(tmp_path: Path) -> Path:
    path = tmp_path / "sheet.yaml"
    path.write_text(yaml.dump({
        "cells": {
            "A1": ["3"],
            "B1": ["A1", "*", "(", "2", "+", "1", ")"],
            "C1": ["B1", "/", "0"],
            "A2": ["C1", "+", "1"],
            "B2": ["7", "/", "2"],
        },
    }, sort_keys=False))
    return path


class TestVersion:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestEval:
    def test_arithmetic(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "3", "+", "4", "*", "2"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "11"

    def test_cells(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "--cell", "A1=4", "A1", "*", "2.5"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "10"

    def test_error_output(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "1", "/", "0"])
        assert result.exit_code == 0
        assert result.output.strip() == "#DIV/0! (value: Infinity)"

    def test_empty_formula(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval"])
        assert result.exit_code == 0
        assert result.output.strip() == "#EMPTY! (value: 0)"

    def test_json(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "--json", "(", "3", "+", "4"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["value"] == 7
        assert data["error"] == "#ERR"
        assert data["error_kind"] == "invalid_formula"
        assert data["last_result"] == "nan"

    def test_bad_cell_option(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "--cell", "A1", "1"])
        assert result.exit_code != 0
        assert "LABEL=NUMBER" in result.output

    def test_bad_cell_label(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "--cell", "a1=3", "1"])
        assert result.exit_code != 0
        assert "Invalid cell label" in result.output

    def test_project_catalog_and_events(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "cellcalc.yaml").write_text(yaml.dump({
            "error_messages": {"divide_by_zero": "Division by zero"},
        }))
        result = runner.invoke(main, ["eval", "--project", str(tmp_path), "1", "/", "0"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("Division by zero")

        lines = (tmp_path / "logs" / "events.ndjson").read_text().strip().splitlines()
        events = [json.loads(line) for line in lines]
        assert [e["event_type"] for e in events] == ["config_loaded", "eval_error"]
        assert events[0]["context"]["error_messages"] == {"divide_by_zero": "Division by zero"}
        assert events[1]["error_code"] == "divide_by_zero"

    def test_invalid_project_config(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "cellcalc.yaml").write_text(yaml.dump({
            "error_messages": {"invalid_cell": "#ERR"},
        }))
        result = runner.invoke(main, ["eval", "--project", str(tmp_path), "1"])
        assert result.exit_code != 0
        assert "error_messages" in result.output

    def test_invalid_logging_setting(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "cellcalc.yaml").write_text(yaml.dump({"logging_tail_bytes": "abc"}))
        result = runner.invoke(main, ["eval", "--project", str(tmp_path), "1"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "logging_tail_bytes must be a positive integer" in result.output


class TestRecalc:
    def test_table_output(self, runner: CliRunner, sheet_file: Path) -> None:
        result = runner.invoke(main, ["recalc", str(sheet_file)])
        assert result.exit_code == 0, result.output
        rows = dict(line.split() for line in result.output.strip().splitlines())
        assert rows == {
            "A1": "3",
            "B1": "9",
            "C1": "#DIV/0!",
            "A2": "#DIV/0!",
            "B2": "3.5",
        }

    def test_json_output(self, runner: CliRunner, sheet_file: Path) -> None:
        result = runner.invoke(main, ["recalc", str(sheet_file), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert list(data) == ["A1", "B1", "C1", "A2", "B2"]
        assert data["B1"] == {"value": 9.0, "error": "", "display": "9"}
        assert data["C1"]["value"] == "inf"
        assert data["A2"] == {"value": 1.0, "error": "#DIV/0!", "display": "#DIV/0!"}

    def test_bad_sheet_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"cells": {"A1": "1 + 2"}}))
        result = runner.invoke(main, ["recalc", str(path)])
        assert result.exit_code != 0
        assert "tokens must be a list" in result.output

    def test_grid_size_not_an_integer(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"n_rows": "lots", "cells": {"A1": ["1"]}}))
        result = runner.invoke(main, ["recalc", str(path)])
        assert result.exit_code == 1
        assert "n_rows must be a positive integer" in result.output


class TestEvents:
    def test_events_after_recalc(self, runner: CliRunner, sheet_file: Path, tmp_path: Path) -> None:
        project = tmp_path / "proj"
        project.mkdir()
        result = runner.invoke(main, ["recalc", str(sheet_file), "--project", str(project)])
        assert result.exit_code == 0, result.output

        result = runner.invoke(main, ["events", "--project", str(project), "--type", "cell_error"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert sorted(r["context"]["label"] for r in rows) == ["A2", "C1"]

        result = runner.invoke(main, ["events", "--project", str(project), "--label", "C1"])
        rows = json.loads(result.output)
        assert len(rows) == 1
        assert rows[0]["error_code"] == "divide_by_zero"

    def test_events_read_only(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["events", "--project", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []
        assert not (tmp_path / "logs").exists()
