"""Smoke tests for the CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from repochat import __version__
from repochat.cli import app
from repochat.errors import load_report

BROKEN_ANSWER = "Here you go:\n````jsx\nconst x = 1;\n```\n\nDone."

DIAGRAM_ANSWER = "Flow:\n\n```mermaid\ngraph LR;\nA[Load/Parse] --> B\n```\n"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner(env={"NO_COLOR": "1", "FORCE_COLOR": None})


@pytest.fixture
def answer_file(tmp_path: Path) -> Path:
    path = tmp_path / "answer.md"
    path.write_text(BROKEN_ANSWER, encoding="utf-8")
    return path


class TestCLI:
    """Tests for the CLI entry point."""

    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("repair", "sanitize", "generate", "validate", "process"):
            assert command in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestRepairCommand:
    def test_repair_stdin(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["repair"], input="```python\nprint(1)")
        assert result.exit_code == 0
        assert "```python\nprint(1)\n```" in result.output

    def test_repair_to_file(self, runner: CliRunner, answer_file: Path, tmp_path: Path) -> None:
        output = tmp_path / "out" / "fixed.md"
        result = runner.invoke(app, ["repair", str(answer_file), "-o", str(output)])
        assert result.exit_code == 0
        assert output.read_text() == "Here you go:\n````jsx\nconst x = 1;\n````\n\nDone."

    def test_check_reports_broken_file(self, runner: CliRunner, answer_file: Path) -> None:
        result = runner.invoke(app, ["repair", str(answer_file), "--check"])
        assert result.exit_code == 1
        assert answer_file.read_text() == BROKEN_ANSWER

    def test_check_passes_clean_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "clean.md"
        path.write_text("```py\nx = 1\n```\n")
        result = runner.invoke(app, ["repair", str(path), "--check"])
        assert result.exit_code == 0

    def test_invalid_env_override_falls_back(self, runner: CliRunner) -> None:
        result = runner.invoke(
            app,
            ["repair"],
            input="```python\nprint(1)",
            env={"REPOCHAT_MAX_PASSES": "0"},
        )
        assert result.exit_code == 0
        assert "```python\nprint(1)\n```" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, ["repair", str(tmp_path / "nope.md")])
        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestSanitizeCommand:
    def test_sanitize_stdin(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["sanitize"], input="graph TD;\nA[a/b] --> B\n")
        assert result.exit_code == 0
        assert 'graph TD\nA["a b"] --> B' in result.output


class TestGenerateCommand:
    SPEC = {
        "direction": "LR",
        "nodes": [{"id": "a-1", "label": "Start"}],
        "edges": [{"from": "a-1", "to": "a-1"}],
    }
    EXPECTED = 'graph LR\n  a_1["Start"]\n  a_1 --> a_1'

    def test_generate_json_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(self.SPEC))
        result = runner.invoke(app, ["generate", str(path)])
        assert result.exit_code == 0
        assert self.EXPECTED in result.output

    def test_generate_yaml_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "graph.yaml"
        path.write_text(
            "direction: LR\n"
            "nodes:\n"
            "  - id: a-1\n"
            "    label: Start\n"
            "edges:\n"
            "  - from: a-1\n"
            "    to: a-1\n"
        )
        result = runner.invoke(app, ["generate", str(path)])
        assert result.exit_code == 0
        assert self.EXPECTED in result.output

    def test_generate_stdin(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["generate"], input=json.dumps(self.SPEC))
        assert result.exit_code == 0
        assert self.EXPECTED in result.output

    def test_malformed_spec(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["generate"], input='{"nodes": [')
        assert result.exit_code == 1
        assert "Malformed graph spec JSON" in result.output

    def test_malformed_yaml(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "graph.yml"
        path.write_text("nodes: [unclosed\n")
        result = runner.invoke(app, ["generate", str(path)])
        assert result.exit_code == 1
        assert "Malformed graph spec YAML" in result.output


class TestValidateCommand:
    def test_valid(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["validate"], input="graph TD\nA-->B")
        assert result.exit_code == 0
        assert "Valid graph diagram" in result.output

    def test_invalid(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["validate"], input="A --> B")
        assert result.exit_code == 1
        assert "Invalid or missing diagram type" in result.output

    def test_json_output(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["validate", "--json"], input="")
        assert result.exit_code == 1
        assert json.loads(result.output.strip()) == {
            "valid": False,
            "error": "Empty diagram code",
        }


class TestProcessCommand:
    def test_process_to_stdout(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "diagram.md"
        path.write_text(DIAGRAM_ANSWER)
        result = runner.invoke(app, ["process", str(path)])
        assert result.exit_code == 0
        assert '```mermaid\ngraph LR\nA["Load Parse"] --> B\n```' in result.output
        assert "Processing completed: 1 file(s)" in result.output

    def test_process_output_dir_and_report(
        self, runner: CliRunner, answer_file: Path, tmp_path: Path
    ) -> None:
        diagram = tmp_path / "diagram.md"
        diagram.write_text(DIAGRAM_ANSWER)
        out_dir = tmp_path / "out"
        report_path = tmp_path / "report.json"

        result = runner.invoke(
            app,
            [
                "process",
                str(answer_file),
                str(diagram),
                "--output-dir",
                str(out_dir),
                "--report",
                str(report_path),
            ],
        )

        assert result.exit_code == 0
        assert (out_dir / "answer.md").read_text().count("````") == 2
        assert 'A["Load Parse"]' in (out_dir / "diagram.md").read_text()

        report = load_report(report_path)
        assert report is not None
        assert report.fences_repaired == 1
        assert report.diagrams_total == 1
        assert report.success is True

    def test_drop_invalid_flag(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.md"
        path.write_text("Intro\n\n```mermaid\nnot a diagram\n```\n\nOutro\n")
        result = runner.invoke(app, ["process", str(path), "--drop-invalid"])
        assert result.exit_code == 0
        assert "not a diagram" not in result.output
        assert "Intro\n\nOutro" in result.output

    def test_missing_file_fails_run(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, ["process", str(tmp_path / "nope.md")])
        assert result.exit_code == 1
        assert "FATAL" in result.output
