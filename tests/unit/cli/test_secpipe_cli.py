"""Tests for the secpipe command-line interface."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from secpipe import __version__
from secpipe.cli import main
from secpipe.cli.arguments import build_parser
from secpipe.cli.exit_codes import (
    EXIT_INVALID_USAGE,
    EXIT_PIPELINE_FAILED,
    EXIT_SUCCESS,
)

PY = sys.executable.replace("\\", "/")


def _write_pipeline(workspace: Path, body: str) -> Path:
    path = workspace / ".secpipe.yml"
    path.write_text(body)
    return path


def _py_step(name: str, code: str, extra: str = "") -> str:
    step = f"      - name: {name}\n        run: [{json.dumps(PY)}, -c, {json.dumps(code)}]\n"
    return step + extra


PARTIAL_PIPELINE = (
    "name: demo\n"
    "title: Demo Report\n"
    "stages:\n"
    "  - name: build\n"
    "    steps:\n"
    + _py_step("compile", "open('app.txt', 'w').write('app')")
    + "  - name: scan\n"
    "    steps:\n"
    + _py_step(
        "scanner",
        "import sys; open('scan.json', 'w').write('{}'); sys.exit(1)",
        "        failure_policy: continue-on-error\n",
    )
    + "    artifacts:\n"
    "      - path: scan.json\n"
    "        label: Scan Report\n"
    "      - path: missing.html\n"
    "        label: Missing Report\n"
)

FAILING_PIPELINE = (
    "name: demo\n"
    "stages:\n"
    "  - name: build\n"
    "    steps:\n"
    + _py_step("compile", "import sys; sys.exit(2)")
    + "  - name: scan\n"
    "    steps:\n"
    + _py_step("scanner", "pass")
)


class TestParser:
    def test_subcommands(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--verbose", "run", "ws", "--format", "json", "--stream"])
        assert args.command == "run"
        assert args.path == "ws"
        assert args.formats == ["json"]
        assert args.stream
        assert args.verbose

    def test_init_flags(self) -> None:
        args = build_parser().parse_args(["init", "--force"])
        assert args.command == "init"
        assert args.force
        assert args.path == "."


class TestMain:
    """Tests for main()."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("secpipe.cli.runner.get_version", return_value="9.9.9"):
            assert main(["--version"]) == EXIT_SUCCESS
        assert capsys.readouterr().out.strip() == "9.9.9"

    def test_get_version_falls_back_to_package(self) -> None:
        from importlib.metadata import PackageNotFoundError

        from secpipe.cli.runner import get_version

        with patch("secpipe.cli.runner.version", side_effect=PackageNotFoundError):
            assert get_version() == __version__

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == EXIT_SUCCESS
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_config_is_invalid_usage(self, workspace: Path) -> None:
        assert main(["run", str(workspace)]) == EXIT_INVALID_USAGE

    def test_invalid_config_is_invalid_usage(self, workspace: Path) -> None:
        _write_pipeline(workspace, "stages: []\n")
        assert main(["validate", str(workspace)]) == EXIT_INVALID_USAGE


class TestRunCommand:
    """End-to-end runs through the CLI."""

    def test_partial_failure_exits_zero_and_writes_report(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_pipeline(workspace, PARTIAL_PIPELINE)

        exit_code = main(["run", str(workspace)])

        assert exit_code == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "PARTIAL_FAILURE" in out
        assert "Absent artifacts: Missing Report" in out

        output_dir = workspace / ".secpipe"
        html = (output_dir / "security-report.html").read_text()
        assert "Demo Report" in html
        assert "Scan Report" in html
        record = json.loads((output_dir / "security-report.json").read_text())
        assert record["status"] == "partial_failure"
        assert (output_dir / "archive" / "scan.json").exists()
        assert (output_dir / "archive" / ".secpipe" / "security-report.html").exists()
        assert (output_dir / "logs" / "scan" / "scanner.log").exists()

    def test_fail_fast_exits_non_zero(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_pipeline(workspace, FAILING_PIPELINE)

        exit_code = main(["run", str(workspace), "--format", "json"])

        assert exit_code == EXIT_PIPELINE_FAILED
        out = capsys.readouterr().out
        assert "aborted in 'build'" in out
        assert "[skipped] scan" in out
        record = json.loads((workspace / ".secpipe" / "security-report.json").read_text())
        assert [s["status"] for s in record["stages"]] == ["failed", "skipped"]
        assert not (workspace / ".secpipe" / "security-report.html").exists()

    def test_no_report(self, workspace: Path) -> None:
        _write_pipeline(workspace, PARTIAL_PIPELINE)
        assert main(["run", str(workspace), "--no-report"]) == EXIT_SUCCESS
        assert not (workspace / ".secpipe" / "security-report.html").exists()

    def test_secret_never_printed(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        body = (
            "name: demo\n"
            "stages:\n"
            "  - name: sast\n"
            "    steps:\n"
            + _py_step(
                "sonar",
                "import os; print(os.environ['SONAR_TOKEN'])",
                "        credentials:\n"
                "          - id: sonar-token\n"
                "            variable: SONAR_TOKEN\n",
            )
        )
        _write_pipeline(workspace, body)
        with patch.dict(os.environ, {"SECPIPE_CRED_SONAR_TOKEN": "tok-abc-123"}):
            exit_code = main(["--debug", "run", str(workspace), "--stream"])

        assert exit_code == EXIT_SUCCESS
        captured = capsys.readouterr()
        assert "tok-abc-123" not in captured.out
        assert "tok-abc-123" not in captured.err
        log = (workspace / ".secpipe" / "logs" / "sast" / "sonar.log").read_text()
        assert "tok-abc-123" not in log

    def test_missing_credential_fails_run(self, workspace: Path) -> None:
        body = (
            "name: demo\n"
            "stages:\n"
            "  - name: publish\n"
            "    steps:\n"
            + _py_step(
                "push",
                "pass",
                "        failure_policy: continue-on-error\n"
                "        credentials:\n"
                "          - id: no-such-credential-xyz\n"
                "            variable: TOKEN\n",
            )
        )
        _write_pipeline(workspace, body)
        assert main(["run", str(workspace), "--no-report"]) == EXIT_PIPELINE_FAILED


class TestValidateAndStages:
    def test_validate_lists_stages(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_pipeline(workspace, PARTIAL_PIPELINE)
        assert main(["validate", str(workspace)]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Pipeline 'demo' is valid: 2 stages, 2 steps" in out
        assert "  2. scan" in out

    def test_stages_shows_policies(
        self, workspace: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_pipeline(workspace, PARTIAL_PIPELINE)
        assert main(["stages", str(workspace)]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "compile [fail-fast]" in out
        assert "scanner [continue-on-error]" in out
        assert "artifact 'Scan Report': scan.json" in out
