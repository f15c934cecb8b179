"""Tests for the pathguard CLI."""

from __future__ import annotations

import json
from inspect import signature
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner, Result

from pathguard.__main__ import main
from pathguard.config import BASE_DIR_ENV_VAR

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.parametrize(
    ("cli_args", "expected_paths"),
    [
        pytest.param(["reports/q1.csv"], ["reports/q1.csv"], id="single"),
        pytest.param(["reports/q1.csv", "reports/../notes.txt", ""], ["reports/q1.csv", "notes.txt", ""], id="many"),
        pytest.param(["--bytes", "reports/q1.csv"], ["reports/q1.csv"], id="bytes"),
        pytest.param(["--encoding", "latin-1", "reports/q1.csv"], ["reports/q1.csv"], id="encoding"),
    ],
)
def test_cli_prints_confined_paths(sandbox: Path, cli_args: list[str], expected_paths: list[str]) -> None:
    """Accepted candidates are printed on STDOUT as canonical paths and the exit status is 0."""
    result = _invoke_isolated_cli_runner(["--base", str(sandbox), *cli_args])

    assert result.exit_code == 0, result.stderr
    assert result.stdout.splitlines() == [str(sandbox / path) if path else str(sandbox) for path in expected_paths]
    assert result.stderr == ""


def test_cli_reports_rejections_on_stderr(sandbox: Path) -> None:
    """Rejected candidates go to STDERR with their kind and make the command exit with status 1."""
    result = _invoke_isolated_cli_runner(["--base", str(sandbox), "reports/q1.csv", "../secrets/passwd"])

    assert result.exit_code == 1
    assert result.stdout.splitlines() == [str(sandbox / "reports" / "q1.csv")]
    assert result.stderr.startswith("path_traversal: Path traversal detected: '../secrets/passwd'")


def test_cli_json_output(sandbox: Path) -> None:
    """``--json`` prints one ``CheckResult`` document per candidate."""
    result = _invoke_isolated_cli_runner(["--base", str(sandbox), "--json", "reports/q1.csv", "../../etc/passwd"])

    assert result.exit_code == 1
    accepted, rejected = (json.loads(line) for line in result.stdout.splitlines())
    assert accepted == {
        "candidate": "reports/q1.csv",
        "accepted": True,
        "path": str(sandbox / "reports" / "q1.csv"),
        "error_kind": None,
        "message": None,
    }
    assert rejected["accepted"] is False
    assert rejected["error_kind"] == "path_traversal"


def test_cli_reads_base_from_environment(sandbox: Path) -> None:
    """The base directory falls back to ``PATHGUARD_BASE_DIR``."""
    result = _invoke_isolated_cli_runner(["reports/q1.csv"], env={BASE_DIR_ENV_VAR: str(sandbox)})

    assert result.exit_code == 0, result.stderr
    assert result.stdout.strip() == str(sandbox / "reports" / "q1.csv")


@pytest.mark.parametrize(
    ("cli_args", "message"),
    [
        pytest.param(["--base", "", "x"], "base_directory cannot be empty", id="empty-base"),
        pytest.param(["--base", "/srv/data", "--encoding", "utf-16", "x"], "encoding must be one of", id="encoding"),
        pytest.param(["--base", "/srv/data\x00", "x"], "NUL", id="nul-base"),
        pytest.param(["--base", "/srv/data"], "Missing argument", id="no-candidates"),
    ],
)
def test_cli_rejects_bad_configuration(cli_args: list[str], message: str) -> None:
    """Unusable configuration is a usage error (exit status 2)."""
    result = _invoke_isolated_cli_runner(cli_args)

    assert result.exit_code == 2
    assert message in result.stderr


def test_cli_bytes_mode_decodes_non_ascii_names(sandbox: Path) -> None:
    """With ``--bytes`` candidates are encoded to file-system bytes and decoded back by the validator."""
    result = _invoke_isolated_cli_runner(["--base", str(sandbox), "--bytes", "reports/café.csv"])

    assert result.exit_code == 0, result.stderr
    assert result.stdout.strip() == str(sandbox / "reports" / "café.csv")


def _invoke_isolated_cli_runner(args: list[str], env: dict[str, str] | None = None) -> Result:
    """Return a ``CliRunner`` that keeps ``stderr`` separate on Click 8.0-8.1."""
    kwargs = {}
    if "mix_stderr" in signature(CliRunner.__init__).parameters:
        kwargs["mix_stderr"] = False  # Click 8.0-8.1
    runner = CliRunner(**kwargs)
    return runner.invoke(main, args, env=env)
