"""Tests for the playspace command line.

The child command is the current Python interpreter; its checks are
reported through the exit code since the child writes to the real
stdout, not to CliRunner's capture.
"""

import os
import sys
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from playspace.cli import build_env_overrides, main, parse_assignments
from playspace.constants import EXIT_CLI_ERROR, EXIT_COMMAND_NOT_FOUND, EXIT_CONTENTION, EXIT_PLAYSPACE_ERROR
from playspace.mutex import GLOBAL_DOMAIN


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _python(code: str) -> list[str]:
    return ["--", sys.executable, "-c", code]


# ============================================================================
# Option Parsing
# ============================================================================


class TestParseAssignments:
    def test_splits_on_first_equals(self) -> None:
        assert parse_assignments(("A=1", "B=x=y", "C="), "-e") == [("A", "1"), ("B", "x=y"), ("C", "")]

    @pytest.mark.parametrize("bad", ["NOEQUALS", "=value"])
    def test_rejects_bad_format(self, bad: str) -> None:
        with pytest.raises(click.BadParameter):
            parse_assignments((bad,), "-e")

    def test_unsets_follow_sets(self) -> None:
        assert build_env_overrides(("A=1",), ("B",)) == [("A", "1"), ("B", None)]


# ============================================================================
# Running Commands
# ============================================================================


class TestRun:
    def test_propagates_exit_code(self, runner: CliRunner, temp_root: Path) -> None:
        result = runner.invoke(main, ["--temp-root", str(temp_root), *_python("raise SystemExit(7)")])
        assert result.exit_code == 7
        assert list(temp_root.iterdir()) == []

    def test_runs_in_scratch_directory(self, runner: CliRunner, temp_root: Path) -> None:
        code = (
            "import os, sys; cwd = os.getcwd(); "
            f"sys.exit(0 if os.path.dirname(cwd) == {str(temp_root)!r} "
            "and os.path.basename(cwd).startswith('cli-') and not os.listdir(cwd) else 3)"
        )
        result = runner.invoke(main, ["--temp-root", str(temp_root), "--prefix", "cli-", *_python(code)])
        assert result.exit_code == 0, result.output

    def test_env_set_and_unset(self, runner: CliRunner, temp_root: Path) -> None:
        os.environ["PLAYSPACE_CLI_UNSET"] = "present"
        code = (
            "import os, sys; "
            "sys.exit(0 if os.environ.get('PLAYSPACE_CLI_SET') == 'a=b' "
            "and 'PLAYSPACE_CLI_UNSET' not in os.environ else 3)"
        )
        result = runner.invoke(
            main,
            ["--temp-root", str(temp_root), "-e", "PLAYSPACE_CLI_SET=a=b", "-u", "PLAYSPACE_CLI_UNSET", *_python(code)],
        )
        assert result.exit_code == 0, result.output
        # The invoking process got its environment back
        assert os.environ["PLAYSPACE_CLI_UNSET"] == "present"
        assert "PLAYSPACE_CLI_SET" not in os.environ

    def test_files_are_written_first(self, runner: CliRunner, temp_root: Path) -> None:
        code = "import sys; sys.exit(0 if open('data.txt').read() == 'hello world' else 3)"
        result = runner.invoke(main, ["--temp-root", str(temp_root), "-f", "data.txt=hello world", *_python(code)])
        assert result.exit_code == 0, result.output
        assert list(temp_root.iterdir()) == []

    def test_command_options_pass_through(self, runner: CliRunner, temp_root: Path) -> None:
        result = runner.invoke(main, ["--temp-root", str(temp_root), sys.executable, "-c", "raise SystemExit(4)"])
        assert result.exit_code == 4


# ============================================================================
# Errors
# ============================================================================


class TestErrors:
    def test_file_outside_playspace(self, runner: CliRunner, temp_root: Path) -> None:
        result = runner.invoke(main, ["--temp-root", str(temp_root), "-f", "../escape.txt=x", *_python("pass")])
        assert result.exit_code == EXIT_PLAYSPACE_ERROR
        assert "outside playspace" in result.output
        assert list(temp_root.iterdir()) == []

    def test_command_not_found(self, runner: CliRunner, temp_root: Path) -> None:
        result = runner.invoke(main, ["--temp-root", str(temp_root), "--", "playspace-no-such-command-xyz"])
        assert result.exit_code == EXIT_COMMAND_NOT_FOUND
        assert list(temp_root.iterdir()) == []

    def test_no_wait_contention(self, runner: CliRunner, temp_root: Path) -> None:
        token = GLOBAL_DOMAIN.try_acquire()
        try:
            result = runner.invoke(main, ["--no-wait", "--temp-root", str(temp_root), *_python("pass")])
        finally:
            token.release()
        assert result.exit_code == EXIT_CONTENTION
        assert "busy" in result.output

    def test_bad_env_format(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["-e", "NOEQUALS", *_python("pass")])
        assert result.exit_code == EXIT_CLI_ERROR

    def test_bad_prefix(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--prefix", "a/b", *_python("pass")])
        assert result.exit_code == EXIT_CLI_ERROR

    def test_missing_command(self, runner: CliRunner) -> None:
        result = runner.invoke(main, [])
        assert result.exit_code == EXIT_CLI_ERROR

    def test_missing_temp_root(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["--temp-root", str(tmp_path / "missing"), *_python("pass")])
        assert result.exit_code == EXIT_CLI_ERROR


class TestVersion:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "playspace" in result.output
