"""Integration tests for CommandRunner - real subprocess execution.

Tests cover:
- Output capture and tailing
- Non-zero exits and unstartable commands
- Timeout handling with process-group termination
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import pytest

from featurepipe.infra.command_runner import (
    TIMEOUT_EXIT_CODE,
    CommandResult,
    CommandRunner,
)

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required"),
]


class TestCommandResult:
    def test_ok_requires_zero_exit(self) -> None:
        assert CommandResult(command="true", returncode=0).ok is True
        assert CommandResult(command="false", returncode=1).ok is False
        assert (
            CommandResult(command="sleep", returncode=0, timed_out=True).ok is False
        )

    def test_tails(self) -> None:
        stdout = "\n".join(f"line {i}" for i in range(30))
        result = CommandResult(command="x", returncode=1, stdout=stdout, stderr="e" * 1000)
        assert result.stdout_tail(2) == "line 28\nline 29"
        assert len(result.stderr_tail()) == 800

    def test_failure_output(self) -> None:
        result = CommandResult(command="x", returncode=2, stdout="FAILED test_a")
        assert result.failure_output() == "exit code 2\nFAILED test_a"


class TestCommandRunner:
    def test_captures_stdout(self, tmp_path: Path) -> None:
        result = CommandRunner(cwd=tmp_path).run(["echo", "hello"])
        assert result.ok
        assert result.stdout == "hello\n"

    def test_runs_in_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("x")
        result = CommandRunner(cwd=tmp_path).run("ls", shell=True)
        assert "marker.txt" in result.stdout

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        result = CommandRunner(cwd=tmp_path).run("echo oops >&2; exit 3", shell=True)
        assert result.returncode == 3
        assert result.stderr.strip() == "oops"
        assert not result.ok

    def test_env_is_merged(self, tmp_path: Path) -> None:
        result = CommandRunner(cwd=tmp_path).run(
            "echo $FEATUREPIPE_TEST_VALUE", env={"FEATUREPIPE_TEST_VALUE": "42"}, shell=True
        )
        assert result.stdout.strip() == "42"

    def test_missing_binary(self, tmp_path: Path) -> None:
        result = CommandRunner(cwd=tmp_path).run(["definitely-not-a-real-binary-xyz"])
        assert result.returncode == 127
        assert not result.ok

    def test_timeout_kills_process_group(self, tmp_path: Path) -> None:
        runner = CommandRunner(cwd=tmp_path, kill_grace_seconds=0.5)
        result = runner.run("sleep 30 & sleep 30", shell=True, timeout=0.5)

        assert result.timed_out
        assert result.returncode == TIMEOUT_EXIT_CODE
        assert result.duration_seconds < 10
        assert "timed out" in result.failure_output()
