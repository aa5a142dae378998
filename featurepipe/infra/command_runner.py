"""Standardized subprocess execution for test and consistency commands.

CommandRunner runs a command in a working directory with a timeout. On
timeout the whole process group receives SIGTERM, then SIGKILL after a grace
period, so test runners cannot leave orphaned workers behind.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Exit code reported for commands killed by timeout (matches coreutils timeout)
TIMEOUT_EXIT_CODE = 124

DEFAULT_KILL_GRACE_SECONDS = 2.0


@dataclass(frozen=True)
class CommandResult:
    """Result of running a command.

    Attributes:
        command: The command that was run.
        returncode: Process exit code (TIMEOUT_EXIT_CODE on timeout).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration_seconds: Wall-clock duration.
        timed_out: Whether the command was killed by timeout.
    """

    command: list[str] | str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True when the command exited 0 without timing out."""
        return self.returncode == 0 and not self.timed_out

    def stdout_tail(self, max_lines: int = 20) -> str:
        """Return the last ``max_lines`` lines of stdout."""
        lines = self.stdout.splitlines()
        return "\n".join(lines[-max_lines:])

    def stderr_tail(self, max_chars: int = 800) -> str:
        """Return the last ``max_chars`` characters of stderr."""
        return self.stderr[-max_chars:]

    def failure_output(self) -> str:
        """Human-readable description of a failed run for agent feedback."""
        if self.timed_out:
            return f"Command timed out after {self.duration_seconds:.1f}s"
        parts = [f"exit code {self.returncode}"]
        tail = self.stdout_tail()
        if tail:
            parts.append(tail)
        err = self.stderr_tail()
        if err:
            parts.append(err)
        return "\n".join(parts)


class CommandRunner:
    """Runs commands in a fixed working directory.

    Usage:
        runner = CommandRunner(cwd=repo_path, timeout_seconds=600)
        result = runner.run("pytest -q", shell=True)
    """

    def __init__(
        self,
        cwd: Path,
        timeout_seconds: float | None = None,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ) -> None:
        self.cwd = cwd
        self.timeout_seconds = timeout_seconds
        self.kill_grace_seconds = kill_grace_seconds

    def run(
        self,
        cmd: list[str] | str,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        shell: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            cmd: Argument list, or a command string when shell=True.
            env: Extra environment variables merged over os.environ.
            timeout: Per-call timeout override in seconds.
            shell: Run the command through the shell.

        Returns:
            CommandResult with exit status and captured output.
        """
        effective_timeout = timeout if timeout is not None else self.timeout_seconds
        merged_env = {**os.environ, **env} if env else None
        start = time.monotonic()
        logger.debug("Running %r in %s (timeout=%s)", cmd, self.cwd, effective_timeout)

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.cwd,
                env=merged_env,
                shell=shell,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=sys.platform != "win32",
            )
        except (OSError, ValueError) as e:
            return CommandResult(
                command=cmd,
                returncode=127,
                stderr=str(e),
                duration_seconds=time.monotonic() - start,
            )

        try:
            stdout, stderr = proc.communicate(timeout=effective_timeout)
        except subprocess.TimeoutExpired:
            self._terminate(proc)
            stdout, stderr = proc.communicate()
            logger.warning("Command timed out after %ss: %r", effective_timeout, cmd)
            return CommandResult(
                command=cmd,
                returncode=TIMEOUT_EXIT_CODE,
                stdout=stdout or "",
                stderr=stderr or "",
                duration_seconds=time.monotonic() - start,
                timed_out=True,
            )

        return CommandResult(
            command=cmd,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=time.monotonic() - start,
        )

    def _terminate(self, proc: subprocess.Popen[str]) -> None:
        """SIGTERM the process group, then SIGKILL after the grace period."""
        if sys.platform == "win32":
            proc.kill()
            return
        try:
            pgid = os.getpgid(proc.pid)
        except ProcessLookupError:
            return
        try:
            os.killpg(pgid, signal.SIGTERM)
            proc.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            try:
                os.killpg(pgid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        except ProcessLookupError:
            pass
