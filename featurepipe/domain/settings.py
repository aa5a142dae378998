"""Project settings for a featurepipe run.

ProjectSettings mirrors the optional featurepipe.yaml file in the working
directory. Every field has a default so a repository without the file can
still run the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAX_ITERATIONS = 10


class ConfigError(Exception):
    """Base exception for project configuration errors.

    Raised when featurepipe.yaml has invalid content, unknown fields,
    or values of the wrong type.
    """

    pass


@dataclass(frozen=True)
class ProjectSettings:
    """Settings loaded from featurepipe.yaml.

    Attributes:
        test_command: Command run to evaluate authored tests and each
            implementation iteration.
        check_command: Static type/consistency check run after the tests.
            None disables the check (treated as passing).
        max_iterations: Iteration cap for the bounded implementation loop.
        artifacts_dir: Directory for artifact files. None means the directory
            containing the initiating specification.
        command_timeout: Timeout in seconds for test/check commands.
        agent_timeout: Timeout in seconds for one agent session.
        model: Model short name for agent-backed handlers.
    """

    test_command: str = "pytest"
    check_command: str | None = "mypy ."
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    artifacts_dir: Path | None = None
    command_timeout: float = 600.0
    agent_timeout: float = 1800.0
    model: str | None = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigError(
                f"max_iterations must be a positive integer, got {self.max_iterations}"
            )
        if not self.test_command.strip():
            raise ConfigError("test_command cannot be empty")
        if self.command_timeout <= 0:
            raise ConfigError(f"command_timeout must be positive, got {self.command_timeout}")
        if self.agent_timeout <= 0:
            raise ConfigError(f"agent_timeout must be positive, got {self.agent_timeout}")
