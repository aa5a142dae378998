"""Configuration dataclass for featurepipe.

Provides PipelineConfig for environment-level configuration. Programmatic
users can construct it directly, while CLI users rely on environment variables
via from_env(). Per-repository settings (commands, iteration cap) live in
featurepipe.yaml; see featurepipe.domain.config_loader.

Environment Variables:
    FEATUREPIPE_RUNS_DIR: Directory for per-run debug logs
        (default: ~/.config/featurepipe/runs)
    FEATUREPIPE_MODEL: Model short name for agent sessions (default: opus)
    FEATUREPIPE_MAX_ITERATIONS: Overrides max_iterations from featurepipe.yaml
    CLAUDE_CONFIG_DIR: Claude SDK config directory (default: ~/.claude)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(
            f"  - {e}" for e in errors
        )
        super().__init__(message)


@dataclass(frozen=True)
class PipelineConfig:
    """Environment-level configuration for the pipeline orchestrator.

    Attributes:
        runs_dir: Directory where per-run debug logs are written.
            Env: FEATUREPIPE_RUNS_DIR (default: ~/.config/featurepipe/runs)
        claude_config_dir: Claude SDK configuration directory.
            Env: CLAUDE_CONFIG_DIR (default: ~/.claude)
        model: Model short name used by agent-backed handlers.
            Env: FEATUREPIPE_MODEL (default: opus)
        max_iterations: Optional override of the implementation loop cap.
            Env: FEATUREPIPE_MAX_ITERATIONS

    Example:
        config = PipelineConfig(runs_dir=Path("/custom/runs"), model="sonnet")
        config = PipelineConfig.from_env()
    """

    runs_dir: Path = field(
        default_factory=lambda: Path.home() / ".config" / "featurepipe" / "runs"
    )
    claude_config_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    model: str = "opus"
    max_iterations: int | None = None

    @classmethod
    def from_env(cls, *, validate: bool = True) -> PipelineConfig:
        """Create PipelineConfig from environment variables.

        Args:
            validate: If True (default), raise ConfigurationError on any
                validation errors.

        Raises:
            ConfigurationError: If validate=True and configuration is invalid.
        """
        runs_dir = Path(
            os.environ.get(
                "FEATUREPIPE_RUNS_DIR",
                str(Path.home() / ".config" / "featurepipe" / "runs"),
            )
        )
        claude_config_dir = Path(
            os.environ.get("CLAUDE_CONFIG_DIR", str(Path.home() / ".claude"))
        )
        model = os.environ.get("FEATUREPIPE_MODEL") or "opus"

        errors: list[str] = []
        max_iterations: int | None = None
        raw_max = os.environ.get("FEATUREPIPE_MAX_ITERATIONS") or None
        if raw_max is not None:
            try:
                max_iterations = int(raw_max)
            except ValueError:
                errors.append(
                    f"FEATUREPIPE_MAX_ITERATIONS must be an integer, got: {raw_max!r}"
                )

        config = cls(
            runs_dir=runs_dir,
            claude_config_dir=claude_config_dir,
            model=model,
            max_iterations=max_iterations,
        )

        if validate:
            errors.extend(config.validate())
            if errors:
                raise ConfigurationError(errors)

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return a list of errors.

        Returns:
            List of error messages. Empty list if configuration is valid.
        """
        errors: list[str] = []

        if not self.runs_dir.is_absolute():
            errors.append(f"runs_dir should be an absolute path, got: {self.runs_dir}")
        if not self.claude_config_dir.is_absolute():
            errors.append(
                f"claude_config_dir should be an absolute path, got: {self.claude_config_dir}"
            )
        if self.max_iterations is not None and self.max_iterations < 1:
            errors.append(
                f"max_iterations must be a positive integer, got: {self.max_iterations}"
            )
        if not self.model.strip():
            errors.append("model cannot be empty")

        return errors
