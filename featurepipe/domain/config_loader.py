"""YAML configuration loader for featurepipe.yaml.

Key functions:
- load_settings: Load and validate featurepipe.yaml from a directory
- _parse_yaml: Parse YAML content with error handling
- _validate_schema: Reject unknown fields and wrong types
- _build_settings: Convert the parsed dict to ProjectSettings
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from featurepipe.domain.settings import ConfigError, ProjectSettings

CONFIG_FILENAME = "featurepipe.yaml"

# Fields allowed at the top level of featurepipe.yaml, with accepted types
_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "test_command": (str,),
    "check_command": (str, type(None)),
    "max_iterations": (int,),
    "artifacts_dir": (str,),
    "command_timeout": (int, float),
    "agent_timeout": (int, float),
    "model": (str, type(None)),
}


def load_settings(directory: Path) -> ProjectSettings:
    """Load featurepipe.yaml from ``directory``.

    A missing file is not an error: defaults are returned.

    Args:
        directory: Directory expected to hold featurepipe.yaml.

    Returns:
        ProjectSettings built from the file, or defaults.

    Raises:
        ConfigError: If the file cannot be read, has invalid YAML syntax,
            contains unknown fields or has values of the wrong type.
    """
    config_file = directory / CONFIG_FILENAME
    if not config_file.exists():
        return ProjectSettings()

    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Failed to decode {config_file}: {e}") from e

    data = _parse_yaml(content)
    _validate_schema(data)
    return _build_settings(data, base_dir=directory)


def _parse_yaml(content: str) -> dict[str, Any]:
    """Parse YAML content into a dictionary.

    Returns an empty dict for empty/null YAML.

    Raises:
        ConfigError: If YAML syntax is invalid or the root is not a mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {CONFIG_FILENAME}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"{CONFIG_FILENAME} must be a mapping, got {type(data).__name__}"
        )
    return data


def _validate_schema(data: dict[str, Any]) -> None:
    """Validate top-level fields and their types.

    Raises:
        ConfigError: On unknown fields or type mismatches.
    """
    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise ConfigError(
            f"Unknown field(s) in {CONFIG_FILENAME}: {', '.join(unknown)}. "
            f"Allowed fields: {', '.join(sorted(_FIELD_TYPES))}"
        )

    for name, value in data.items():
        allowed = _FIELD_TYPES[name]
        # bool is a subclass of int; reject it explicitly for numeric fields
        if isinstance(value, bool) or not isinstance(value, allowed):
            expected = " or ".join(
                "null" if t is type(None) else t.__name__ for t in allowed
            )
            raise ConfigError(
                f"Field '{name}' must be {expected}, got {type(value).__name__}"
            )


def _build_settings(data: dict[str, Any], base_dir: Path) -> ProjectSettings:
    """Convert a validated dict to ProjectSettings.

    Relative artifacts_dir values resolve against the config file's directory.
    """
    kwargs: dict[str, Any] = dict(data)
    if "artifacts_dir" in kwargs:
        artifacts_dir = Path(kwargs["artifacts_dir"]).expanduser()
        if not artifacts_dir.is_absolute():
            artifacts_dir = base_dir / artifacts_dir
        kwargs["artifacts_dir"] = artifacts_dir
    for name in ("command_timeout", "agent_timeout"):
        if name in kwargs:
            kwargs[name] = float(kwargs[name])
    return ProjectSettings(**kwargs)
