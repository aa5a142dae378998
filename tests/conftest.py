"""Pytest configuration for featurepipe tests."""

import os
from pathlib import Path

import pytest

SPEC_BODY = """# FEAT47: Export invoices as CSV

Add a `featurepipe`-driven CSV export for invoices.
"""


def pytest_configure(config: pytest.Config) -> None:
    """Configure test environment before collection.

    - Redirect run debug logs to /tmp and disable them by default
    - Redirect Claude SDK config to /tmp to avoid touching ~/.claude
    - Drop overrides that would leak in from the developer's shell
    """
    os.environ["FEATUREPIPE_RUNS_DIR"] = "/tmp/featurepipe-test-runs"
    os.environ["FEATUREPIPE_DISABLE_DEBUG_LOG"] = "1"
    os.environ["CLAUDE_CONFIG_DIR"] = "/tmp/featurepipe-test-claude"
    os.environ.pop("FEATUREPIPE_MAX_ITERATIONS", None)
    os.environ.pop("FEATUREPIPE_MODEL", None)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Default unmarked tests to unit category."""
    for item in items:
        if any(marker in item.keywords for marker in ("unit", "integration")):
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture
def spec_path(tmp_path: Path) -> Path:
    """Specification at docs/todo/FEAT47_specification.md inside tmp_path."""
    path = tmp_path / "docs" / "todo" / "FEAT47_specification.md"
    path.parent.mkdir(parents=True)
    path.write_text(SPEC_BODY)
    return path
