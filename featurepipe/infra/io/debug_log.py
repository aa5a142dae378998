"""Per-run debug log file for featurepipe.

Attaches a DEBUG FileHandler to the ``featurepipe`` logger namespace for the
duration of a run. Console output goes through the event sink; this file
captures the module loggers.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

PACKAGE_LOGGER = "featurepipe"
_HANDLER_PREFIX = "featurepipe_debug_"

# Package logger level before each run's handler was attached, keyed by run id
_previous_levels: dict[str, int] = {}


def configure_debug_logging(run_id: str, runs_dir: Path) -> Path | None:
    """Configure Python logging to write debug logs to a file.

    Creates ``{runs_dir}/{timestamp}_{short_id}.debug.log``. Best-effort: if
    the directory or file cannot be created, returns None and the run
    continues without a debug log.

    Set FEATUREPIPE_DISABLE_DEBUG_LOG=1 to disable debug logging entirely.

    Args:
        run_id: Run ID (UUID) for the filename.
        runs_dir: Directory receiving the log file.

    Returns:
        Path to the debug log file, or None if not configured.
    """
    if os.environ.get("FEATUREPIPE_DISABLE_DEBUG_LOG") == "1":
        return None

    try:
        runs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S")
        log_path = runs_dir / f"{timestamp}_{run_id[:8]}.debug.log"

        handler = logging.FileHandler(log_path)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        handler.set_name(f"{_HANDLER_PREFIX}{run_id}")

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        previous_level = package_logger.level

        # Remove handlers left over from earlier runs in the same process
        for existing in package_logger.handlers[:]:
            name = getattr(existing, "name", None) or ""
            if name.startswith(_HANDLER_PREFIX):
                stale_run = name[len(_HANDLER_PREFIX) :]
                previous_level = _previous_levels.pop(stale_run, previous_level)
                existing.close()
                package_logger.removeHandler(existing)

        _previous_levels[run_id] = previous_level
        package_logger.setLevel(logging.DEBUG)
        package_logger.addHandler(handler)
        return log_path
    except OSError:
        return None


def cleanup_debug_logging(run_id: str) -> bool:
    """Remove and close the FileHandler registered for ``run_id``.

    Restores the package logger level that was in effect before the run.

    Returns:
        True if a handler was found and cleaned up, False otherwise.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    handler_name = f"{_HANDLER_PREFIX}{run_id}"
    for handler in package_logger.handlers[:]:
        if getattr(handler, "name", "") == handler_name:
            handler.close()
            package_logger.removeHandler(handler)
            package_logger.setLevel(_previous_levels.pop(run_id, logging.NOTSET))
            return True
    return False
