"""Console logging helpers for featurepipe.

Colored, timestamped one-line output. Stage names get a stable color so a
long run is easy to scan.
"""

from datetime import datetime

# Global verbose setting (can be modified at runtime)
_verbose_enabled: bool = False


def set_verbose(enabled: bool) -> None:
    """Enable or disable verbose output globally."""
    global _verbose_enabled
    _verbose_enabled = enabled


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text to max_length, adding ellipsis if truncated.

    Returns the text unchanged when verbose output is enabled.
    """
    if _verbose_enabled:
        return text
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


class Colors:
    """ANSI color codes for terminal output (bright variants)."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    RED = "\033[91m"
    GRAY = "\033[90m"
    WHITE = "\033[97m"
    MUTED = "\033[90m"


STAGE_COLORS = [
    Colors.CYAN,
    Colors.YELLOW,
    Colors.MAGENTA,
    Colors.GREEN,
    Colors.BLUE,
    Colors.WHITE,
]

# Maps stage ids to their assigned colors
_stage_color_map: dict[str, str] = {}


def get_stage_color(stage_id: str) -> str:
    """Get a consistent color for a stage based on its id."""
    if stage_id not in _stage_color_map:
        _stage_color_map[stage_id] = STAGE_COLORS[
            len(_stage_color_map) % len(STAGE_COLORS)
        ]
    return _stage_color_map[stage_id]


def log(
    icon: str,
    message: str,
    color: str = Colors.RESET,
    dim: bool = False,
    stage_id: str | None = None,
) -> None:
    """Print one timestamped line, prefixed with the stage id when given."""
    style = Colors.MUTED if dim else ""
    timestamp = datetime.now().strftime("%H:%M:%S")
    if stage_id:
        prefix = f"{get_stage_color(stage_id)}[{stage_id}]{Colors.RESET} "
    else:
        prefix = ""
    print(
        f"{Colors.GRAY}{timestamp}{Colors.RESET} {prefix}{style}{color}{icon} {message}{Colors.RESET}"
    )


def log_verbose(
    icon: str,
    message: str,
    color: str = Colors.MUTED,
    stage_id: str | None = None,
) -> None:
    """Log only when verbose output is enabled."""
    if _verbose_enabled:
        log(icon, message, color, stage_id=stage_id)
