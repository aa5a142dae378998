"""Environment configuration and loading for featurepipe.

Centralizes config paths and dotenv loading. load_user_env() is called from
the CLI bootstrap, never at import time.
"""

from pathlib import Path

from dotenv import load_dotenv

# User config directory (stores .env, runs, etc.)
USER_CONFIG_DIR = Path.home() / ".config" / "featurepipe"

# Prompt templates shipped with the package
PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"


def load_user_env() -> None:
    """Load environment from ${USER_CONFIG_DIR}/.env (typically ~/.config/featurepipe/.env)."""
    load_dotenv(dotenv_path=USER_CONFIG_DIR / ".env")

