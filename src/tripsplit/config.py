"""Runtime settings read from the environment."""

import os
from pathlib import Path

DEFAULT_STATE_DIR = Path.home() / ".tripsplit"
DEFAULT_OWNER = "local"
DEFAULT_LOG_LEVEL = "WARNING"

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_GEMINI_FALLBACKS = "gemini-1.5-flash,gemini-1.5-flash-8b,gemini-1.5-pro"


def get_state_dir() -> Path:
    """Get the state directory, respecting TRIPSPLIT_STATE_DIR env var."""
    env_path = os.environ.get("TRIPSPLIT_STATE_DIR")
    if env_path:
        return Path(env_path)
    return DEFAULT_STATE_DIR


def get_owner_id() -> str:
    """Get the caller identity used to scope trips (TRIPSPLIT_OWNER)."""
    return os.environ.get("TRIPSPLIT_OWNER", "").strip() or DEFAULT_OWNER


def get_log_level() -> str:
    """Get the log level name (TRIPSPLIT_LOG_LEVEL)."""
    return os.environ.get("TRIPSPLIT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def get_google_api_key() -> str | None:
    """Get the Gemini API key, or None when unset."""
    return os.environ.get("GOOGLE_API_KEY") or None


def get_gemini_models() -> list[str]:
    """
    Get the receipt model candidates: primary model first, then fallbacks.

    Duplicates are dropped, order is kept.
    """
    primary = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL).strip()
    fallbacks = os.environ.get("GEMINI_FALLBACKS", DEFAULT_GEMINI_FALLBACKS).split(",")

    models: list[str] = []
    for name in [primary, *fallbacks]:
        name = name.strip()
        if name and name not in models:
            models.append(name)
    return models
