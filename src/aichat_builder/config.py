"""Environment-driven settings and platform-aware data paths."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "moonshotai/kimi-k2-instruct"


def get_data_path() -> Path:
    """Return the directory where aichat-builder keeps its state."""
    env = os.environ.get("AICHAT_BUILDER_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "aichat-builder"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "aichat-builder"
    else:  # Linux
        return Path.home() / ".local" / "share" / "aichat-builder"


def get_state_db_path() -> Path:
    """Return the path to the key-value state database."""
    return get_data_path() / "state.db"


def get_downloads_path() -> Path:
    """Return the directory exported HTML files are written to."""
    env = os.environ.get("AICHAT_BUILDER_DOWNLOADS")
    if env:
        return Path(env)

    return Path.home() / "Downloads"


@dataclass
class Settings:
    groq_api_key: str
    groq_model: str = DEFAULT_GROQ_MODEL
    groq_base_url: str = DEFAULT_GROQ_BASE_URL
    timeout_seconds: float = 60.0


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    """Load generation settings from the environment (and a local .env file).

    Raises ConfigurationError if GROQ_API_KEY is missing, so callers can fail
    before any request is attempted.
    """
    load_dotenv()

    api_key = os.getenv("GROQ_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError(
            "AI service not configured. Please add GROQ_API_KEY to your environment variables."
        )

    return Settings(
        groq_api_key=api_key,
        groq_model=os.getenv("GROQ_MODEL", "").strip() or DEFAULT_GROQ_MODEL,
        groq_base_url=os.getenv("GROQ_BASE_URL", "").strip() or DEFAULT_GROQ_BASE_URL,
        timeout_seconds=_parse_float_env("GROQ_TIMEOUT_SECONDS", 60.0),
    )
