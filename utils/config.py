from __future__ import annotations

"""Configuration helpers.

Handles optional loading of a .env file, typed access to environment
variables and one-time logging setup for the worker and the CLIs.
"""

from typing import Optional
import logging
import os


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_env() -> None:
    """Load environment variables from a .env file if python-dotenv is installed.

    This is a no-op if python-dotenv is not available.
    """
    try:
        from dotenv import load_dotenv  # type: ignore

        load_dotenv()
    except Exception:
        # Env may be provided by the runtime instead of a .env file
        pass


def get_required_env(key: str) -> str:
    """Get a required environment variable or raise a helpful error.

    Args:
        key: The environment variable name to retrieve.

    Returns:
        The environment variable value.

    Raises:
        RuntimeError: If the environment variable is not set.
    """
    value: Optional[str] = os.getenv(key)
    if not value:
        raise RuntimeError(f"Required environment variable not set: {key}")
    return value


def get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}") from exc


def get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}") from exc


def get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Environment variable {key} must be a boolean, got {raw!r}")


def configure_logging(level: Optional[str] = None) -> None:
    """Install the shared log format on the root logger.

    Args:
        level: Level name; defaults to SHOTFORM_LOG_LEVEL or INFO.
    """
    level_name = (level or os.getenv("SHOTFORM_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
