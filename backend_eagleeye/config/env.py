"""
Environment variable loading for EagleEye.

- Loads .env from project root when available.
- Typed readers that fall back to the default (with a warning) on bad values.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from backend_eagleeye.eagleeye_logging import get_logger

logger = get_logger(__name__)

# Project root: config is backend_eagleeye/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_eagleeye_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("config_env_invalid", name=name, value=raw, default=default)
        return default


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("config_env_invalid", name=name, value=raw, default=default)
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    logger.warning("config_env_invalid", name=name, value=raw, default=default)
    return default
