"""Configuration helpers for the FastAPI backend."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sidus import config as core_config

SOULMATE_COOLDOWN_ENV = "SIDUS_SOULMATE_COOLDOWN_SECONDS"
DEFAULT_SOULMATE_COOLDOWN_SECONDS = 30


def get_db_path() -> Path:
    """SQLite file for the API (reuse core config)."""
    return core_config.get_db_path()


def get_openai_api_key() -> Optional[str]:
    return core_config.get_openai_api_key()


def storage_configured() -> bool:
    return all(core_config.get_r2_settings().values())


def get_soulmate_cooldown_seconds() -> int:
    """Window in which a second soulmate generation is refused. Default: 30s."""
    raw = os.getenv(SOULMATE_COOLDOWN_ENV)
    if raw is None:
        return DEFAULT_SOULMATE_COOLDOWN_SECONDS
    try:
        return max(0, int(raw))
    except ValueError:
        return DEFAULT_SOULMATE_COOLDOWN_SECONDS
