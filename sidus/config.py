"""Configuration loading and basic logging."""

import logging
import os
from pathlib import Path
from typing import Optional, Final

from dotenv import load_dotenv

# Load .env automatically if present.
load_dotenv()

# Environment variable names
DB_PATH_ENV: Final[str] = "SIDUS_DB_PATH"
LOG_LEVEL_ENV: Final[str] = "SIDUS_LOG_LEVEL"
OPENAI_API_KEY_ENV: Final[str] = "OPENAI_API_KEY"
OPENAI_MODEL_ENV: Final[str] = "OPENAI_MODEL"
OPENAI_ANALYSIS_MODEL_ENV: Final[str] = "OPENAI_ANALYSIS_MODEL"
OPENAI_IMAGE_MODEL_ENV: Final[str] = "OPENAI_IMAGE_MODEL"
OPENAI_TEMPERATURE_ENV: Final[str] = "OPENAI_TEMPERATURE"
NOMINATIM_USER_AGENT_ENV: Final[str] = "SIDUS_USER_AGENT"
R2_ENDPOINT_ENV: Final[str] = "R2_ENDPOINT"
R2_ACCESS_KEY_ID_ENV: Final[str] = "R2_ACCESS_KEY_ID"
R2_SECRET_ACCESS_KEY_ENV: Final[str] = "R2_SECRET_ACCESS_KEY"
R2_BUCKET_NAME_ENV: Final[str] = "R2_BUCKET_NAME"
R2_PUBLIC_URL_ENV: Final[str] = "R2_PUBLIC_URL"

# Defaults
DEFAULT_DB_PATH: Path = Path(__file__).resolve().parent.parent / "data" / "sidus.db"
DEFAULT_OPENAI_MODEL: str = "gpt-4o-mini"
DEFAULT_ANALYSIS_MODEL: str = "gpt-4"
DEFAULT_IMAGE_MODEL: str = "dall-e-3"
DEFAULT_TEMPERATURE: float = 0.8
DEFAULT_USER_AGENT: str = "sidus (contact: set SIDUS_USER_AGENT)"


def get_openai_api_key() -> Optional[str]:
    """Return the OpenAI key."""
    return os.getenv(OPENAI_API_KEY_ENV)


def get_openai_model() -> str:
    """Chat model, gpt-4o-mini by default."""
    return os.getenv(OPENAI_MODEL_ENV, DEFAULT_OPENAI_MODEL)


def get_openai_analysis_model() -> str:
    """Model for long-form compatibility analyses."""
    return os.getenv(OPENAI_ANALYSIS_MODEL_ENV, DEFAULT_ANALYSIS_MODEL)


def get_openai_image_model() -> str:
    return os.getenv(OPENAI_IMAGE_MODEL_ENV, DEFAULT_IMAGE_MODEL)


def get_openai_temperature() -> float:
    """Generation temperature, 0.8 by default."""
    raw = os.getenv(OPENAI_TEMPERATURE_ENV)
    if raw is None:
        return DEFAULT_TEMPERATURE
    try:
        return float(raw)
    except ValueError:
        return DEFAULT_TEMPERATURE


def get_db_path() -> Path:
    """Database path, can be overridden with SIDUS_DB_PATH."""
    env_value = os.getenv(DB_PATH_ENV)
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_DB_PATH


def get_user_agent() -> str:
    """User-Agent for Nominatim requests."""
    return os.getenv(NOMINATIM_USER_AGENT_ENV, DEFAULT_USER_AGENT)


def get_r2_settings() -> dict:
    """R2 connection settings; missing values are returned as None."""
    return {
        "endpoint": os.getenv(R2_ENDPOINT_ENV) or None,
        "access_key_id": os.getenv(R2_ACCESS_KEY_ID_ENV) or None,
        "secret_access_key": os.getenv(R2_SECRET_ACCESS_KEY_ENV) or None,
        "bucket": os.getenv(R2_BUCKET_NAME_ENV) or None,
        "public_url": os.getenv(R2_PUBLIC_URL_ENV) or None,
    }


def setup_logging() -> None:
    """Configure basic logging."""
    level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
