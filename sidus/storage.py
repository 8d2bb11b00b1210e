"""Re-host generated images on Cloudflare R2 (S3-compatible API)."""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Optional

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from sidus import config

logger = logging.getLogger(__name__)

KEY_PREFIX = "soulmates"
DOWNLOAD_TIMEOUT = 30
CREDENTIAL_ERROR_CODES = frozenset({"InvalidAccessKeyId", "SignatureDoesNotMatch", "AccessDenied"})
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class StorageError(Exception):
    """Download or upload failed."""


class StorageConfigError(StorageError):
    """R2 credentials or bucket settings are missing or rejected."""


def generate_image_file_name() -> str:
    """Unique name like ``soulmate-1700000000000-k3j9x0a1b2c3d.png``."""
    timestamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(13))
    return f"soulmate-{timestamp}-{suffix}.png"


def _require_settings() -> dict:
    settings = config.get_r2_settings()
    missing = [name for name, value in settings.items() if not value]
    if missing:
        raise StorageConfigError(f"R2 is not configured: missing {', '.join(missing)}")
    return settings


def build_client(settings: dict):
    return boto3.client(
        "s3",
        endpoint_url=settings["endpoint"],
        aws_access_key_id=settings["access_key_id"],
        aws_secret_access_key=settings["secret_access_key"],
        region_name="auto",
    )


def public_url_for(base_url: str, file_name: str) -> str:
    base = base_url if base_url.endswith("/") else f"{base_url}/"
    return f"{base}{KEY_PREFIX}/{file_name}"


def upload_image_from_url(source_url: str, file_name: str, *, s3_client=None) -> str:
    """Download ``source_url`` and store it under ``soulmates/<file_name>``; return the public URL."""
    settings = _require_settings()
    logger.info("Uploading image to R2 as %s", file_name)

    try:
        response = requests.get(source_url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.exception("Failed to download generated image")
        raise StorageError("Failed to download generated image") from exc

    body = response.content
    content_type: Optional[str] = response.headers.get("Content-Type") or "image/png"
    client = s3_client or build_client(settings)
    try:
        client.put_object(
            Bucket=settings["bucket"],
            Key=f"{KEY_PREFIX}/{file_name}",
            Body=body,
            ContentType=content_type,
            ACL="public-read",
        )
    except ClientError as exc:
        error_code = exc.response.get("Error", {}).get("Code")
        if error_code in CREDENTIAL_ERROR_CODES:
            logger.error("R2 rejected credentials: %s", error_code)
            raise StorageConfigError(f"R2 rejected credentials: {error_code}") from exc
        logger.exception("Failed to upload image to R2")
        raise StorageError("Failed to upload image to R2") from exc
    except BotoCoreError as exc:
        logger.exception("Failed to upload image to R2")
        raise StorageError("Failed to upload image to R2") from exc

    url = public_url_for(settings["public_url"], file_name)
    logger.info("Image stored at %s (%d bytes)", url, len(body))
    return url
