"""Configuration settings for the drop server."""

import os
import secrets
from datetime import timedelta
from pathlib import Path

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_EXPIRY_DAYS,
    DEFAULT_SERVER_PORT,
    MAX_UPLOAD_SIZE_BYTES,
    SWEEP_INTERVAL_SECONDS,
    UPLOAD_TIMEOUT_SECONDS,
)


def parse_expiry_days(value: str, default_days: int) -> timedelta:
    """
    Parse a default-expiry setting such as "30" or "30d".

    Anything unparseable, zero or negative falls back to default_days.

    Args:
        value: Raw setting value
        default_days: Fallback number of days

    Returns:
        Expiry duration
    """
    value = value.strip().lower()
    try:
        days = int(value[:-1] if value.endswith("d") else value)
    except ValueError:
        days = default_days
    if days <= 0:
        days = default_days
    return timedelta(days=days)


SERVER_HOST = os.environ.get("KISSDROP_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("KISSDROP_PORT", str(DEFAULT_SERVER_PORT)))

DATA_DIR = Path(os.environ.get("KISSDROP_DATA_DIR", "./data"))

BASE_URL = os.environ.get("KISSDROP_BASE_URL", f"http://localhost:{SERVER_PORT}").rstrip("/")

DEFAULT_EXPIRY = parse_expiry_days(
    os.environ.get("KISSDROP_DEFAULT_EXPIRY", f"{DEFAULT_EXPIRY_DAYS}d"),
    DEFAULT_EXPIRY_DAYS
)

UPLOAD_CHUNK_SIZE = int(os.environ.get("KISSDROP_CHUNK_SIZE", str(CHUNK_SIZE_BYTES)))

UPLOAD_TIMEOUT = int(os.environ.get("KISSDROP_UPLOAD_TIMEOUT", str(UPLOAD_TIMEOUT_SECONDS)))

SWEEP_INTERVAL = int(os.environ.get("KISSDROP_SWEEP_INTERVAL", str(SWEEP_INTERVAL_SECONDS)))

MAX_UPLOAD_SIZE = int(os.environ.get("KISSDROP_MAX_UPLOAD_SIZE", str(MAX_UPLOAD_SIZE_BYTES)))

# Unlock cookies do not survive a restart unless a secret is configured.
SECRET = os.environ.get("KISSDROP_SECRET") or secrets.token_hex(32)
