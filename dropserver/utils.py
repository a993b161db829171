"""Utility helper functions for the drop server."""

import os
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from common.constants import ID_ALPHABET, ID_LENGTH, MAX_FILE_NAME_LENGTH

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9._-]')
_VALID_ID = re.compile(r'^[0-9A-Za-z]+$')


def generate_id(length: int = ID_LENGTH) -> str:
    """
    Generate a random base62 identifier for shares and upload sessions.

    Uses the operating system CSPRNG; an unavailable entropy source raises
    and is not recoverable.

    Args:
        length: Number of symbols (8 gives about 47.6 bits)

    Returns:
        Random alphanumeric string
    """
    return ''.join(secrets.choice(ID_ALPHABET) for _ in range(length))


def is_valid_id(value: str) -> bool:
    """
    Check that an identifier is safe to use as a directory name.

    Args:
        value: Candidate share or upload ID

    Returns:
        True if value is non-empty and purely alphanumeric
    """
    return bool(value) and bool(_VALID_ID.match(value))


def utcnow() -> datetime:
    """
    Get the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def sanitize_file_name(name: str) -> str:
    """
    Clean up a client-supplied filename for safe storage.

    Strips path components, replaces anything outside [A-Za-z0-9._-] with an
    underscore and caps the length while keeping the extension.

    Args:
        name: Raw filename from the client

    Returns:
        Sanitized filename, "file" if nothing usable remains
    """
    name = os.path.basename(name.replace('\\', '/'))
    name = _UNSAFE_CHARS.sub('_', name)

    if len(name) > MAX_FILE_NAME_LENGTH:
        _, ext = os.path.splitext(name)
        if len(ext) >= MAX_FILE_NAME_LENGTH:
            ext = ''
        name = name[:MAX_FILE_NAME_LENGTH - len(ext)] + ext

    if name in ('', '.', '..'):
        name = 'file'

    return name


def resolve_expiry(
    policy: Optional[str],
    default_expiry: timedelta,
    now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Turn an expiry policy into a concrete expiry timestamp.

    Policies: "" or "default" use default_expiry, "never" means permanent,
    a positive integer N means N days. Anything else, including zero or a
    negative number, also gives a permanent share.

    Args:
        policy: Policy string from the client
        default_expiry: Server default; timedelta(0) means no default expiry
        now: Reference time (defaults to current UTC time)

    Returns:
        Expiry timestamp, or None for a permanent share
    """
    if now is None:
        now = utcnow()

    policy = (policy or '').strip().lower()
    if policy in ('', 'default'):
        if default_expiry > timedelta(0):
            return now + default_expiry
        return None
    if policy == 'never':
        return None

    try:
        days = int(policy)
    except ValueError:
        return None
    if days <= 0:
        return None
    return now + timedelta(days=days)
