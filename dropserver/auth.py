"""Authentication and security utilities."""

import base64
import hashlib
import hmac
import time
from typing import Optional

import bcrypt

from common.constants import UNLOCK_TOKEN_MAX_AGE_SECONDS


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash of the password
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: Plain text password to verify
        password_hash: Bcrypt hash to verify against

    Returns:
        True if password matches hash, False otherwise (including malformed hashes)
    """
    if not password_hash:
        return False
    password_bytes = password.encode('utf-8')
    hash_bytes = password_hash.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except ValueError:
        return False


class Authenticator:
    """
    Issues and validates signed per-share unlock tokens.

    Token format: "<share_id>:<unix_ts>.<signature>" where the signature is
    the urlsafe-base64 HMAC-SHA256 of the part before the dot.
    """

    def __init__(self, secret: str, max_age_seconds: int = UNLOCK_TOKEN_MAX_AGE_SECONDS):
        self._secret = secret.encode('utf-8')
        self.max_age_seconds = max_age_seconds

    @staticmethod
    def cookie_name(share_id: str) -> str:
        return f"unlock_{share_id}"

    def hash(self, password: str) -> str:
        return hash_password(password)

    def verify(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    def _sign(self, value: str) -> str:
        mac = hmac.new(self._secret, value.encode('utf-8'), hashlib.sha256)
        return base64.urlsafe_b64encode(mac.digest()).decode('ascii')

    def issue_unlock_token(self, share_id: str, now: Optional[float] = None) -> str:
        """
        Issue a token proving the share was unlocked.

        Args:
            share_id: Share the token grants access to
            now: Issue time as unix seconds (defaults to current time)

        Returns:
            Signed token string
        """
        issued_at = int(now if now is not None else time.time())
        value = f"{share_id}:{issued_at}"
        return f"{value}.{self._sign(value)}"

    def validate_unlock_token(
        self,
        token: Optional[str],
        share_id: str,
        now: Optional[float] = None
    ) -> bool:
        """
        Check a token's signature, share binding and age.

        Args:
            token: Token from the client, may be None
            share_id: Share being accessed
            now: Current time as unix seconds (defaults to current time)

        Returns:
            True if the token is valid for share_id
        """
        if not token:
            return False

        value, sep, signature = token.rpartition('.')
        if not sep or not value:
            return False

        if not hmac.compare_digest(signature.encode('ascii', 'ignore'), self._sign(value).encode('ascii')):
            return False

        token_share_id, sep, issued_str = value.rpartition(':')
        if not sep or token_share_id != share_id:
            return False

        try:
            issued_at = int(issued_str)
        except ValueError:
            return False

        current = now if now is not None else time.time()
        return current - issued_at <= self.max_age_seconds
