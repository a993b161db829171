"""Share service: metadata lookup, password unlock and download access."""

from pathlib import Path
from typing import Optional, Tuple

from common.logging_config import get_logger
from common.types import ShareMeta
from dropserver.auth import Authenticator
from dropserver.exceptions import (
    InvalidPasswordError,
    PasswordRequiredError,
    ShareNotFoundError,
)
from dropserver.share_store import ShareStore
from dropserver.utils import utcnow

logger = get_logger(__name__)


class ShareService:
    def __init__(self, share_store: ShareStore, authenticator: Authenticator):
        self.share_store = share_store
        self.authenticator = authenticator

    def get_share_info(self, share_id: str) -> ShareMeta:
        """
        Get a live share's metadata.

        Shares past their expiry are reported as missing even before the
        sweeper removes them.

        Raises:
            ShareNotFoundError: If the share does not exist or has expired
        """
        meta = self.share_store.get_share(share_id)
        if meta is None or meta.is_expired(utcnow()):
            raise ShareNotFoundError(f"Share {share_id} not found")
        return meta

    def unlock(self, share_id: str, password: str) -> str:
        """
        Check a share password and issue an unlock token.

        Raises:
            ShareNotFoundError: If the share does not exist or has expired
            InvalidPasswordError: If the share is unprotected or the password is wrong
        """
        meta = self.get_share_info(share_id)
        if not meta.password_required or not self.authenticator.verify(password, meta.password_hash):
            logger.warning(f"Unlock failed for share {share_id}")
            raise InvalidPasswordError("Invalid password")

        logger.info(f"Share {share_id} unlocked")
        return self.authenticator.issue_unlock_token(share_id)

    def open_download(self, share_id: str, token: Optional[str] = None) -> Tuple[ShareMeta, Path]:
        """
        Resolve a share to its file, enforcing password protection.

        Raises:
            ShareNotFoundError: If the share or its file does not exist
            PasswordRequiredError: If the share is protected and token is invalid
        """
        meta = self.get_share_info(share_id)
        if meta.password_required and not self.authenticator.validate_unlock_token(token, share_id):
            raise PasswordRequiredError("Password required")

        path = self.share_store.get_file_path(meta)
        if not path.is_file():
            logger.error(f"Share {share_id} has metadata but no file")
            raise ShareNotFoundError(f"Share {share_id} not found")
        return meta, path
