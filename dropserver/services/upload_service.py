"""Upload service: drives the session manager and share store for the request layer."""

from datetime import timedelta
from typing import BinaryIO, Optional

from common.logging_config import get_logger
from common.types import ShareMeta, UploadInfo
from dropserver.auth import Authenticator
from dropserver.exceptions import (
    IncompleteUploadError,
    InvalidChunkIndexError,
    StorageCorruptionError,
    StorageIOError,
    UploadNotFoundError,
    ValidationError,
)
from dropserver.share_store import ShareStore
from dropserver.upload_manager import UploadManager, UploadSession
from dropserver.utils import resolve_expiry, sanitize_file_name

logger = get_logger(__name__)


class UploadService:
    def __init__(
        self,
        share_store: ShareStore,
        upload_manager: UploadManager,
        authenticator: Authenticator,
        default_expiry: timedelta,
        base_url: str = "",
    ):
        self.share_store = share_store
        self.upload_manager = upload_manager
        self.authenticator = authenticator
        # Applied at completion, not at init.
        self.default_expiry = default_expiry
        self.base_url = base_url.rstrip("/")

    def share_url(self, share_id: str) -> str:
        return f"{self.base_url}/s/{share_id}"

    def _hash_password(self, password: Optional[str]) -> str:
        if not password:
            return ""
        return self.authenticator.hash(password)

    def init_upload(
        self,
        file_name: str,
        file_size: int,
        expires_in: Optional[str] = None,
        password: Optional[str] = None,
        info: Optional[UploadInfo] = None,
    ) -> UploadSession:
        if not file_name or not file_name.strip():
            raise ValidationError("File name is required")

        session = self.upload_manager.init_session(
            file_name=sanitize_file_name(file_name),
            declared_size=file_size,
            expires_in=expires_in or "default",
            password_hash=self._hash_password(password),
            info=info,
        )
        return session

    def chunk_size_limit(self, upload_id: str, index: int) -> int:
        """
        Check that a chunk can be accepted before its body is read.

        Args:
            upload_id: Upload ID
            index: 0-based chunk index

        Returns:
            Largest number of bytes the chunk may carry

        Raises:
            UploadNotFoundError: If the session does not exist
            InvalidChunkIndexError: If index is outside [0, total_chunks)
        """
        session = self.upload_manager.get_session(upload_id)
        if session is None:
            raise UploadNotFoundError(f"Upload {upload_id} not found")
        if index < 0 or index >= session.total_chunks:
            raise InvalidChunkIndexError(index, session.total_chunks)
        return session.chunk_size

    def receive_chunk(self, upload_id: str, index: int, stream: BinaryIO) -> int:
        return self.upload_manager.receive_chunk(upload_id, index, stream)

    def get_upload_status(self, upload_id: str) -> dict:
        session = self.upload_manager.get_session(upload_id)
        if session is None:
            raise UploadNotFoundError(f"Upload {upload_id} not found")
        return session.snapshot()

    def abort_upload(self, upload_id: str) -> bool:
        return self.upload_manager.discard(upload_id)

    def complete_upload(self, upload_id: str) -> ShareMeta:
        """
        Turn a complete upload session into a share.

        Expiry is resolved here from the session's policy and the service's
        current default. An incomplete session is left untouched; a session
        with unreadable chunks is discarded; a share-store I/O failure keeps
        the session so completion can be retried.

        Args:
            upload_id: Upload ID

        Returns:
            Metadata of the created share

        Raises:
            UploadNotFoundError: If the session does not exist
            IncompleteUploadError: If chunks are missing
            StorageCorruptionError: If a received chunk cannot be read
            StorageIOError: If the share cannot be written
        """
        session = self.upload_manager.get_session(upload_id)
        if session is None:
            raise UploadNotFoundError(f"Upload {upload_id} not found")

        if not session.is_complete():
            received = session.received_count()
            logger.info(
                f"Completion of upload {upload_id} refused: "
                f"{received}/{session.total_chunks} chunks received"
            )
            raise IncompleteUploadError(upload_id, received, session.total_chunks)

        expires_at = resolve_expiry(session.expires_in, self.default_expiry)

        try:
            with self.upload_manager.assemble(upload_id) as reader:
                meta = self.share_store.create_share(
                    reader,
                    session.file_name,
                    session.declared_size,
                    expires_at=expires_at,
                    password_hash=session.password_hash,
                    info=session.info,
                )
        except StorageCorruptionError:
            logger.error(f"Upload {upload_id} has corrupt chunk data, discarding")
            self._discard_quietly(upload_id)
            raise
        except StorageIOError as e:
            logger.error(f"Failed to store share for upload {upload_id}: {e}")
            raise

        self._discard_quietly(upload_id)
        logger.info(f"Completed upload {upload_id} as share {meta.id}")
        return meta

    def _discard_quietly(self, upload_id: str) -> None:
        try:
            self.upload_manager.discard(upload_id)
        except StorageIOError as e:
            logger.warning(f"Scratch data for upload {upload_id} left behind: {e}")

    def upload_file(
        self,
        stream: BinaryIO,
        file_name: str,
        file_size: int = 0,
        expires_in: Optional[str] = None,
        password: Optional[str] = None,
        info: Optional[UploadInfo] = None,
    ) -> ShareMeta:
        """
        Single-shot upload: copy a stream straight into a new share.
        """
        if not file_name or not file_name.strip():
            raise ValidationError("No file provided")

        return self.share_store.create_share(
            stream,
            sanitize_file_name(file_name),
            file_size,
            expires_at=resolve_expiry(expires_in, self.default_expiry),
            password_hash=self._hash_password(password),
            info=info,
        )
