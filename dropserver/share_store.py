"""Durable on-disk share storage: one directory per share holding the file and meta.json."""

import errno
import json
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple

from common.constants import META_FILE_NAME, SHARES_DIR_NAME, STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import ShareMeta, UploadInfo
from dropserver.exceptions import StorageCorruptionError, StorageIOError
from dropserver.utils import generate_id, is_valid_id, sanitize_file_name, utcnow

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 5


class ShareStore:
    """
    Owns the bytes and metadata of every completed share.

    Layout: <data_dir>/shares/<share_id>/<file_name> and
    <data_dir>/shares/<share_id>/meta.json.
    """

    def __init__(self, data_dir: Path):
        """
        Initialize store and ensure the shares directory exists.

        Args:
            data_dir: Root data directory

        Raises:
            OSError: If the shares directory cannot be created
        """
        self.data_dir = Path(data_dir)
        self.shares_dir = self.data_dir / SHARES_DIR_NAME
        self.shares_dir.mkdir(parents=True, exist_ok=True)

    def share_dir(self, share_id: str) -> Path:
        return self.shares_dir / share_id

    def meta_path(self, share_id: str) -> Path:
        return self.share_dir(share_id) / META_FILE_NAME

    def get_file_path(self, meta: ShareMeta) -> Path:
        """
        Get the path to a share's stored file.

        Args:
            meta: Share metadata

        Returns:
            Path to the file bytes
        """
        return self.share_dir(meta.id) / meta.file_name

    def _allocate_share_dir(self) -> Tuple[str, Path]:
        """Create a fresh share directory, retrying on ID collision."""
        for _ in range(MAX_ID_ATTEMPTS):
            share_id = generate_id()
            directory = self.share_dir(share_id)
            try:
                directory.mkdir(parents=True)
            except FileExistsError:
                logger.warning(f"Share ID collision on {share_id}, retrying")
                continue
            except OSError as e:
                raise StorageIOError(f"Creating share directory failed: {e}", e) from e
            return share_id, directory

        raise StorageIOError("Could not allocate a unique share ID")

    def create_share(
        self,
        stream: BinaryIO,
        file_name: str,
        declared_size: int,
        expires_at: Optional[datetime] = None,
        password_hash: str = "",
        info: Optional[UploadInfo] = None,
    ) -> ShareMeta:
        """
        Copy a byte stream to disk and record it as a new share.

        The actual number of bytes written becomes file_size; declared_size is
        only used for logging a mismatch. On any failure the partially created
        share directory is removed.

        Args:
            stream: Readable binary stream (anything with read(n))
            file_name: Original filename (sanitized again here)
            declared_size: Client-declared size
            expires_at: Expiry timestamp, None for permanent
            password_hash: Authenticator hash, empty when unprotected
            info: Uploader attribution

        Returns:
            Metadata of the created share

        Raises:
            StorageIOError: If writing the file or metadata fails
            StorageCorruptionError: If the input stream reports missing data
        """
        file_name = sanitize_file_name(file_name)
        if file_name == META_FILE_NAME:
            file_name = f"_{file_name}"

        share_id, directory = self._allocate_share_dir()

        try:
            written = self._copy_stream(stream, directory / file_name)

            meta = ShareMeta(
                id=share_id,
                created_at=utcnow(),
                file_name=file_name,
                file_size=written,
                expires_at=expires_at,
                password_hash=password_hash,
                info=info or UploadInfo(),
            )
            self._save_meta(meta)
        except OSError as e:
            self._remove_partial(share_id, directory)
            if e.errno == errno.ENOSPC:
                raise StorageIOError(f"Disk full while storing share {share_id}", e) from e
            raise StorageIOError(f"Writing share {share_id} failed: {e}", e) from e
        except Exception:
            self._remove_partial(share_id, directory)
            raise

        if written != declared_size:
            logger.info(
                f"Share {share_id} size differs from declared size: "
                f"declared={declared_size} written={written}"
            )
        logger.info(f"Created share {share_id} ({file_name}, {written} bytes)")
        return meta

    def _copy_stream(self, stream: BinaryIO, target: Path) -> int:
        written = 0
        with open(target, 'xb') as dst:
            while True:
                piece = stream.read(STREAM_PIECE_SIZE_BYTES)
                if not piece:
                    break
                dst.write(piece)
                written += len(piece)
        return written

    def _save_meta(self, meta: ShareMeta) -> None:
        path = self.meta_path(meta.id)
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, 'w') as f:
            json.dump(meta.to_dict(), f, indent=2)
        os.replace(tmp_path, path)

    def _remove_partial(self, share_id: str, directory: Path) -> None:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.error(f"Failed to remove partial share {share_id}: {e}")
        else:
            logger.warning(f"Removed partially created share {share_id}")

    def get_share(self, share_id: str) -> Optional[ShareMeta]:
        """
        Retrieve share metadata by ID.

        Args:
            share_id: Share ID

        Returns:
            ShareMeta if found, None otherwise (unsafe IDs are never found)

        Raises:
            StorageCorruptionError: If meta.json exists but cannot be parsed
            StorageIOError: If meta.json cannot be read
        """
        if not is_valid_id(share_id):
            return None

        path = self.meta_path(share_id)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise StorageCorruptionError(f"Malformed metadata for share {share_id}: {e}") from e
        except OSError as e:
            raise StorageIOError(f"Reading metadata for share {share_id} failed: {e}", e) from e

        try:
            return ShareMeta.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageCorruptionError(f"Invalid metadata for share {share_id}: {e}") from e

    def delete_share(self, share_id: str) -> bool:
        """
        Remove a share and its files.

        Args:
            share_id: Share ID

        Returns:
            True if the share existed and was removed, False if it didn't exist

        Raises:
            StorageIOError: If removal fails
        """
        if not is_valid_id(share_id):
            return False

        directory = self.share_dir(share_id)
        if not directory.exists():
            return False

        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"Deleting share {share_id} failed: {e}", e) from e

        logger.info(f"Deleted share {share_id}")
        return True

    def list_share_ids(self) -> List[str]:
        """
        List IDs of all share directories.

        Returns:
            Share IDs in directory order
        """
        if not self.shares_dir.exists():
            return []
        return [p.name for p in self.shares_dir.iterdir() if p.is_dir() and is_valid_id(p.name)]

    def list_shares(self) -> Iterator[ShareMeta]:
        """
        Iterate over all readable shares, skipping ones with broken metadata.

        Yields:
            ShareMeta for each share
        """
        for share_id in self.list_share_ids():
            try:
                meta = self.get_share(share_id)
            except (StorageCorruptionError, StorageIOError) as e:
                logger.warning(f"Skipping share {share_id}: {e}")
                continue
            if meta is not None:
                yield meta

    def list_expired(self, now: Optional[datetime] = None) -> List[ShareMeta]:
        """
        Find shares whose expiry timestamp has passed.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            List of expired shares
        """
        if now is None:
            now = utcnow()
        return [meta for meta in self.list_shares() if meta.is_expired(now)]

    def cleanup_expired(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Delete every expired share, continuing past individual failures.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            Tuple of (deleted_count, failed_count)
        """
        deleted = 0
        failed = 0

        for meta in self.list_expired(now):
            try:
                if self.delete_share(meta.id):
                    deleted += 1
            except StorageIOError as e:
                logger.warning(f"Failed to delete expired share {meta.id}: {e}")
                failed += 1

        return deleted, failed
