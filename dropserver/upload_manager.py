"""Resumable chunked uploads: session lifecycle, chunk persistence and ordered reassembly."""

import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Set, Tuple

from common.constants import (
    CHUNK_FILE_PREFIX,
    CHUNK_INDEX_WIDTH,
    CHUNK_SIZE_BYTES,
    MAX_UPLOAD_SIZE_BYTES,
    STREAM_PIECE_SIZE_BYTES,
    UPLOADS_DIR_NAME,
)
from common.logging_config import get_logger
from common.types import UploadInfo
from dropserver.exceptions import (
    IncompleteUploadError,
    InvalidChunkIndexError,
    StorageCorruptionError,
    StorageIOError,
    UploadNotFoundError,
    ValidationError,
)
from dropserver.utils import generate_id, is_valid_id, utcnow

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 5


def total_chunks(declared_size: int, chunk_size: int) -> int:
    """
    Number of chunks needed for a file: ceil(size / chunk_size), at least 1.

    Args:
        declared_size: File size in bytes
        chunk_size: Positive chunk size in bytes

    Returns:
        Chunk count
    """
    return max(1, -(-declared_size // chunk_size))


def chunk_file_name(index: int) -> str:
    return f"{CHUNK_FILE_PREFIX}{index:0{CHUNK_INDEX_WIDTH}d}"


@dataclass
class UploadSession:
    """
    One client's in-progress chunked upload.

    The received set and last_activity_at are guarded by the session's own
    lock; everything else is fixed at creation.
    """
    id: str
    file_name: str
    declared_size: int
    chunk_size: int
    total_chunks: int
    directory: Path
    expires_in: str = "default"
    password_hash: str = ""
    info: UploadInfo = field(default_factory=UploadInfo)
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    received: Set[int] = field(default_factory=set)
    discarded: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def chunk_path(self, index: int) -> Path:
        return self.directory / chunk_file_name(index)

    def has_chunk(self, index: int) -> bool:
        with self.lock:
            return index in self.received

    def received_count(self) -> int:
        with self.lock:
            return len(self.received)

    def is_complete(self) -> bool:
        with self.lock:
            return len(self.received) == self.total_chunks

    def missing_indices(self) -> List[int]:
        with self.lock:
            return [i for i in range(self.total_chunks) if i not in self.received]

    def last_activity(self) -> datetime:
        with self.lock:
            return self.last_activity_at

    def snapshot(self) -> dict:
        """
        Consistent view of the session for status reporting.
        """
        with self.lock:
            received = len(self.received)
            missing = [i for i in range(self.total_chunks) if i not in self.received]
            last_activity = self.last_activity_at
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.declared_size,
            "chunk_size": self.chunk_size,
            "total_chunks": self.total_chunks,
            "received": received,
            "missing": missing,
            "created_at": self.created_at,
            "last_activity": last_activity,
        }


class ChunkReader:
    """
    Forward-only byte stream over a complete session's chunk files.

    Chunks are opened lazily in index order, one at a time, and each is
    closed before the next is opened. A chunk the session claims to have but
    which cannot be found raises StorageCorruptionError instead of silently
    truncating the output. Create a new reader for every assembly.
    """

    def __init__(self, session: UploadSession, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        self.session = session
        self.piece_size = piece_size
        self._index = 0
        self._current: Optional[BinaryIO] = None
        self._closed = False
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    @property
    def closed(self) -> bool:
        return self._closed

    def _open_chunk(self, index: int) -> BinaryIO:
        if not self.session.has_chunk(index):
            raise StorageCorruptionError(
                f"Chunk {index} of upload {self.session.id} is not marked as received"
            )
        path = self.session.chunk_path(index)
        try:
            return open(path, 'rb')
        except FileNotFoundError as e:
            raise StorageCorruptionError(
                f"Chunk {index} of upload {self.session.id} is missing from disk"
            ) from e
        except OSError as e:
            raise StorageIOError(f"Opening chunk {index} of upload {self.session.id} failed: {e}", e) from e

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes, crossing into the next chunk when one is exhausted.

        A short read only happens at a chunk boundary; b"" means end of stream.

        Args:
            size: Maximum bytes to return; negative reads everything that remains

        Returns:
            Bytes read

        Raises:
            StorageCorruptionError: If a chunk file is missing
            StorageIOError: If a chunk file cannot be read
            ValueError: If the reader is closed
        """
        if self._closed:
            raise ValueError("I/O operation on closed chunk reader")

        if size is None or size < 0:
            return b''.join(iter(lambda: self.read(self.piece_size), b''))
        if size == 0:
            return b''

        while True:
            if self._current is None:
                if self._index >= self.session.total_chunks:
                    return b''
                self._current = self._open_chunk(self._index)

            try:
                data = self._current.read(size)
            except OSError as e:
                raise StorageIOError(
                    f"Reading chunk {self._index} of upload {self.session.id} failed: {e}", e
                ) from e

            if data:
                self.bytes_read += len(data)
                return data

            self._current.close()
            self._current = None
            self._index += 1

    def __iter__(self) -> Iterator[bytes]:
        while True:
            piece = self.read(self.piece_size)
            if not piece:
                break
            yield piece

    def close(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None
        self._closed = True

    def __enter__(self) -> 'ChunkReader':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class UploadManager:
    """
    Owns every in-progress chunked upload.

    Session state (received mask, timestamps) lives only in memory; chunk
    bytes are written to <data_dir>/uploads/<upload_id>/chunk_NNNNN. The
    session table is only locked for insertion and removal, and each session
    has its own lock so unrelated sessions never contend.
    """

    def __init__(
        self,
        data_dir: Path,
        chunk_size: int = CHUNK_SIZE_BYTES,
        max_upload_size: int = MAX_UPLOAD_SIZE_BYTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize manager and clear scratch directories left by a previous process.

        Args:
            data_dir: Root data directory
            chunk_size: Fixed chunk size handed to every session
            max_upload_size: Largest accepted declared size
            clock: Source of the current time
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        self.uploads_dir = Path(data_dir) / UPLOADS_DIR_NAME
        self.chunk_size = chunk_size
        self.max_upload_size = max_upload_size
        self.clock = clock
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self._purge_leftovers()

    def _purge_leftovers(self) -> None:
        removed = 0
        for path in self.uploads_dir.iterdir():
            if path.is_dir():
                shutil.rmtree(path, ignore_errors=True)
                removed += 1
        if removed:
            logger.info(f"Removed {removed} scratch directories from a previous run")

    def session_dir(self, upload_id: str) -> Path:
        return self.uploads_dir / upload_id

    def _allocate_session_dir(self) -> Tuple[str, Path]:
        # Caller holds self._lock.
        for _ in range(MAX_ID_ATTEMPTS):
            upload_id = generate_id()
            if upload_id in self._sessions:
                continue
            directory = self.session_dir(upload_id)
            try:
                directory.mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                raise StorageIOError(f"Creating upload directory failed: {e}", e) from e
            return upload_id, directory

        raise StorageIOError("Could not allocate a unique upload ID")

    def init_session(
        self,
        file_name: str,
        declared_size: int,
        expires_in: str = "default",
        password_hash: str = "",
        info: Optional[UploadInfo] = None,
    ) -> UploadSession:
        """
        Create a new upload session and its scratch directory.

        The session only becomes visible after its directory exists.

        Args:
            file_name: Sanitized filename for the resulting share
            declared_size: Client-declared size in bytes (0 gives one empty chunk)
            expires_in: Expiry policy, resolved only at completion
            password_hash: Authenticator hash, empty when unprotected
            info: Uploader attribution

        Returns:
            The new session

        Raises:
            ValidationError: If declared_size is negative or too large, or file_name is empty
            StorageIOError: If the scratch directory cannot be created
        """
        if not file_name:
            raise ValidationError("File name is required")
        if isinstance(declared_size, bool) or not isinstance(declared_size, int):
            raise ValidationError("File size must be an integer")
        if declared_size < 0:
            raise ValidationError(f"Invalid file size: {declared_size}")
        if declared_size > self.max_upload_size:
            raise ValidationError(
                f"File size {declared_size} exceeds maximum of {self.max_upload_size} bytes"
            )

        now = self.clock()
        with self._lock:
            upload_id, directory = self._allocate_session_dir()
            session = UploadSession(
                id=upload_id,
                file_name=file_name,
                declared_size=declared_size,
                chunk_size=self.chunk_size,
                total_chunks=total_chunks(declared_size, self.chunk_size),
                directory=directory,
                expires_in=expires_in or "default",
                password_hash=password_hash,
                info=info or UploadInfo(),
                created_at=now,
                last_activity_at=now,
            )
            self._sessions[upload_id] = session

        logger.info(
            f"Created upload {upload_id} for {file_name} "
            f"({declared_size} bytes, {session.total_chunks} chunks)"
        )
        return session

    def get_session(self, upload_id: str) -> Optional[UploadSession]:
        """
        Look up a session without taking the table lock.

        Args:
            upload_id: Upload ID

        Returns:
            UploadSession if found, None otherwise
        """
        return self._sessions.get(upload_id)

    def _require_session(self, upload_id: str) -> UploadSession:
        session = self.get_session(upload_id)
        if session is None:
            raise UploadNotFoundError(f"Upload {upload_id} not found")
        return session

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def receive_chunk(self, upload_id: str, index: int, stream: BinaryIO) -> int:
        """
        Persist one chunk and mark it received.

        Bytes are written to a temporary file outside any lock, then renamed
        onto the chunk's final name under the session lock. Re-sending an
        index overwrites it. On failure the temporary file is removed and the
        index stays unmarked so the client can retry.

        Args:
            upload_id: Upload ID
            index: 0-based chunk index
            stream: Readable binary stream with the chunk bytes

        Returns:
            Number of distinct chunks received so far

        Raises:
            UploadNotFoundError: If the session does not exist or was discarded
            InvalidChunkIndexError: If index is outside [0, total_chunks)
            ValidationError: If index is malformed or the chunk is larger than chunk_size
            StorageIOError: If writing the chunk fails
        """
        session = self._require_session(upload_id)

        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f"Malformed chunk index: {index!r}")
        if index < 0 or index >= session.total_chunks:
            raise InvalidChunkIndexError(index, session.total_chunks)

        final_path = session.chunk_path(index)
        tmp_path = session.directory / f".{final_path.name}.{generate_id()}.part"

        try:
            written = 0
            with open(tmp_path, 'xb') as f:
                while True:
                    piece = stream.read(STREAM_PIECE_SIZE_BYTES)
                    if not piece:
                        break
                    written += len(piece)
                    if written > session.chunk_size:
                        raise ValidationError(
                            f"Chunk {index} exceeds chunk size of {session.chunk_size} bytes"
                        )
                    f.write(piece)
        except Exception as e:
            tmp_path.unlink(missing_ok=True)
            if session.discarded:
                raise UploadNotFoundError(f"Upload {upload_id} not found") from e
            if isinstance(e, OSError):
                raise StorageIOError(f"Writing chunk {index} of upload {upload_id} failed: {e}", e) from e
            raise

        with session.lock:
            if session.discarded:
                tmp_path.unlink(missing_ok=True)
                raise UploadNotFoundError(f"Upload {upload_id} not found")
            try:
                tmp_path.replace(final_path)
            except OSError as e:
                tmp_path.unlink(missing_ok=True)
                raise StorageIOError(f"Storing chunk {index} of upload {upload_id} failed: {e}", e) from e
            session.received.add(index)
            session.last_activity_at = self.clock()
            count = len(session.received)

        logger.debug(
            f"Upload {upload_id}: chunk {index} stored ({written} bytes, "
            f"{count}/{session.total_chunks})"
        )
        return count

    def received_count(self, upload_id: str) -> int:
        session = self.get_session(upload_id)
        if session is None:
            return 0
        return session.received_count()

    def is_complete(self, upload_id: str) -> bool:
        session = self.get_session(upload_id)
        if session is None:
            return False
        return session.is_complete()

    def assemble(self, upload_id: str) -> ChunkReader:
        """
        Get an ordered stream over a complete session's chunks.

        Args:
            upload_id: Upload ID

        Returns:
            A fresh ChunkReader

        Raises:
            UploadNotFoundError: If the session does not exist
            IncompleteUploadError: If any chunk is still missing
        """
        session = self._require_session(upload_id)
        received = session.received_count()
        if received != session.total_chunks:
            raise IncompleteUploadError(upload_id, received, session.total_chunks)
        return ChunkReader(session)

    def discard(self, upload_id: str) -> bool:
        """
        Remove a session from memory and delete its scratch directory.

        Safe to call repeatedly; later chunk writes for the ID fail with
        UploadNotFoundError.

        Args:
            upload_id: Upload ID

        Returns:
            True if a live session was removed, False if none existed

        Raises:
            StorageIOError: If the scratch directory cannot be removed
        """
        if not is_valid_id(upload_id):
            return False

        with self._lock:
            session = self._sessions.pop(upload_id, None)

        if session is not None:
            with session.lock:
                session.discarded = True

        directory = self.session_dir(upload_id)
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageIOError(f"Removing scratch data for upload {upload_id} failed: {e}", e) from e

        if session is not None:
            logger.info(f"Discarded upload {upload_id}")
        return session is not None

    def purge_orphans(self) -> Tuple[int, int]:
        """
        Delete scratch directories that belong to no live session.

        These are left behind when a discard could not remove its directory.
        The listing is taken under the table lock, so a directory created by
        a concurrent init is never mistaken for an orphan.

        Returns:
            Tuple of (removed_count, failed_count)
        """
        with self._lock:
            orphans = [
                path for path in self.uploads_dir.iterdir()
                if path.is_dir() and path.name not in self._sessions
            ]

        removed = 0
        failed = 0
        for path in orphans:
            try:
                shutil.rmtree(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove orphaned scratch directory {path.name}: {e}")
                failed += 1
                continue
            removed += 1
            logger.info(f"Removed orphaned scratch directory {path.name}")
        return removed, failed

    def sweep_stale(self, timeout: timedelta, now: Optional[datetime] = None) -> Tuple[int, int]:
        """
        Discard every session inactive for longer than timeout.

        Scratch directories with no live session are removed as well.
        Failures on one session are logged and do not stop the sweep.

        Args:
            timeout: Inactivity timeout
            now: Reference time (defaults to the manager's clock)

        Returns:
            Tuple of (discarded_count, failed_count)
        """
        if now is None:
            now = self.clock()
        cutoff = now - timeout

        with self._lock:
            sessions = list(self._sessions.values())

        discarded = 0
        failed = 0
        for session in sessions:
            if session.last_activity() >= cutoff:
                continue
            try:
                if self.discard(session.id):
                    discarded += 1
                    logger.info(f"Expired stale upload {session.id}")
            except StorageIOError as e:
                logger.warning(f"Failed to discard stale upload {session.id}: {e}")
                failed += 1

        _, orphan_failures = self.purge_orphans()
        return discarded, failed + orphan_failures
