"""Custom exception classes for the drop server."""

from typing import Optional


class DropException(Exception):
    """
    Base exception class for all drop-server errors.
    """
    pass


class ValidationError(DropException):
    """
    Raised on bad input: negative or oversized declared size, empty file name.
    """
    pass


class NotFoundError(DropException):
    """
    Raised when a session or share ID is unknown.
    """
    pass


class UploadNotFoundError(NotFoundError):
    """
    Raised when an upload session does not exist (never created, completed or discarded).
    """
    pass


class ShareNotFoundError(NotFoundError):
    """
    Raised when a share does not exist or has expired.
    """
    pass


class InvalidChunkIndexError(ValidationError):
    """
    Raised when a chunk index is outside [0, total_chunks).
    """

    def __init__(self, index: int, total_chunks: int):
        super().__init__(f"Chunk index {index} out of range [0, {total_chunks})")
        self.index = index
        self.total_chunks = total_chunks


class IncompleteUploadError(DropException):
    """
    Raised when assembly is attempted before every chunk has been received.
    The session stays alive so the client can finish uploading.
    """

    def __init__(self, upload_id: str, received: int, total: int):
        super().__init__(f"Upload {upload_id} incomplete: {received}/{total} chunks received")
        self.upload_id = upload_id
        self.received = received
        self.total = total


class StorageCorruptionError(DropException):
    """
    Raised when a chunk the session claims to have cannot be read during assembly.
    """
    pass


class StorageIOError(DropException):
    """
    Raised when a disk read or write fails.
    """

    def __init__(self, message: str, cause: Optional[OSError] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def errno(self) -> Optional[int]:
        return self.cause.errno if self.cause is not None else None


class PasswordRequiredError(DropException):
    """
    Raised when a protected share is accessed without a valid unlock token.
    """
    pass


class InvalidPasswordError(DropException):
    """
    Raised when an unlock attempt supplies the wrong password.
    """
    pass
