"""Utility functions for CLI operations."""

import sys
import threading

from dropcli.constants import GREEN, RESET


class ProgressFileWrapper:
    """File-like wrapper that displays upload progress to stdout."""

    def __init__(self, file_path: str, file_size: int, filename: str):
        """
        Initialize the progress file wrapper.

        Args:
            file_path: Path to the file to read
            file_size: Total size of the file in bytes
            filename: Display name for the file
        """
        self.file_path = file_path
        self.file_size = file_size
        self.filename = filename
        self._file = open(file_path, 'rb')
        self._uploaded = 0
        self._finished = False

    def read(self, size: int = -1) -> bytes:
        """
        Read bytes from the file and update progress display.

        Args:
            size: Number of bytes to read (-1 or 0 for default chunk size)

        Returns:
            Bytes read from the file
        """
        chunk = self._file.read(size if size > 0 else 65536)
        if chunk:
            self._uploaded += len(chunk)
            print_progress("Uploading", self.filename, self._uploaded, self.file_size)
        elif not self._finished:
            self._finished = True
            finish_progress()
        return chunk

    def close(self) -> None:
        """Close the underlying file."""
        if self._file:
            self._file.close()

    def __enter__(self) -> 'ProgressFileWrapper':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ChunkProgress:
    """Thread-safe progress line for chunks uploaded by a worker pool."""

    def __init__(self, filename: str, total_chunks: int, already_received: int = 0):
        self.filename = filename
        self.total_chunks = total_chunks
        self.done = already_received
        self._lock = threading.Lock()

    def advance(self) -> None:
        with self._lock:
            self.done += 1
            sys.stdout.write(
                f"\rUploading {self.filename}: chunk {self.done}/{self.total_chunks} "
                f"({GREEN}{self.done / self.total_chunks * 100:.1f}%{RESET})"
            )
            sys.stdout.flush()


def print_progress(verb: str, filename: str, done: int, total: int) -> None:
    """Rewrite the current terminal line with a byte-count progress report."""
    if total > 0:
        sys.stdout.write(
            f"\r{verb} {filename}: {format_file_size(done)} / {format_file_size(total)} "
            f"({GREEN}{done / total * 100:.1f}%{RESET})"
        )
    else:
        sys.stdout.write(f"\r{verb} {filename}: {format_file_size(done)}")
    sys.stdout.flush()


def finish_progress() -> None:
    sys.stdout.write('\n')
    sys.stdout.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_expiry(expires_at) -> str:
    """Render an expiresAt value from the API; None means the share never expires."""
    if not expires_at:
        return "never"
    return str(expires_at).replace("T", " ").replace("Z", " UTC")
