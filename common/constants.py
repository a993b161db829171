"""Project-wide constants (chunk size, timeouts, ID alphabet)."""

CHUNK_SIZE_BYTES: int = 5 * 1024 * 1024  # 5 MiB default chunk size
CHUNK_FILE_PREFIX: str = "chunk_"
CHUNK_INDEX_WIDTH: int = 5

UPLOAD_TIMEOUT_SECONDS: int = 24 * 3600
SWEEP_INTERVAL_SECONDS: int = 3600
DEFAULT_EXPIRY_DAYS: int = 30
MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024 * 1024  # 10 GiB

ID_ALPHABET: str = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH: int = 8

SHARES_DIR_NAME: str = "shares"
UPLOADS_DIR_NAME: str = "uploads"
META_FILE_NAME: str = "meta.json"

MAX_FILE_NAME_LENGTH: int = 200
UNLOCK_TOKEN_MAX_AGE_SECONDS: int = 24 * 3600
STREAM_PIECE_SIZE_BYTES: int = 64 * 1024
CHUNK_SPOOL_MEMORY_BYTES: int = 1024 * 1024

DEFAULT_SERVER_PORT: int = 8080
