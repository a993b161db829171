"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class UploadCommand:
    """Share a local file."""

    path: str
    password: Optional[str] = None
    expires: Optional[str] = None
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class InfoCommand:
    """Show share metadata."""

    share_id: str
    command: Literal["info"] = "info"


@dataclass(frozen=True)
class UnlockCommand:
    """Unlock a password-protected share."""

    share_id: str
    password: str
    command: Literal["unlock"] = "unlock"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a share's file."""

    share_id: str
    output_path: Optional[str] = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class ServerCommand:
    """Show or change the server URL."""

    url: Optional[str] = None
    command: Literal["server"] = "server"


CommandRequest = Union[
    UploadCommand,
    InfoCommand,
    UnlockCommand,
    DownloadCommand,
    ServerCommand,
]
