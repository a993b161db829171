"""Command parser for CLI input."""

import shlex

from dropcli.constants import EXPIRY_CHOICES
from dropcli.models import (
    CommandRequest,
    DownloadCommand,
    InfoCommand,
    ServerCommand,
    UnlockCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Upload/Info/Unlock/Download/Server)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "info":
        return _parse_info(tokens[1:])
    elif command_name == "unlock":
        return _parse_unlock(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    elif command_name == "server":
        return _parse_server(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_upload(args: list) -> UploadCommand:
    """Parse 'upload <path> [--password P] [--expires E]' command."""
    path = None
    password = None
    expires = None

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--password", "-p", "--expires", "-e"):
            if i + 1 >= len(args):
                raise ParseError(f"{arg} requires a value")
            value = args[i + 1]
            if arg in ("--password", "-p"):
                password = value
            else:
                expires = _validate_expires(value)
            i += 2
            continue
        if arg.startswith("-"):
            raise ParseError(f"Unknown option: {arg}")
        if path is not None:
            raise ParseError("upload takes exactly one file")
        path = arg
        i += 1

    if path is None:
        raise ParseError("upload requires a file path")

    return UploadCommand(path=path, password=password, expires=expires)


def _validate_expires(value: str) -> str:
    if value in EXPIRY_CHOICES:
        return value
    if not value.isdigit() or int(value) <= 0:
        raise ParseError("--expires must be a positive number of days, 'never' or 'default'")
    return value


def _parse_info(args: list) -> InfoCommand:
    """Parse 'info <share_id>' command."""
    if len(args) != 1:
        raise ParseError("info requires exactly 1 argument: <share_id>")
    return InfoCommand(share_id=args[0])


def _parse_unlock(args: list) -> UnlockCommand:
    """Parse 'unlock <share_id> <password>' command."""
    if len(args) != 2:
        raise ParseError("unlock requires exactly 2 arguments: <share_id> <password>")

    share_id, password = args
    return UnlockCommand(share_id=share_id, password=password)


def _parse_download(args: list) -> DownloadCommand:
    """Parse 'download <share_id> [output_path]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("download requires 1 or 2 arguments: <share_id> [output_path]")

    share_id = args[0]
    output_path = args[1] if len(args) > 1 else None

    return DownloadCommand(share_id=share_id, output_path=output_path)


def _parse_server(args: list) -> ServerCommand:
    """Parse 'server [url]' command."""
    if len(args) > 1:
        raise ParseError("server takes at most 1 argument: [url]")
    if args and not args[0].startswith(("http://", "https://")):
        raise ParseError("server URL must start with http:// or https://")
    return ServerCommand(url=args[0] if args else None)
