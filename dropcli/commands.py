"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from dropcli.client import DropClient
from dropcli.config import Config
from dropcli.models import (
    DownloadCommand,
    InfoCommand,
    ServerCommand,
    UnlockCommand,
    UploadCommand,
)

logger = get_logger(__name__)


_client: Optional[DropClient] = None


def get_client() -> DropClient:
    """
    Get or create global DropClient instance.

    Returns:
        DropClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new DropClient instance")
        config = Config(Path.home() / '.kissdrop' / 'config.json')
        _client = DropClient(config)
    return _client


def handle_upload(cmd: UploadCommand, client: Optional[DropClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with path and optional password and expiry
        client: Optional DropClient for dependency injection (testing)

    Returns:
        Share link or error message
    """
    logger.info(f"Executing upload command: path={cmd.path} expires={cmd.expires}")
    if client is None:
        client = get_client()
    return client.upload(cmd.path, password=cmd.password, expires=cmd.expires)


def handle_info(cmd: InfoCommand, client: Optional[DropClient] = None) -> str:
    """
    Handle 'info' command.

    Args:
        cmd: InfoCommand with share_id
        client: Optional DropClient for dependency injection (testing)

    Returns:
        Formatted share details
    """
    if client is None:
        client = get_client()
    return client.info(cmd.share_id)


def handle_unlock(cmd: UnlockCommand, client: Optional[DropClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.unlock(cmd.share_id, cmd.password)


def handle_download(cmd: DownloadCommand, client: Optional[DropClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with share_id and optional output_path
        client: Optional DropClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: share_id={cmd.share_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.download(cmd.share_id, cmd.output_path)
    logger.debug("Download command completed")
    return result


def handle_server(cmd: ServerCommand, client: Optional[DropClient] = None) -> str:
    if client is None:
        client = get_client()
    if cmd.url is None:
        return f"Server: {client.config.get_base_url()}"
    return client.set_base_url(cmd.url)
