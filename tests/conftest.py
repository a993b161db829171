"""Shared pytest fixtures for all tests."""

from datetime import datetime, timedelta, timezone

import pytest

from dropcli.config import Config
from dropserver.auth import Authenticator
from dropserver.share_store import ShareStore
from dropserver.upload_manager import UploadManager


class FakeClock:
    """Manually advanced UTC clock for session activity tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_dir(tmp_path):
    """
    Create temporary server data directory.

    Returns:
        Path to the data directory
    """
    path = tmp_path / 'data'
    path.mkdir()
    return path


@pytest.fixture
def share_store(data_dir):
    return ShareStore(data_dir)


@pytest.fixture
def upload_manager(data_dir, clock):
    """Upload manager with a small chunk size so tests stay fast."""
    return UploadManager(data_dir, chunk_size=4, max_upload_size=1024, clock=clock)


@pytest.fixture
def authenticator():
    return Authenticator('test-secret')


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .kissdrop directory
    """
    config_dir = tmp_path / '.kissdrop'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path
