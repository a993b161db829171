"""Configuration management for the KISSDrop CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_url": os.environ.get("KISSDROP_SERVER_URL", "http://localhost:8080"),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "parallel_chunks": 3,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.kissdrop/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.kissdrop' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Unreadable config {self.config_path}: {e}; using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write default config: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save config: {e}")

    def get_base_url(self) -> str:
        """
        Get server base URL.

        Returns:
            Base URL string without trailing slash (e.g., "http://localhost:8080")
        """
        return str(self.data.get('server_url', 'http://localhost:8080')).rstrip('/')

    def set_base_url(self, url: str) -> None:
        self.data['server_url'] = url.rstrip('/')
        self.save()

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_parallel_chunks(self) -> int:
        """Number of chunks uploaded concurrently, at least 1."""
        return max(1, int(self.data.get('parallel_chunks', 3)))
