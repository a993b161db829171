"""Service locator for the process-wide store, manager and services."""

from typing import Optional

from dropserver import config
from dropserver.auth import Authenticator
from dropserver.services.share_service import ShareService
from dropserver.services.upload_service import UploadService
from dropserver.share_store import ShareStore
from dropserver.sweeper import ExpirySweeper
from dropserver.upload_manager import UploadManager

_share_store: Optional[ShareStore] = None
_upload_manager: Optional[UploadManager] = None
_authenticator: Optional[Authenticator] = None
_upload_service: Optional[UploadService] = None
_share_service: Optional[ShareService] = None
_sweeper: Optional[ExpirySweeper] = None


def set_share_store(store: ShareStore):
    """Set global share store instance"""
    global _share_store
    _share_store = store


def get_share_store() -> ShareStore:
    """Get global share store instance, creating it from config on first use"""
    global _share_store
    if _share_store is None:
        _share_store = ShareStore(config.DATA_DIR)
    return _share_store


def set_upload_manager(manager: UploadManager):
    """Set global upload manager instance"""
    global _upload_manager
    _upload_manager = manager


def get_upload_manager() -> UploadManager:
    """Get global upload manager instance, creating it from config on first use"""
    global _upload_manager
    if _upload_manager is None:
        _upload_manager = UploadManager(
            config.DATA_DIR,
            chunk_size=config.UPLOAD_CHUNK_SIZE,
            max_upload_size=config.MAX_UPLOAD_SIZE
        )
    return _upload_manager


def set_authenticator(authenticator: Authenticator):
    """Set global authenticator instance"""
    global _authenticator
    _authenticator = authenticator


def get_authenticator() -> Authenticator:
    """Get global authenticator instance"""
    global _authenticator
    if _authenticator is None:
        _authenticator = Authenticator(config.SECRET)
    return _authenticator


def set_upload_service(service: UploadService):
    """Set global upload service instance"""
    global _upload_service
    _upload_service = service


def get_upload_service() -> UploadService:
    """Get global upload service instance"""
    global _upload_service
    if _upload_service is None:
        _upload_service = UploadService(
            get_share_store(),
            get_upload_manager(),
            get_authenticator(),
            default_expiry=config.DEFAULT_EXPIRY,
            base_url=config.BASE_URL
        )
    return _upload_service


def set_share_service(service: ShareService):
    """Set global share service instance"""
    global _share_service
    _share_service = service


def get_share_service() -> ShareService:
    """Get global share service instance"""
    global _share_service
    if _share_service is None:
        _share_service = ShareService(get_share_store(), get_authenticator())
    return _share_service


def get_sweeper() -> ExpirySweeper:
    """Get global expiry sweeper instance"""
    global _sweeper
    if _sweeper is None:
        _sweeper = ExpirySweeper(
            get_share_store(),
            get_upload_manager(),
            interval_seconds=config.SWEEP_INTERVAL,
            session_timeout_seconds=config.UPLOAD_TIMEOUT
        )
    return _sweeper


def reset():
    """Drop all instances so the next access rebuilds them from config"""
    global _share_store, _upload_manager, _authenticator, _upload_service, _share_service, _sweeper
    _share_store = None
    _upload_manager = None
    _authenticator = None
    _upload_service = None
    _share_service = None
    _sweeper = None
