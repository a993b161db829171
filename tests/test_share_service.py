"""Tests for share lookup, unlock and download access."""

from datetime import timedelta
from io import BytesIO

import pytest

from dropserver.exceptions import InvalidPasswordError, PasswordRequiredError, ShareNotFoundError
from dropserver.services.share_service import ShareService
from dropserver.utils import utcnow


@pytest.fixture
def service(share_store, authenticator):
    return ShareService(share_store, authenticator)


@pytest.fixture
def locked_share(share_store, authenticator):
    return share_store.create_share(
        BytesIO(b'secret bytes'), 'locked.txt', 12, password_hash=authenticator.hash('pw')
    )


@pytest.fixture
def open_share(share_store):
    return share_store.create_share(BytesIO(b'public'), 'open.txt', 6)


def test_info(service, open_share):
    assert service.get_share_info(open_share.id) == open_share


def test_expired_share_is_not_found_before_sweep(service, share_store):
    meta = share_store.create_share(BytesIO(b'x'), 'a.txt', 1, expires_at=utcnow() - timedelta(seconds=1))

    with pytest.raises(ShareNotFoundError):
        service.get_share_info(meta.id)


def test_unknown_share(service):
    with pytest.raises(ShareNotFoundError):
        service.get_share_info('Nope1234')


def test_open_download_without_password(service, open_share):
    meta, path = service.open_download(open_share.id)
    assert path.read_bytes() == b'public'


def test_locked_share_requires_token(service, locked_share):
    with pytest.raises(PasswordRequiredError):
        service.open_download(locked_share.id)
    with pytest.raises(PasswordRequiredError):
        service.open_download(locked_share.id, token='forged.token')


def test_unlock_then_download(service, locked_share):
    token = service.unlock(locked_share.id, 'pw')

    meta, path = service.open_download(locked_share.id, token=token)
    assert path.read_bytes() == b'secret bytes'


def test_token_for_other_share_rejected(service, share_store, authenticator, locked_share):
    other = share_store.create_share(BytesIO(b'x'), 'x.txt', 1, password_hash=authenticator.hash('pw'))
    token = service.unlock(other.id, 'pw')

    with pytest.raises(PasswordRequiredError):
        service.open_download(locked_share.id, token=token)


def test_wrong_password(service, locked_share):
    with pytest.raises(InvalidPasswordError):
        service.unlock(locked_share.id, 'nope')


def test_unlock_unprotected_share_fails(service, open_share):
    with pytest.raises(InvalidPasswordError):
        service.unlock(open_share.id, 'anything')


def test_missing_file_is_not_found(service, share_store, open_share):
    share_store.get_file_path(open_share).unlink()

    with pytest.raises(ShareNotFoundError):
        service.open_download(open_share.id)
