"""Tests for on-disk share storage."""

import json
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest

from common.types import UploadInfo
from dropserver.exceptions import StorageCorruptionError, StorageIOError


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestCreateShare:
    """Tests for share creation."""

    def test_writes_file_and_metadata(self, share_store):
        info = UploadInfo(uploader_ip='10.0.0.1', user_agent='curl/8', content_type='text/plain')
        meta = share_store.create_share(
            BytesIO(b'hello world'), 'notes.txt', 11,
            expires_at=NOW, password_hash='hash', info=info
        )

        directory = share_store.share_dir(meta.id)
        assert (directory / 'notes.txt').read_bytes() == b'hello world'
        stored = json.loads((directory / 'meta.json').read_text())
        assert stored['id'] == meta.id
        assert stored['file_name'] == 'notes.txt'
        assert stored['file_size'] == 11
        assert stored['password_hash'] == 'hash'
        assert stored['uploader_ip'] == '10.0.0.1'
        assert datetime.fromisoformat(stored['expires_at']) == NOW
        assert len(meta.id) == 8 and meta.id.isalnum()

    def test_actual_byte_count_wins_over_declared(self, share_store):
        meta = share_store.create_share(BytesIO(b'abc'), 'a.txt', 999)
        assert meta.file_size == 3

    def test_optional_fields_omitted(self, share_store):
        meta = share_store.create_share(BytesIO(b''), 'a.txt', 0)
        stored = json.loads(share_store.meta_path(meta.id).read_text())
        assert 'expires_at' not in stored
        assert 'password_hash' not in stored
        assert 'uploader_ip' not in stored

    def test_sanitizes_file_name(self, share_store):
        meta = share_store.create_share(BytesIO(b'x'), '../../etc/pass wd', 1)
        assert meta.file_name == 'pass_wd'
        assert share_store.get_file_path(meta).parent == share_store.share_dir(meta.id)

    def test_file_cannot_clobber_metadata(self, share_store):
        meta = share_store.create_share(BytesIO(b'{}'), 'meta.json', 2)
        assert meta.file_name == '_meta.json'
        assert share_store.get_share(meta.id).file_name == '_meta.json'

    def test_stream_failure_removes_partial_share(self, share_store):
        class BrokenStream:
            def __init__(self):
                self.calls = 0

            def read(self, n):
                self.calls += 1
                if self.calls == 1:
                    return b'partial'
                raise OSError(5, 'Input/output error')

        with pytest.raises(StorageIOError):
            share_store.create_share(BrokenStream(), 'a.txt', 100)

        assert share_store.list_share_ids() == []

    def test_non_io_failure_also_removes_partial_share(self, share_store):
        class CorruptStream:
            def read(self, n):
                raise StorageCorruptionError('chunk missing')

        with pytest.raises(StorageCorruptionError):
            share_store.create_share(CorruptStream(), 'a.txt', 100)

        assert share_store.list_share_ids() == []


class TestLookup:
    """Tests for reading and deleting shares."""

    def test_round_trip(self, share_store):
        created = share_store.create_share(BytesIO(b'abc'), 'a.txt', 3, expires_at=NOW)
        loaded = share_store.get_share(created.id)

        assert loaded == created

    @pytest.mark.parametrize("share_id", ['Missing1', '', '../shares', 'a/b'])
    def test_unknown_or_unsafe_ids_are_not_found(self, share_store, share_id):
        assert share_store.get_share(share_id) is None

    def test_malformed_metadata_is_corruption(self, share_store):
        meta = share_store.create_share(BytesIO(b'abc'), 'a.txt', 3)
        share_store.meta_path(meta.id).write_text('{not json')

        with pytest.raises(StorageCorruptionError):
            share_store.get_share(meta.id)

    def test_metadata_missing_keys_is_corruption(self, share_store):
        meta = share_store.create_share(BytesIO(b'abc'), 'a.txt', 3)
        share_store.meta_path(meta.id).write_text('{"id": "x"}')

        with pytest.raises(StorageCorruptionError):
            share_store.get_share(meta.id)

    def test_delete(self, share_store):
        meta = share_store.create_share(BytesIO(b'abc'), 'a.txt', 3)

        assert share_store.delete_share(meta.id) is True
        assert share_store.get_share(meta.id) is None
        assert share_store.delete_share(meta.id) is False

    def test_list_shares_skips_corrupt_entries(self, share_store):
        good = share_store.create_share(BytesIO(b'abc'), 'a.txt', 3)
        bad = share_store.create_share(BytesIO(b'abc'), 'b.txt', 3)
        share_store.meta_path(bad.id).write_text('garbage')

        assert [m.id for m in share_store.list_shares()] == [good.id]


class TestExpiry:
    """Tests for expired share cleanup."""

    def test_list_and_cleanup_expired(self, share_store):
        expired = share_store.create_share(BytesIO(b'1'), 'a.txt', 1, expires_at=NOW - timedelta(seconds=1))
        live = share_store.create_share(BytesIO(b'2'), 'b.txt', 1, expires_at=NOW + timedelta(seconds=1))
        permanent = share_store.create_share(BytesIO(b'3'), 'c.txt', 1)

        assert [m.id for m in share_store.list_expired(NOW)] == [expired.id]

        assert share_store.cleanup_expired(NOW) == (1, 0)
        remaining = set(share_store.list_share_ids())
        assert remaining == {live.id, permanent.id}

    def test_expiry_is_strictly_after(self, share_store):
        share_store.create_share(BytesIO(b'1'), 'a.txt', 1, expires_at=NOW)
        assert share_store.list_expired(NOW) == []

    def test_cleanup_continues_past_failures(self, share_store, monkeypatch):
        first = share_store.create_share(BytesIO(b'1'), 'a.txt', 1, expires_at=NOW - timedelta(days=1))
        second = share_store.create_share(BytesIO(b'2'), 'b.txt', 1, expires_at=NOW - timedelta(days=1))
        original_delete = share_store.delete_share

        def flaky_delete(share_id):
            if share_id == first.id:
                raise StorageIOError('permission denied')
            return original_delete(share_id)

        monkeypatch.setattr(share_store, 'delete_share', flaky_delete)

        assert share_store.cleanup_expired(NOW) == (1, 1)
        assert share_store.list_share_ids() == [first.id]
        assert share_store.get_share(second.id) is None
