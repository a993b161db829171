"""Tests for ID generation, filename sanitizing, expiry rules and metadata types."""

from datetime import datetime, timedelta, timezone

import pytest

from common.constants import ID_ALPHABET
from common.types import ShareMeta, UploadInfo
from dropserver.config import parse_expiry_days
from dropserver.utils import generate_id, is_valid_id, resolve_expiry, sanitize_file_name


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestIds:
    def test_generate_id_shape(self):
        for _ in range(100):
            value = generate_id()
            assert len(value) == 8
            assert all(c in ID_ALPHABET for c in value)

    def test_alphabet_is_base62(self):
        assert len(set(ID_ALPHABET)) == 62

    @pytest.mark.parametrize("value,expected", [
        ('aB3dE5fG', True),
        ('', False),
        ('..', False),
        ('ab/cd', False),
        ('ab cd', False),
    ])
    def test_is_valid_id(self, value, expected):
        assert is_valid_id(value) is expected


class TestSanitizeFileName:
    @pytest.mark.parametrize("raw,expected", [
        ('report.pdf', 'report.pdf'),
        ('my report (1).pdf', 'my_report__1_.pdf'),
        ('../../etc/passwd', 'passwd'),
        ('C:\\Users\\me\\file.txt', 'file.txt'),
        ('', 'file'),
        ('..', 'file'),
        ('dir/', 'file'),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_file_name(raw) == expected

    def test_long_names_keep_extension(self):
        name = sanitize_file_name('a' * 300 + '.tar')
        assert len(name) == 200
        assert name.endswith('.tar')


class TestResolveExpiry:
    def test_default_policy(self):
        assert resolve_expiry('default', timedelta(days=30), NOW) == NOW + timedelta(days=30)
        assert resolve_expiry(None, timedelta(days=30), NOW) == NOW + timedelta(days=30)

    def test_never(self):
        assert resolve_expiry('never', timedelta(days=30), NOW) is None

    def test_days(self):
        assert resolve_expiry('7', timedelta(days=30), NOW) == NOW + timedelta(days=7)

    @pytest.mark.parametrize("policy", ['soon', '0', '-3', '1.5'])
    def test_unusable_policy_is_permanent(self, policy):
        assert resolve_expiry(policy, timedelta(days=30), NOW) is None

    def test_zero_default_means_permanent(self):
        assert resolve_expiry('default', timedelta(0), NOW) is None
        assert resolve_expiry('2', timedelta(0), NOW) == NOW + timedelta(days=2)


class TestParseExpiryDays:
    @pytest.mark.parametrize("value,expected", [
        ('30d', timedelta(days=30)),
        ('7', timedelta(days=7)),
        (' 14D ', timedelta(days=14)),
        ('0', timedelta(days=30)),
        ('0d', timedelta(days=30)),
        ('never', timedelta(days=30)),
        ('junk', timedelta(days=30)),
        ('-5', timedelta(days=30)),
    ])
    def test_parse(self, value, expected):
        assert parse_expiry_days(value, 30) == expected


class TestShareMeta:
    def test_expiry_check_is_strict(self):
        meta = ShareMeta(id='aB3dE5fG', created_at=NOW, file_name='a', file_size=1, expires_at=NOW)

        assert not meta.is_expired(NOW)
        assert meta.is_expired(NOW + timedelta(microseconds=1))

    def test_permanent_share_never_expires(self):
        meta = ShareMeta(id='aB3dE5fG', created_at=NOW, file_name='a', file_size=1)
        assert not meta.is_expired(NOW + timedelta(days=10000))

    def test_dict_round_trip_keeps_attribution(self):
        meta = ShareMeta(
            id='aB3dE5fG', created_at=NOW, file_name='a.txt', file_size=3,
            expires_at=NOW + timedelta(days=1), password_hash='h',
            info=UploadInfo(uploader_ip='1.2.3.4', user_agent='ua', content_type='text/plain'),
        )

        assert ShareMeta.from_dict(meta.to_dict()) == meta
        assert meta.password_required
