"""Unit tests for DropClient."""

import json
import threading

import httpx
import pytest

from dropcli import client as client_module
from dropcli.client import DropClient


BASE_URL = 'http://drop.test'


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Retry backoff must not slow the tests down."""
    monkeypatch.setattr(client_module.time, 'sleep', lambda seconds: None)


def make_client(config, handler) -> DropClient:
    client = DropClient(config)
    client.session = httpx.Client(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return client


class FakeChunkServer:
    """In-memory stand-in for the chunked upload endpoints."""

    def __init__(self, chunk_size=4, fail=None):
        self.chunk_size = chunk_size
        self.total_chunks = 0
        self.chunks = {}
        self.fail = fail or (lambda index, attempt: None)
        self.attempts = {}
        self.aborted = False
        self.init_payload = None
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == '/api/upload/init':
            self.init_payload = json.loads(request.content)
            size = self.init_payload['fileSize']
            self.total_chunks = max(1, -(-size // self.chunk_size))
            return httpx.Response(200, json={
                'uploadId': 'Up1oad00',
                'chunkSize': self.chunk_size,
                'totalChunks': self.total_chunks,
            })
        if '/chunk/' in path:
            index = int(path.rsplit('/', 1)[1])
            with self._lock:
                attempt = self.attempts.get(index, 0)
                self.attempts[index] = attempt + 1
            failure = self.fail(index, attempt)
            if failure is not None:
                return failure
            with self._lock:
                self.chunks[index] = request.content
                return httpx.Response(200, json={'received': len(self.chunks)})
        if path == '/api/upload/Up1oad00' and request.method == 'GET':
            missing = [i for i in range(self.total_chunks) if i not in self.chunks]
            return httpx.Response(200, json={'missing': missing})
        if path == '/api/upload/Up1oad00' and request.method == 'DELETE':
            self.aborted = True
            return httpx.Response(204)
        if path == '/api/upload/Up1oad00/complete':
            return httpx.Response(200, json={'id': 'aB3dE5fG', 'url': f'{BASE_URL}/s/aB3dE5fG'})
        return httpx.Response(404, json={'detail': 'nope', 'code': 'NOT_FOUND'})

    def assembled(self) -> bytes:
        return b''.join(self.chunks[i] for i in range(self.total_chunks))


class TestUpload:
    """Tests for single-shot and chunked uploads."""

    def test_single_shot(self, temp_config, sample_file):
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['body'] = request.content
            return httpx.Response(200, json={'id': 'aB3dE5fG', 'url': f'{BASE_URL}/s/aB3dE5fG'})

        result = make_client(temp_config, handler).upload(str(sample_file), password='pw', expires='never')

        assert seen['path'] == '/api/upload'
        assert b'Sample content for testing' in seen['body']
        assert b'name="password"' in seen['body']
        assert b'never' in seen['body']
        assert 'Link: http://drop.test/s/aB3dE5fG' in result

    def test_missing_file(self, temp_config, tmp_path):
        client = make_client(temp_config, lambda request: httpx.Response(500))
        assert 'File not found' in client.upload(str(tmp_path / 'nope.bin'))

    def test_chunked_upload_reassembles(self, temp_config, tmp_path, monkeypatch):
        monkeypatch.setattr(client_module, 'CHUNKED_UPLOAD_THRESHOLD', 8)
        data = bytes(range(23))
        path = tmp_path / 'big.bin'
        path.write_bytes(data)
        server = FakeChunkServer(chunk_size=4)

        result = make_client(temp_config, server).upload(str(path), expires='3')

        assert server.init_payload == {'fileName': 'big.bin', 'fileSize': 23, 'expiresIn': '3'}
        assert server.assembled() == data
        assert 'ID: aB3dE5fG' in result

    def test_chunk_retried_after_server_error(self, temp_config, tmp_path, monkeypatch):
        monkeypatch.setattr(client_module, 'CHUNKED_UPLOAD_THRESHOLD', 8)
        data = b'0123456789'
        path = tmp_path / 'big.bin'
        path.write_bytes(data)

        def fail(index, attempt):
            if index == 1 and attempt == 0:
                return httpx.Response(500, json={'detail': 'disk', 'code': 'STORAGE_ERROR'})
            return None

        server = FakeChunkServer(chunk_size=4, fail=fail)

        result = make_client(temp_config, server).upload(str(path))

        assert server.attempts[1] == 2
        assert server.assembled() == data
        assert 'Shared' in result

    def test_rejected_chunk_aborts_upload(self, temp_config, tmp_path, monkeypatch):
        monkeypatch.setattr(client_module, 'CHUNKED_UPLOAD_THRESHOLD', 8)
        path = tmp_path / 'big.bin'
        path.write_bytes(b'0123456789')

        def fail(index, attempt):
            if index == 2:
                return httpx.Response(400, json={'detail': 'Chunk 2 too large', 'code': 'VALIDATION_ERROR'})
            return None

        server = FakeChunkServer(chunk_size=4, fail=fail)

        result = make_client(temp_config, server).upload(str(path))

        assert server.attempts[2] == 2
        assert server.aborted
        assert result == 'Upload failed: chunk 2: Chunk 2 too large'


class TestShares:
    """Tests for info, unlock and download."""

    def test_info(self, temp_config):
        def handler(request):
            return httpx.Response(200, json={
                'id': 'aB3dE5fG',
                'fileName': 'report.pdf',
                'fileSize': 2048,
                'expiresAt': '2024-07-01T12:00:00Z',
                'passwordRequired': True,
            })

        result = make_client(temp_config, handler).info('aB3dE5fG')

        assert 'report.pdf' in result
        assert '2.00 KiB' in result
        assert '2024-07-01 12:00:00 UTC' in result
        assert 'required' in result

    def test_info_not_found(self, temp_config):
        def handler(request):
            return httpx.Response(404, json={'detail': 'Share x not found', 'code': 'NOT_FOUND'})

        assert 'may have expired' in make_client(temp_config, handler).info('x')

    def test_unlock_cookie_is_sent_on_download(self, temp_config, tmp_path):
        def handler(request):
            if request.url.path.endswith('/unlock'):
                if json.loads(request.content) != {'password': 'pw'}:
                    return httpx.Response(401, json={'detail': 'Invalid password', 'code': 'INVALID_PASSWORD'})
                return httpx.Response(
                    200,
                    json={'success': True},
                    headers={'set-cookie': 'unlock_aB3dE5fG=signed-token; Path=/; HttpOnly; SameSite=lax'}
                )
            if request.url.path.endswith('/download'):
                if 'unlock_aB3dE5fG=signed-token' not in request.headers.get('cookie', ''):
                    return httpx.Response(401, json={'detail': 'Password required', 'code': 'PASSWORD_REQUIRED'})
                return httpx.Response(200, content=b'secret')
            return httpx.Response(200, json={
                'id': 'aB3dE5fG', 'fileName': 's.txt', 'fileSize': 6,
                'expiresAt': None, 'passwordRequired': True,
            })

        client = make_client(temp_config, handler)
        out_dir = tmp_path / 'downloads'
        out_dir.mkdir()

        assert 'password protected' in client.download('aB3dE5fG', str(out_dir))
        assert 'Wrong password' in client.unlock('aB3dE5fG', 'bad')
        assert 'unlocked' in client.unlock('aB3dE5fG', 'pw')

        result = client.download('aB3dE5fG', str(out_dir))

        assert 'Downloaded: s.txt' in result
        assert (out_dir / 's.txt').read_bytes() == b'secret'

    def test_download_to_explicit_file(self, temp_config, tmp_path):
        def handler(request):
            if request.url.path.endswith('/download'):
                return httpx.Response(200, content=b'abc')
            return httpx.Response(200, json={
                'id': 'aB3dE5fG', 'fileName': 'a.txt', 'fileSize': 3,
                'expiresAt': None, 'passwordRequired': False,
            })

        target = tmp_path / 'nested' / 'renamed.txt'
        make_client(temp_config, handler).download('aB3dE5fG', str(target))

        assert target.read_bytes() == b'abc'


class TestRetry:
    """Tests for retry and error mapping."""

    def test_connection_error_after_retries(self, temp_config):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError('refused', request=request)

        result = make_client(temp_config, handler).info('aB3dE5fG')

        assert 'Cannot connect' in result
        assert len(calls) == 4

    def test_server_error_retried_then_returned(self, temp_config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text='busy')

        result = make_client(temp_config, handler).info('aB3dE5fG')

        assert len(calls) == 4
        assert 'Service unavailable' in result

    def test_request_id_header(self, temp_config):
        seen = []

        def handler(request):
            seen.append(request.headers.get('X-Request-ID'))
            return httpx.Response(404, json={'detail': 'x', 'code': 'NOT_FOUND'})

        make_client(temp_config, handler).info('aB3dE5fG')

        assert seen and seen[0]
