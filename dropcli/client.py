"""HTTP client for communicating with a KISSDrop server."""

import os
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional

import httpx

from common.logging_config import get_logger
from dropcli.config import Config
from dropcli.constants import CHUNKED_UPLOAD_THRESHOLD
from dropcli.utils import (
    ChunkProgress,
    ProgressFileWrapper,
    finish_progress,
    format_expiry,
    format_file_size,
    print_progress,
)

logger = get_logger(__name__)


class DropClient:
    """HTTP client for the KISSDrop API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize drop client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        logger.info(f"Initialized DropClient [base_url={config.get_base_url()}]")

    def _calculate_upload_timeout(self, file_size: int) -> float:
        """
        Calculate timeout for upload based on file size.

        Args:
            file_size: File size in bytes

        Returns:
            Timeout in seconds (30s base + 0.1s per MB)
        """
        base_timeout = 30.0
        size_mb = file_size / (1024 * 1024)
        return base_timeout + size_mb * 0.1

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        request_id = str(uuid.uuid4())
        kwargs['headers'] = dict(kwargs.get('headers') or {})
        kwargs['headers']['X-Request-ID'] = request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={request_id}]"
                    )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Cannot connect to server. Is it running?")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'NOT_FOUND': 'Not found. The share may have expired or the upload was abandoned.',
            'PASSWORD_REQUIRED': 'This share is password protected. Run: unlock <share_id> <password>',
            'INVALID_PASSWORD': 'Wrong password.',
            'INCOMPLETE_UPLOAD': f'Upload is incomplete: {detail}',
            'STORAGE_FULL': 'Server storage is full. Please try again later.',
            'STORAGE_CORRUPTION': 'Server could not read the uploaded data. Please upload again.',
            'VALIDATION_ERROR': detail,
            'INVALID_CHUNK_INDEX': detail,
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            401: 'Not authorized',
            404: 'Not found',
            409: 'Conflict',
            413: 'File too large',
            500: 'Server error',
            503: 'Service unavailable',
            507: 'Insufficient storage',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def upload(self, file_path: str, password: Optional[str] = None, expires: Optional[str] = None) -> str:
        """
        Share a local file, in chunks when it is larger than the threshold.

        Args:
            file_path: Path of the file to share
            password: Optional share password
            expires: Number of days, "never" or "default"

        Returns:
            Result message with the share link
        """
        path = Path(file_path).expanduser()
        if not path.exists():
            return f"Error: File not found: {file_path}"
        if not path.is_file():
            return f"Error: Not a file: {file_path}"

        file_size = path.stat().st_size
        logger.info(f"Uploading {path} ({file_size} bytes)")

        try:
            if file_size > CHUNKED_UPLOAD_THRESHOLD:
                return self._upload_chunked(path, file_size, password, expires)
            return self._upload_single(path, file_size, password, expires)
        except ConnectionError as e:
            finish_progress()
            return f"Error: {e}"
        except OSError as e:
            finish_progress()
            return f"Error reading {file_path}: {e}"

    def _upload_single(self, path: Path, file_size: int, password: Optional[str], expires: Optional[str]) -> str:
        data = {}
        if password:
            data['password'] = password
        if expires:
            data['expires_in'] = expires

        upload_timeout = self._calculate_upload_timeout(file_size)
        try:
            with ProgressFileWrapper(str(path), file_size, path.name) as wrapper:
                response = self.session.post(
                    '/api/upload',
                    files={'file': (path.name, wrapper, 'application/octet-stream')},
                    data=data,
                    timeout=upload_timeout
                )
        except httpx.ConnectError:
            raise ConnectionError("Cannot connect to server. Is it running?")
        except httpx.TimeoutException:
            raise ConnectionError(
                f"Upload timed out (file size: {format_file_size(file_size)}, timeout: {upload_timeout:.1f}s)"
            )

        if response.status_code != 200:
            return f"Upload failed: {self._format_error(response)}"
        return self._format_share_created(response.json(), path.name, file_size)

    def _upload_chunked(self, path: Path, file_size: int, password: Optional[str], expires: Optional[str]) -> str:
        payload = {'fileName': path.name, 'fileSize': file_size}
        if password:
            payload['password'] = password
        if expires:
            payload['expiresIn'] = expires

        response = self._request_with_retry('POST', '/api/upload/init', json=payload)
        if response.status_code != 200:
            return f"Upload failed: {self._format_error(response)}"

        session = response.json()
        upload_id = session['uploadId']
        chunk_size = session['chunkSize']
        total_chunks = session['totalChunks']
        logger.info(f"Started upload {upload_id}: {total_chunks} chunks of {chunk_size} bytes")

        progress = ChunkProgress(path.name, total_chunks)
        errors = self._send_chunks(upload_id, path, chunk_size, list(range(total_chunks)), progress)

        if errors:
            # Second pass over whatever the server still reports missing.
            missing = self._missing_chunks(upload_id)
            errors = self._send_chunks(upload_id, path, chunk_size, missing, progress) if missing else {}
        finish_progress()

        if errors:
            first_index = min(errors)
            logger.error(f"Upload {upload_id} failed: {len(errors)} chunk(s) not accepted")
            self._abort(upload_id)
            return f"Upload failed: chunk {first_index}: {errors[first_index]}"

        response = self._request_with_retry('POST', f'/api/upload/{upload_id}/complete')
        if response.status_code != 200:
            return f"Upload failed: {self._format_error(response)}"
        return self._format_share_created(response.json(), path.name, file_size)

    def _send_chunk(self, upload_id: str, path: Path, chunk_size: int, index: int) -> Optional[str]:
        with open(path, 'rb') as f:
            f.seek(index * chunk_size)
            data = f.read(chunk_size)

        response = self._request_with_retry(
            'POST',
            f'/api/upload/{upload_id}/chunk/{index}',
            content=data,
            headers={'Content-Type': 'application/octet-stream'}
        )
        if response.status_code != 200:
            return self._format_error(response)
        return None

    def _send_chunks(
        self,
        upload_id: str,
        path: Path,
        chunk_size: int,
        indices: List[int],
        progress: ChunkProgress
    ) -> Dict[int, str]:
        """
        Upload chunks concurrently, each retried on its own.

        Returns:
            Mapping of chunk index to error message for chunks that failed
        """
        errors: Dict[int, str] = {}
        with ThreadPoolExecutor(max_workers=self.config.get_parallel_chunks()) as pool:
            futures = {
                pool.submit(self._send_chunk, upload_id, path, chunk_size, index): index
                for index in indices
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    error = future.result()
                except OSError as e:
                    error = str(e)
                if error is None:
                    progress.advance()
                else:
                    logger.warning(f"Chunk {index} of upload {upload_id} failed: {error}")
                    errors[index] = error
        return errors

    def _missing_chunks(self, upload_id: str) -> List[int]:
        response = self._request_with_retry('GET', f'/api/upload/{upload_id}')
        if response.status_code != 200:
            return []
        return list(response.json().get('missing', []))

    def _abort(self, upload_id: str) -> None:
        try:
            self._request_with_retry('DELETE', f'/api/upload/{upload_id}', max_retries=0)
        except ConnectionError as e:
            logger.warning(f"Could not abort upload {upload_id}: {e}")

    def _format_share_created(self, data: dict, file_name: str, file_size: int) -> str:
        return (
            f"Shared: {file_name} ({format_file_size(file_size)})\n"
            f"ID: {data['id']}\n"
            f"Link: {data['url']}"
        )

    def info(self, share_id: str) -> str:
        """
        Show share metadata.

        Args:
            share_id: Share ID

        Returns:
            Formatted share details
        """
        try:
            response = self._request_with_retry('GET', f'/api/share/{share_id}')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        return (
            f"Share {data['id']}\n"
            f"  File: {data['fileName']}\n"
            f"  Size: {format_file_size(data['fileSize'])}\n"
            f"  Expires: {format_expiry(data.get('expiresAt'))}\n"
            f"  Password: {'required' if data['passwordRequired'] else 'none'}"
        )

    def unlock(self, share_id: str, password: str) -> str:
        """
        Unlock a password-protected share. The unlock cookie is kept in the
        session for later downloads.

        Args:
            share_id: Share ID
            password: Share password

        Returns:
            Success or error message
        """
        try:
            response = self._request_with_retry(
                'POST',
                f'/api/share/{share_id}/unlock',
                json={'password': password}
            )
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Unlock failed: {self._format_error(response)}"

        logger.info(f"Unlocked share {share_id}")
        return f"Share {share_id} unlocked. Run: download {share_id}"

    def _resolve_output_path(self, output_path: Optional[str], filename: str) -> Path:
        if not output_path:
            return Path.cwd() / filename
        target = Path(output_path).expanduser()
        if target.is_dir() or output_path.endswith(('/', os.sep)):
            target = target / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def download(self, share_id: str, output_path: Optional[str] = None) -> str:
        """
        Download a share with progress feedback.

        Args:
            share_id: Share ID
            output_path: Optional output file or directory (defaults to current directory)

        Returns:
            Success message with download details
        """
        try:
            response = self._request_with_retry('GET', f'/api/share/{share_id}')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        filename = response.json()['fileName']
        output_file = None
        try:
            output_file = self._resolve_output_path(output_path, filename)
            with self.session.stream('GET', f'/api/share/{share_id}/download') as response:
                if response.status_code != 200:
                    response.read()
                    return f"Error: {self._format_error(response)}"

                total_size = int(response.headers.get('Content-Length', 0))
                downloaded = 0
                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes(chunk_size=65536):
                        f.write(chunk)
                        downloaded += len(chunk)
                        print_progress("Downloading", filename, downloaded, total_size)
                finish_progress()

            return f"Downloaded: {filename} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to server. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Server may be overloaded."
        except OSError as e:
            if output_file is not None and output_file.exists():
                output_file.unlink()
            return f"Error writing file: {e}"

    def set_base_url(self, url: str) -> str:
        """Point the client at another server and persist the choice."""
        self.config.set_base_url(url)
        self.session.close()
        self.session = httpx.Client(
            base_url=self.config.get_base_url(),
            timeout=self.config.get_timeout()
        )
        return f"Server set to {self.config.get_base_url()}"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
