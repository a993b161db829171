"""Tests for camelCase request and response schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from dropserver.schemas import UploadInitRequest, UploadInitResponse, UploadStatusResponse


def test_init_request_accepts_camel_case():
    body = UploadInitRequest.model_validate({'fileName': 'a.bin', 'fileSize': 10, 'expiresIn': 'never'})

    assert body.file_name == 'a.bin'
    assert body.file_size == 10
    assert body.expires_in == 'never'
    assert body.password is None


def test_init_request_requires_size():
    with pytest.raises(ValidationError):
        UploadInitRequest.model_validate({'fileName': 'a.bin'})


def test_init_response_serializes_camel_case():
    response = UploadInitResponse(upload_id='Up1oad00', chunk_size=4, total_chunks=3)

    assert response.model_dump(by_alias=True) == {'uploadId': 'Up1oad00', 'chunkSize': 4, 'totalChunks': 3}


def test_status_response_from_session_snapshot(upload_manager):
    session = upload_manager.init_session('a.bin', 10)

    status = UploadStatusResponse(**session.snapshot())

    assert status.missing == [0, 1, 2]
    assert status.last_activity == session.last_activity()
    assert status.model_dump(by_alias=True)['totalChunks'] == 3
