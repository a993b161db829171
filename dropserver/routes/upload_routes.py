"""Upload API routes: single-shot and resumable chunked uploads."""

import tempfile
from typing import BinaryIO, Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from common.constants import CHUNK_SPOOL_MEMORY_BYTES
from common.types import UploadInfo
from dropserver.exceptions import ValidationError
from dropserver.schemas.uploads import (
    ChunkResponse,
    ShareCreatedResponse,
    UploadInitRequest,
    UploadInitResponse,
    UploadStatusResponse
)
from dropserver.service_locator import get_upload_service
from dropserver.services.upload_service import UploadService

router = APIRouter(prefix="/api/upload", tags=["Uploads"])


def _upload_info(request: Request, content_type: Optional[str] = None) -> UploadInfo:
    return UploadInfo(
        uploader_ip=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
        content_type=content_type or "",
    )


@router.post("", response_model=ShareCreatedResponse)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    password: Optional[str] = Form(None),
    expires_in: Optional[str] = Form(None),
    service: UploadService = Depends(get_upload_service)
):
    """
    Upload a whole file in one request.

    Parameters:
        - file: File to upload (multipart/form-data)
        - password: Optional password protecting the share
        - expires_in: "default", "never" or a number of days

    Returns:
        - id: Share ID
        - url: Share link

    Raises:
        - 400: No file provided or file too large
        - 500: Storage failure
    """
    if not file.filename:
        raise ValidationError("No file provided")

    max_size = service.upload_manager.max_upload_size
    if file.size is not None and file.size > max_size:
        raise ValidationError(f"File exceeds maximum of {max_size} bytes")

    meta = await run_in_threadpool(
        service.upload_file,
        file.file,
        file.filename,
        file.size or 0,
        expires_in,
        password,
        _upload_info(request, file.content_type),
    )
    return ShareCreatedResponse(id=meta.id, url=service.share_url(meta.id))


@router.post("/init", response_model=UploadInitResponse)
async def init_upload(
    body: UploadInitRequest,
    request: Request,
    service: UploadService = Depends(get_upload_service)
):
    """
    Start a chunked upload.

    Returns:
        - uploadId: Upload session ID
        - chunkSize: Size every chunk except the last must have
        - totalChunks: Number of chunks to send

    Raises:
        - 400: Missing file name, negative or oversized file size
    """
    session = await run_in_threadpool(
        service.init_upload,
        body.file_name,
        body.file_size,
        body.expires_in,
        body.password,
        _upload_info(request, body.content_type),
    )
    return UploadInitResponse(
        upload_id=session.id,
        chunk_size=session.chunk_size,
        total_chunks=session.total_chunks,
    )


def _parse_chunk_index(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Malformed chunk index: {raw!r}") from None


async def _spool_chunk_body(request: Request, index: int, limit: int) -> BinaryIO:
    """
    Copy a chunk request body into a spooled temporary file.

    Reading stops as soon as the body grows past limit, so an oversized
    chunk is never held whole.

    Raises:
        ValidationError: If Content-Length or the streamed body exceed limit
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_size = int(declared)
        except ValueError:
            raise ValidationError(f"Invalid Content-Length: {declared!r}") from None
        if declared_size > limit:
            raise ValidationError(f"Chunk {index} exceeds chunk size of {limit} bytes")

    spool = tempfile.SpooledTemporaryFile(max_size=CHUNK_SPOOL_MEMORY_BYTES)
    try:
        size = 0
        async for piece in request.stream():
            size += len(piece)
            if size > limit:
                raise ValidationError(f"Chunk {index} exceeds chunk size of {limit} bytes")
            spool.write(piece)
        spool.seek(0)
    except BaseException:
        spool.close()
        raise
    return spool


@router.post("/{upload_id}/chunk/{index}", response_model=ChunkResponse)
async def upload_chunk(
    upload_id: str,
    index: str,
    request: Request,
    service: UploadService = Depends(get_upload_service)
):
    """
    Store one chunk; the raw request body is the chunk's bytes.

    Returns:
        - received: Number of distinct chunks received so far

    Raises:
        - 400: Malformed or out-of-range index, or chunk too large
        - 404: Unknown upload
        - 500: Storage failure (safe to retry)
    """
    chunk_index = _parse_chunk_index(index)
    limit = service.chunk_size_limit(upload_id, chunk_index)

    body = await _spool_chunk_body(request, chunk_index, limit)
    with body:
        received = await run_in_threadpool(service.receive_chunk, upload_id, chunk_index, body)
    return ChunkResponse(received=received)


@router.get("/{upload_id}", response_model=UploadStatusResponse)
async def get_upload_status(
    upload_id: str,
    service: UploadService = Depends(get_upload_service)
):
    """
    Report which chunks of an upload have been received.

    Raises:
        - 404: Unknown upload
    """
    return UploadStatusResponse(**service.get_upload_status(upload_id))


@router.post("/{upload_id}/complete", response_model=ShareCreatedResponse)
async def complete_upload(
    upload_id: str,
    service: UploadService = Depends(get_upload_service)
):
    """
    Assemble a fully received upload into a share.

    Returns:
        - id: Share ID
        - url: Share link

    Raises:
        - 404: Unknown upload
        - 409: Chunks still missing
        - 500: Corrupt chunk data or storage failure
    """
    meta = await run_in_threadpool(service.complete_upload, upload_id)
    return ShareCreatedResponse(id=meta.id, url=service.share_url(meta.id))


@router.delete("/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abort_upload(
    upload_id: str,
    service: UploadService = Depends(get_upload_service)
):
    """
    Abandon an upload and delete its chunks. Unknown IDs are ignored.
    """
    await run_in_threadpool(service.abort_upload, upload_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
