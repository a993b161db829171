"""Entry point for the drop server."""

import errno
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from dropserver.config import SERVER_HOST, SERVER_PORT
from dropserver.exceptions import (
    DropException,
    IncompleteUploadError,
    InvalidChunkIndexError,
    InvalidPasswordError,
    NotFoundError,
    PasswordRequiredError,
    StorageCorruptionError,
    StorageIOError,
    ValidationError
)
from dropserver.routes import share_router, upload_router
from dropserver.schemas.common import HealthResponse
from dropserver.service_locator import get_sweeper

logger = setup_logging('dropserver')

app = FastAPI(
    title="KISSDrop",
    description="Self-hosted file drop with resumable chunked uploads",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Start the expiry sweeper on application startup.
    """
    logger.info("Drop server starting up...")
    await get_sweeper().start()
    logger.info("Expiry sweeper started")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Stop background tasks on application shutdown.
    """
    logger.info("Drop server shutting down...")
    await get_sweeper().stop()
    logger.info("Expiry sweeper stopped")


def _error_response(request: Request, exc: Exception, status_code: int, code: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
    if status_code >= 500:
        logger.error(message, exc_info=True)
    else:
        logger.warning(message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code}
    )


@app.exception_handler(InvalidChunkIndexError)
async def invalid_chunk_index_handler(request: Request, exc: InvalidChunkIndexError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_CHUNK_INDEX")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "NOT_FOUND")


@app.exception_handler(IncompleteUploadError)
async def incomplete_upload_handler(request: Request, exc: IncompleteUploadError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "INCOMPLETE_UPLOAD")


@app.exception_handler(PasswordRequiredError)
async def password_required_handler(request: Request, exc: PasswordRequiredError):
    return _error_response(request, exc, status.HTTP_401_UNAUTHORIZED, "PASSWORD_REQUIRED")


@app.exception_handler(InvalidPasswordError)
async def invalid_password_handler(request: Request, exc: InvalidPasswordError):
    return _error_response(request, exc, status.HTTP_401_UNAUTHORIZED, "INVALID_PASSWORD")


@app.exception_handler(StorageCorruptionError)
async def storage_corruption_handler(request: Request, exc: StorageCorruptionError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_CORRUPTION")


@app.exception_handler(StorageIOError)
async def storage_io_handler(request: Request, exc: StorageIOError):
    if exc.errno == errno.ENOSPC:
        return _error_response(request, exc, status.HTTP_507_INSUFFICIENT_STORAGE, "STORAGE_FULL")
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR")


@app.exception_handler(DropException)
async def drop_exception_handler(request: Request, exc: DropException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


app.include_router(upload_router)
app.include_router(share_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "KISSDrop API", "status": "running"}


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for container healthchecks.
    Returns 200 if service is alive.
    """
    return HealthResponse(status="healthy", service="dropserver")


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "dropserver.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT
    )


if __name__ == "__main__":
    main()
