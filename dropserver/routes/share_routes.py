"""Share API routes: metadata, unlock and download."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from common.constants import UNLOCK_TOKEN_MAX_AGE_SECONDS
from dropserver.auth import Authenticator
from dropserver.schemas.shares import ShareInfoResponse, UnlockRequest, UnlockResponse
from dropserver.service_locator import get_share_service
from dropserver.services.share_service import ShareService

router = APIRouter(prefix="/api/share", tags=["Shares"])


@router.get("/{share_id}", response_model=ShareInfoResponse)
async def get_share_info(
    share_id: str,
    service: ShareService = Depends(get_share_service)
):
    """
    Get share metadata.

    Returns:
        - id, fileName, fileSize
        - expiresAt: ISO-8601 UTC timestamp, omitted for permanent shares
        - passwordRequired: Whether the download needs an unlock

    Raises:
        - 404: Share not found or expired
    """
    meta = await run_in_threadpool(service.get_share_info, share_id)
    expires_at = None
    if meta.expires_at is not None:
        expires_at = meta.expires_at.strftime("%Y-%m-%dT%H:%M:%SZ")
    return ShareInfoResponse(
        id=meta.id,
        file_name=meta.file_name,
        file_size=meta.file_size,
        expires_at=expires_at,
        password_required=meta.password_required,
    )


@router.post("/{share_id}/unlock", response_model=UnlockResponse)
async def unlock_share(
    share_id: str,
    body: UnlockRequest,
    response: Response,
    service: ShareService = Depends(get_share_service)
):
    """
    Unlock a password-protected share by setting a signed cookie.

    Raises:
        - 401: Wrong password
        - 404: Share not found or expired
    """
    token = await run_in_threadpool(service.unlock, share_id, body.password)
    response.set_cookie(
        key=Authenticator.cookie_name(share_id),
        value=token,
        max_age=UNLOCK_TOKEN_MAX_AGE_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
    )
    return UnlockResponse(success=True)


@router.get("/{share_id}/download")
async def download_share(
    share_id: str,
    request: Request,
    service: ShareService = Depends(get_share_service)
):
    """
    Download a share's file.

    Raises:
        - 401: Password required
        - 404: Share not found or expired
    """
    token = request.cookies.get(Authenticator.cookie_name(share_id))
    meta, path = await run_in_threadpool(service.open_download, share_id, token)
    return FileResponse(
        path,
        media_type="application/octet-stream",
        filename=meta.file_name,
    )
