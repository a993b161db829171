"""API routes package."""

from dropserver.routes.share_routes import router as share_router
from dropserver.routes.upload_routes import router as upload_router

__all__ = ["share_router", "upload_router"]
