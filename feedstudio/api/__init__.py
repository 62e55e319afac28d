"""API routes."""

from .content import router as content_router
from .versions import router as versions_router

__all__ = ["content_router", "versions_router"]
