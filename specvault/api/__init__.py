"""API routes."""

from .versions import router as versions_router
from .files import router as files_router
from .anchors import router as anchors_router

__all__ = [
    "versions_router",
    "files_router",
    "anchors_router",
]
