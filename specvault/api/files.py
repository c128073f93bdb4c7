"""Tracked file API endpoints."""

from typing import List

from fastapi import APIRouter, Depends

from ..schemas.specification import RenameFileRequest, TrackedFileResponse
from ..services import VersionController
from .deps import document_path, get_controller, raise_for_result

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("", response_model=List[TrackedFileResponse])
async def list_tracked_files(controller: VersionController = Depends(get_controller)):
    """Every tracked document with its version count and last update."""
    result = raise_for_result(await controller.list_tracked_files())
    return [
        TrackedFileResponse(path=path, count=summary.count, last_update=summary.last_update)
        for path, summary in sorted(result.content.items())
    ]


@router.get("/tracked")
async def is_file_tracked(
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    result = raise_for_result(await controller.is_file_tracked(path))
    return {"path": path, "tracked": result.content}


@router.post("/rename")
async def rename_file(
    body: RenameFileRequest,
    controller: VersionController = Depends(get_controller),
):
    """Move a document's history (and anchors) to a new path."""
    result = raise_for_result(await controller.rename_file(body.old_path, body.new_path))
    return {"old_path": body.old_path, "new_path": body.new_path, "moved": result.content}


@router.delete("")
async def delete_file(
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Permanently delete a document's whole history and its anchors."""
    result = raise_for_result(await controller.delete_file(path))
    return {"path": path, "deleted": result.content}


@router.post("/trash")
async def soft_delete_file(
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Soft-delete every version of a document."""
    result = raise_for_result(await controller.soft_delete_file(path))
    return {"path": path, "affected": result.content}


@router.post("/restore")
async def restore_file(
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Restore every soft-deleted version of a document."""
    result = raise_for_result(await controller.restore_file(path))
    return {"path": path, "affected": result.content}
