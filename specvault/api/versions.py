"""Version API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query

from ..engine.documents import parse_document
from ..schemas.specification import (
    SaveVersionRequest,
    VersionContentResponse,
    VersionDiffResponse,
    VersionResponse,
)
from ..services import VersionController
from .deps import document_path, get_controller, raise_for_result

router = APIRouter(prefix="/api/versions", tags=["versions"])


async def _history(controller: VersionController, path: str):
    """Current history of *path*, raising on failure."""
    return raise_for_result(await controller.load_versions(path)).versions


@router.get("", response_model=List[VersionResponse])
async def list_versions(
    path: str = Depends(document_path),
    include_deleted: bool = Query(True),
    controller: VersionController = Depends(get_controller),
):
    """List all versions of a document, oldest first."""
    versions = await _history(controller, path)
    return [v for v in versions if include_deleted or not v.soft_deleted]


@router.post("", response_model=VersionResponse, status_code=201)
async def save_version(
    body: SaveVersionRequest,
    controller: VersionController = Depends(get_controller),
):
    """Save the current document as a new version.

    The body carries either the parsed document (``content``) or its source
    text with a file extension (``text`` + ``extension``).
    """
    if body.text is not None:
        content = parse_document(body.text, body.extension)
    else:
        content = body.content
    result = raise_for_result(
        await controller.save_version(body.path, content, body.name, body.version)
    )
    return result.record


@router.get("/diff", response_model=VersionDiffResponse)
async def diff_versions(
    path: str = Depends(document_path),
    from_id: int = Query(...),
    to_id: int = Query(...),
    controller: VersionController = Depends(get_controller),
):
    """Delta between two versions of the same document."""
    versions = await _history(controller, path)
    result = raise_for_result(await controller.diff_versions(versions, from_id, to_id))
    return VersionDiffResponse(from_id=from_id, to_id=to_id, delta=result.content)


@router.get("/{version_id}/content", response_model=VersionContentResponse)
async def get_version_content(
    version_id: int,
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Reconstructed document content of one version."""
    versions = await _history(controller, path)
    result = raise_for_result(await controller.get_version_content(versions, version_id))
    return VersionContentResponse(
        id=result.record.id,
        path=result.record.path,
        version=result.record.version,
        content=result.content,
    )


@router.delete("/{version_id}", response_model=VersionResponse)
async def delete_version(
    version_id: int,
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Soft delete: hide the version without removing it from the chain."""
    versions = await _history(controller, path)
    result = raise_for_result(await controller.delete_version(versions, version_id))
    return result.record


@router.post("/{version_id}/restore", response_model=VersionResponse)
async def restore_version(
    version_id: int,
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Restore a soft-deleted version."""
    versions = await _history(controller, path)
    result = raise_for_result(await controller.restore_version(versions, version_id))
    return result.record


@router.delete("/{version_id}/permanent", response_model=VersionResponse)
async def delete_version_permanently(
    version_id: int,
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Permanently delete a version. Refused (409) while a later diff depends on it."""
    versions = await _history(controller, path)
    result = raise_for_result(await controller.delete_version_permanently(versions, version_id))
    return result.record
