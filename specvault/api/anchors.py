"""Anchor API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query

from ..schemas.anchor import AnchorCreate, AnchorData
from ..services import VersionController
from .deps import document_path, get_controller, raise_for_result

router = APIRouter(prefix="/api/anchors", tags=["anchors"])


@router.get("", response_model=List[AnchorData])
async def get_anchors(
    path: str = Depends(document_path),
    controller: VersionController = Depends(get_controller),
):
    """Anchors of a document, in line/position order."""
    result = raise_for_result(await controller.get_anchors(path))
    return list(result.content)


@router.post("", response_model=AnchorData, status_code=201)
async def add_anchor(
    body: AnchorCreate,
    controller: VersionController = Depends(get_controller),
):
    anchor = AnchorData.model_validate(body.model_dump(exclude={"path"}))
    result = raise_for_result(await controller.add_anchor(body.path, anchor))
    return result.content


@router.delete("")
async def delete_anchor(
    path: str = Depends(document_path),
    line: int = Query(..., ge=0),
    pos: int = Query(..., ge=0),
    controller: VersionController = Depends(get_controller),
):
    """Remove the anchor at (line, pos). Deleting a missing anchor is not an error."""
    result = raise_for_result(await controller.delete_anchor(path, line, pos))
    return {"path": path, "line": line, "pos": pos, "deleted": result.content}
