"""Shared FastAPI dependencies."""

from fastapi import Query, Request

from ..exceptions import ValidationError
from ..schemas.specification import normalize_path
from ..services import VersionController, VersionResult


def get_controller(request: Request) -> VersionController:
    """The application's VersionController, built at startup."""
    return request.app.state.controller


def document_path(path: str = Query(..., min_length=1)) -> str:
    """The ``path`` query parameter, normalized like paths in request bodies."""
    try:
        return normalize_path(path)
    except ValueError as e:
        raise ValidationError(str(e), field="path") from e


def raise_for_result(result: VersionResult) -> VersionResult:
    """Re-raise a failed controller result so the exception handler renders it."""
    if not result.ok:
        raise result.error
    return result
