"""Pydantic schemas."""

from .specification import (
    NewSpecification,
    SpecificationRecord,
    TrackedFileSummary,
    SaveVersionRequest,
    VersionResponse,
    VersionContentResponse,
    VersionDiffResponse,
    RenameFileRequest,
    TrackedFileResponse,
)
from .anchor import AnchorData, AnchorCreate

__all__ = [
    "NewSpecification",
    "SpecificationRecord",
    "TrackedFileSummary",
    "SaveVersionRequest",
    "VersionResponse",
    "VersionContentResponse",
    "VersionDiffResponse",
    "RenameFileRequest",
    "TrackedFileResponse",
    "AnchorData",
    "AnchorCreate",
]
