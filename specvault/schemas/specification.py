"""Specification version schemas."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def normalize_path(path: str) -> str:
    """Canonical form of a document path: no surrounding whitespace or slashes."""
    path = path.strip().strip('/')
    if not path:
        raise ValueError("Path cannot be empty")
    return path


class NewSpecification(BaseModel):
    """A version record as sent to the store, before it has an id."""
    path: str
    name: str
    version: str
    diff: bytes  # gzip-compressed JSON payload
    is_full: bool
    created_at: datetime
    soft_deleted: bool = False

    @field_validator('created_at')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class SpecificationRecord(NewSpecification):
    """A stored version record. Immutable once read."""
    id: int

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TrackedFileSummary(BaseModel):
    """Per-path summary used by the tracked-files overview."""
    count: int
    last_update: int  # epoch milliseconds of the newest record


# ---------------------------------------------------------------------------
# API request / response bodies
# ---------------------------------------------------------------------------


class SaveVersionRequest(BaseModel):
    """Body for saving the current document as a new version.

    Either ``content`` (already-parsed JSON value) or ``text`` plus
    ``extension`` (raw JSON/YAML source) must be given.
    """
    path: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    version: str
    content: Optional[Any] = None
    text: Optional[str] = None
    extension: Optional[str] = None

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        return normalize_path(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Version name cannot be blank")
        if '.' in v:
            raise ValueError("Version name cannot contain '.'")
        return v

    @model_validator(mode='after')
    def check_source(self) -> 'SaveVersionRequest':
        if self.text is None and self.content is None:
            raise ValueError("Either 'content' or 'text' is required")
        if self.text is not None and self.content is not None:
            raise ValueError("Give either 'content' or 'text', not both")
        if self.text is not None and not self.extension:
            raise ValueError("'extension' is required together with 'text'")
        return self


class VersionResponse(BaseModel):
    """Version metadata returned by the API (payload bytes omitted)."""
    id: int
    path: str
    name: str
    version: str
    is_full: bool
    created_at: datetime
    soft_deleted: bool

    model_config = ConfigDict(from_attributes=True)


class VersionContentResponse(BaseModel):
    """Reconstructed document content of one version."""
    id: int
    path: str
    version: str
    content: Any


class VersionDiffResponse(BaseModel):
    """Delta between two reconstructed versions (None when equal)."""
    from_id: int
    to_id: int
    delta: Optional[Any] = None


class RenameFileRequest(BaseModel):
    """Move a whole version chain to a new path."""
    old_path: str = Field(min_length=1)
    new_path: str = Field(min_length=1)

    @field_validator('old_path', 'new_path')
    @classmethod
    def validate_paths(cls, v: str) -> str:
        return normalize_path(v)


class TrackedFileResponse(BaseModel):
    """One entry of the tracked-files overview."""
    path: str
    count: int
    last_update: int
