"""Anchor schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .specification import normalize_path


class AnchorData(BaseModel):
    """A bookmark at (line, pos) in a document."""
    line: int = Field(ge=0)
    pos: int = Field(ge=0)
    time: int  # epoch milliseconds
    label: Optional[str] = None
    comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class AnchorCreate(AnchorData):
    """Body for adding an anchor through the API."""
    path: str = Field(min_length=1)

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        return normalize_path(v)
