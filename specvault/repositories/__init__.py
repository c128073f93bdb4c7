"""Data access repositories."""

from .base import BaseRepository
from .specification_repository import SpecificationRepository
from .anchor_repository import AnchorRepository

__all__ = [
    "BaseRepository",
    "SpecificationRepository",
    "AnchorRepository",
]
