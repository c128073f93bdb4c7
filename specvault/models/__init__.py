"""Database models."""

from .specification import Specification
from .anchor import Anchor

__all__ = ["Specification", "Anchor"]
