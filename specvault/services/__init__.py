"""Business logic services."""

from .version_controller import VersionController, VersionResult

__all__ = ["VersionController", "VersionResult"]
