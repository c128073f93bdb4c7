"""Custom exception hierarchy for SpecVault."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for results and API responses."""

    # Version errors
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    NO_CHANGES = "NO_CHANGES"

    # Chain errors
    CORRUPT_PAYLOAD = "CORRUPT_PAYLOAD"
    BROKEN_CHAIN = "BROKEN_CHAIN"
    CHAIN_INTEGRITY = "CHAIN_INTEGRITY"

    # Worker protocol errors
    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    WORKER_UNAVAILABLE = "WORKER_UNAVAILABLE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class SpecVaultException(Exception):
    """
    Base exception for all SpecVault errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class VersionNotFoundError(SpecVaultException):
    """Version record not found in the store or in the caller's history."""

    def __init__(self, version_id: int):
        super().__init__(
            f"Version not found: {version_id}",
            ErrorCode.VERSION_NOT_FOUND,
            status_code=404,
            details={"version_id": version_id}
        )


class NoChangeError(SpecVaultException):
    """The document is structurally identical to the latest saved version."""

    def __init__(self, path: str):
        super().__init__(
            "No new changes found between previous and current draft version",
            ErrorCode.NO_CHANGES,
            status_code=409,
            details={"path": path}
        )


class CorruptPayloadError(SpecVaultException):
    """A stored payload could not be decompressed, decoded, or applied."""

    def __init__(self, message: str, version_id: Optional[int] = None):
        details = {"version_id": version_id} if version_id is not None else {}
        super().__init__(
            message,
            ErrorCode.CORRUPT_PAYLOAD,
            status_code=500,
            details=details
        )


class BrokenChainError(CorruptPayloadError):
    """No full snapshot precedes the requested version."""

    def __init__(self, version_id: int):
        super().__init__(
            f"No full snapshot precedes version {version_id}",
            version_id=version_id,
        )
        self.error_code = ErrorCode.BROKEN_CHAIN


class ChainIntegrityError(SpecVaultException):
    """Permanent deletion would strand a later diff record."""

    def __init__(self, version_id: int, dependent_id: int):
        super().__init__(
            f"Version {version_id} is the diff base of version {dependent_id} "
            "and cannot be deleted permanently",
            ErrorCode.CHAIN_INTEGRITY,
            status_code=409,
            details={"version_id": version_id, "dependent_id": dependent_id}
        )


class StaleBaseError(SpecVaultException):
    """A diff was computed against a record that is no longer the latest."""

    def __init__(self, path: str, base_id: Optional[int], latest_id: Optional[int]):
        super().__init__(
            f"Diff for '{path}' is based on version {base_id}, "
            f"but the latest version is {latest_id}",
            ErrorCode.CHAIN_INTEGRITY,
            status_code=409,
            details={"path": path, "base_id": base_id, "latest_id": latest_id}
        )


class ValidationError(SpecVaultException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class ProtocolError(SpecVaultException):
    """The persistence worker answered a request with an Error response."""

    def __init__(self, message: str, message_type: Optional[str] = None, code: Optional[str] = None):
        details: Dict[str, Any] = {}
        if message_type:
            details["message_type"] = message_type
        if code:
            details["code"] = code
        super().__init__(
            message,
            ErrorCode.PROTOCOL_ERROR,
            status_code=502,
            details=details
        )


class WorkerUnavailableError(ProtocolError):
    """The persistence worker is closed, crashed, or never answered."""

    def __init__(self, message: str = "Persistence worker is not running"):
        super().__init__(message)
        self.error_code = ErrorCode.WORKER_UNAVAILABLE
        self.status_code = 503


class PatchError(Exception):
    """A delta could not be applied to its base value.

    Engine-level only. Reconstruction wraps it into CorruptPayloadError.
    """
    pass
