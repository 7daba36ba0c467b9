"""
Error taxonomy for the category hierarchy engine.

Every error carries a machine-readable ``kind`` and ``reason`` plus a
human-readable message. The REST adapter maps ``kind`` to an HTTP status.
"""
import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DEPENDENCY = "DEPENDENCY"


class ErrorReason(str, enum.Enum):
    INVALID_CODE = "INVALID_CODE"
    INVALID_NAME = "INVALID_NAME"
    INVALID_ID = "INVALID_ID"
    INVALID_FILTER = "INVALID_FILTER"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"
    ALREADY_DELETED = "ALREADY_DELETED"
    CATEGORY_INACTIVE = "CATEGORY_INACTIVE"
    AUDIT_FAILED = "AUDIT_FAILED"
    ITEM_UPDATE_FAILED = "ITEM_UPDATE_FAILED"


class CategoryError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, reason: Optional[ErrorReason] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind.value,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(reason={self.reason}, message={self.message!r})"


class ValidationError(CategoryError):
    """Malformed input; the caller has to correct the request."""
    kind = ErrorKind.VALIDATION


class NotFoundError(CategoryError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(CategoryError):
    """The request collides with the current tree state (code, parent, status)."""
    kind = ErrorKind.CONFLICT


class DependencyError(CategoryError):
    """
    A collaborator (audit, items) failed after the category change was committed.
    Never raised out of a mutation; returned as a warning on the result.
    """
    kind = ErrorKind.DEPENDENCY
