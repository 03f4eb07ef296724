"""
Shared error handling for the Privileges library and service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class PrivilegeException(Exception):
    """Base exception for the Privileges library."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(PrivilegeException, ValueError):
    """A value is present but does not satisfy its contract."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidTypeError(PrivilegeException, TypeError):
    """An argument has the wrong shape (e.g. not a string or not a mapping)."""

    def __init__(self, message: str = "Invalid type", details: Optional[Dict[str, Any]] = None):
        super().__init__("TYPE_ERROR", message, details)


class EmptyCollectionError(PrivilegeException, ValueError):
    """A batch argument was given as an empty sequence."""

    def __init__(self, field: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "EMPTY_COLLECTION",
            f'Expected "{field}" to be a non-empty sequence, empty sequence given',
            details or {"field": field}
        )


class InvalidSelectorError(PrivilegeException, ValueError):
    """A selector contains keys outside the privilege fields."""

    def __init__(self, message: str = "Invalid selector", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_SELECTOR", message, details)


class NotFoundError(PrivilegeException):
    """A referenced record does not exist."""

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class GroupExistsError(PrivilegeException):
    """A group bound to an existing id was registered again."""

    def __init__(self, group_id: str):
        super().__init__(
            "GROUP_EXISTS",
            "Cannot register a group that already exists",
            {"group_id": group_id}
        )


class StorageError(PrivilegeException):
    """The storage backend failed."""

    def __init__(self, message: str = "Storage error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_ERROR", message, details)
