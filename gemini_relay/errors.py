"""Relay error types with code mapping for the tool-handling boundary."""

from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base error raised by the resource and retry layer."""

    code = "RELAY_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(RelayError):
    """Client-side validation failure. Never retried."""

    code = "VALIDATION_ERROR"


class CachingDisabledError(ValidationError):
    code = "CACHING_DISABLED"

    def __init__(self) -> None:
        super().__init__("caching is disabled")


class ResourceNotFoundError(RelayError):
    """The backend reports the resource does not exist (deleted or expired)."""

    code = "NOT_FOUND"

    def __init__(self, resource_name: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"resource not found: {resource_name}", {"resource": resource_name})
        self.resource_name = resource_name


class BackendError(RelayError):
    """A remote call failed after the retry budget was spent.

    The original exception is kept as ``cause`` and chained via ``raise ... from``.
    """

    code = "BACKEND_ERROR"

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed: {cause}", {"operation": operation})
        self.operation = operation
        self.cause = cause
