"""
Exception hierarchy for the Touchline backend.

Services and database clients raise these; the FastAPI app renders them as
JSON error responses using each class's ``status_code`` and ``error_code``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TouchlineError(Exception):
    """Base class for all errors raised by the backend."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"detail": self.message, "errorCode": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(TouchlineError):
    status_code = 404
    error_code = "not_found"


class ValidationError(TouchlineError):
    status_code = 422
    error_code = "validation_error"


class ConstraintViolationError(TouchlineError):
    """A uniqueness, check or foreign-key constraint rejected the write."""

    status_code = 409
    error_code = "constraint_violation"


class InvalidStateError(TouchlineError):
    status_code = 409
    error_code = "invalid_state"


class AuthenticationError(TouchlineError):
    status_code = 401
    error_code = "unauthenticated"


class PermissionDeniedError(TouchlineError):
    status_code = 403
    error_code = "permission_denied"


class StorageUnavailableError(TouchlineError):
    """The database or queue could not be reached."""

    status_code = 503
    error_code = "storage_unavailable"
