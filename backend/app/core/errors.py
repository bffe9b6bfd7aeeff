"""
Domain error taxonomy for the update-request workflow.

Authoritative steps (validation, lookups, the resident write) raise these
and abort. Informational steps wrap their failures in
PartialPropagationError and report them instead of raising.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AppError):
    """Malformed submission; rejected before any write."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """Resident, request or notification missing."""
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(AppError):
    """Duplicate pending request, stale resident version or review in flight."""
    status_code = 409
    error_code = "CONFLICT"


class TransientNetworkError(AppError):
    """Timeout or connection failure talking to the records API."""
    status_code = 503
    error_code = "TRANSIENT_NETWORK_ERROR"


class PartialPropagationError(AppError):
    """Resident mutation succeeded but an outcome step did not."""
    status_code = 207
    error_code = "PARTIAL_PROPAGATION"

    def __init__(self, step: str, cause: Exception, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{step} failed: {cause}", details)
        self.step = step
        self.cause = cause


def error_for_status(status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> AppError:
    """Rebuild a domain error from an HTTP status returned by the API."""
    if status_code in (400, 422):
        return ValidationError(message, details)
    if status_code == 404:
        return NotFoundError(message, details)
    if status_code == 409:
        return ConflictError(message, details)
    if status_code in (502, 503, 504):
        return TransientNetworkError(message, details)
    error = AppError(message, details)
    error.status_code = status_code
    return error


def is_unique_violation(error: Exception) -> bool:
    """True when a PostgREST error reports a unique-constraint violation."""
    code = getattr(error, "code", None)
    if code == "23505":
        return True
    text = str(getattr(error, "message", None) or error).lower()
    return "duplicate key" in text or "unique constraint" in text
