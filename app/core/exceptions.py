"""
Exception Hierarchy
Errors raised while accepting, processing and reporting appraisal jobs.

Request-time errors (auth, validation, scheduling) are mapped to HTTP
responses. Pipeline errors carry a ``fatal`` flag: fatal ones end the job in
``failed``, non-fatal ones trigger a fallback inside the pipeline.
"""

from typing import Any, Dict, Optional


class AppraisalError(Exception):
    """Base exception for the appraisal service."""

    status_code: int = 500
    code: str = "APPRAISAL_ERROR"
    fatal: bool = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return self.message


# ============================================================
# Request-time errors
# ============================================================

class AuthError(AppraisalError):
    """Caller could not be authenticated."""
    status_code = 401
    code = "AUTH_ERROR"


class ValidationError(AppraisalError):
    """Malformed or untrusted input; no job is created."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppraisalError):
    """Requested job or appraisal does not exist for this caller."""
    status_code = 404
    code = "NOT_FOUND"


class SchedulingError(AppraisalError):
    """The accepted job could not be handed to the background scheduler."""
    status_code = 503
    code = "SCHEDULING_ERROR"


# ============================================================
# Pipeline errors
# ============================================================

class FetchError(AppraisalError):
    """An input image could not be retrieved."""
    code = "FETCH_ERROR"


class ValuationServiceError(AppraisalError):
    """The AI valuation call failed or returned unusable data."""
    code = "VALUATION_SERVICE_ERROR"


class RegenerationError(AppraisalError):
    """The AI image regeneration failed; the first input image is used instead."""
    code = "REGENERATION_ERROR"
    fatal = False


class StorageUploadError(AppraisalError):
    """Object storage write failed; the original reference is used instead."""
    code = "STORAGE_UPLOAD_ERROR"
    fatal = False


class PersistenceError(AppraisalError):
    """A relational store write failed."""
    code = "PERSISTENCE_ERROR"


class SideEffectError(AppraisalError):
    """A best-effort side effect (streak update) failed. Only ever logged."""
    code = "SIDE_EFFECT_ERROR"
    fatal = False


__all__ = [
    "AppraisalError",
    "AuthError",
    "ValidationError",
    "NotFoundError",
    "SchedulingError",
    "FetchError",
    "ValuationServiceError",
    "RegenerationError",
    "StorageUploadError",
    "PersistenceError",
    "SideEffectError",
]
