"""
Domain Errors

Every error raised by the services carries a machine-readable code and the
HTTP status it maps to. main.py renders them in the standard error envelope.
"""
from typing import Any, Optional


class LavError(Exception):
    """Base class for domain errors"""

    code = "LAV_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationFailed(LavError):
    """Input rejected before any write"""

    code = "VALIDATION_FAILED"
    status_code = 422


class NotFound(LavError):
    code = "NOT_FOUND"
    status_code = 404


class PermissionDenied(LavError):
    code = "PERMISSION_DENIED"
    status_code = 403


class InvalidTransition(LavError):
    """Status change not on the lifecycle graph"""

    code = "INVALID_TRANSITION"
    status_code = 409


class ActionInProgress(LavError):
    """Another submit for the same area is still in flight"""

    code = "ACTION_IN_PROGRESS"
    status_code = 409
