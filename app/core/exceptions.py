"""
Error kinds raised by the access-control services.
Routes never catch these; app.main renders them with their status code.
"""

from fastapi import status
from typing import Any, Dict, Optional


class AccessError(Exception):
    code: str = "ACCESS_ERROR"
    message: str = "Access control error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class NotAuthorized(AccessError):
    code = "NOT_AUTHORIZED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN


class ValidationFailed(AccessError):
    code = "VALIDATION_FAILED"
    message = "Invalid input"
    status_code = status.HTTP_400_BAD_REQUEST


class SelfDeactivationForbidden(AccessError):
    code = "SELF_DEACTIVATION_FORBIDDEN"
    message = "Administrators cannot deactivate their own account"
    status_code = status.HTTP_409_CONFLICT


class ConflictingState(AccessError):
    code = "CONFLICTING_STATE"
    message = "Operation conflicts with the current state"
    status_code = status.HTTP_409_CONFLICT


class NotFound(AccessError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class DependencyUnavailable(AccessError):
    code = "DEPENDENCY_UNAVAILABLE"
    message = "Backing store is unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
