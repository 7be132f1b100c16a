"""
Domain errors for the routing engine.

Each error is an ``HTTPException`` so services can raise them directly and the
API renders them through one handler as ``{"success": false, "message": ...}``.
"""

from fastapi import HTTPException, status


class FieldOpsError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "error"

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message


class NotFoundError(FieldOpsError):
    """Business, team, task or route is absent."""
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class InvalidInputError(FieldOpsError):
    """Malformed id, bad filter, invalid time window or coordinates."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_input"


class NoEligibleWorkError(FieldOpsError):
    """Zero tasks or zero teams available for optimization."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "no_eligible_work"


class ProviderError(Exception):
    """Raised by external provider clients; always recovered by a local fallback."""
