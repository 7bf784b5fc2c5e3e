"""
Service-level error kinds.

Services raise these; routers translate them into HTTP responses. Booking and
account failures keep the historical 400 status, with the specific kind
exposed through the X-Error-Code header.
"""

from fastapi import HTTPException


class ClinicError(Exception):
    """Base class for all domain failures."""
    code = "CLINIC_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ClinicError):
    code = "NOT_FOUND"


class ValidationFailedError(ClinicError):
    code = "VALIDATION_FAILED"


class ConflictError(ClinicError):
    code = "CONFLICT"


class UnauthorizedError(ClinicError):
    code = "UNAUTHORIZED"


class InvalidStateError(ClinicError):
    code = "INVALID_STATE"


def to_http_exception(error: ClinicError, status_code: int = 400) -> HTTPException:
    """Convert a domain error into an HTTPException carrying its error code."""
    return HTTPException(
        status_code=status_code,
        detail=error.message,
        headers={"X-Error-Code": error.code},
    )
