from typing import Optional

from fastapi import HTTPException


class AppError(HTTPException):
    """Domain error carrying an HTTP status and a stable machine-readable code."""

    status = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(status_code=self.status, detail=message or self.default_message)
        if code:
            self.code = code


class ValidationError(AppError):
    status = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    status = 401
    code = "UNAUTHORIZED"
    default_message = "Could not validate credentials"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.headers = {"WWW-Authenticate": "Bearer"}


class ForbiddenError(AppError):
    status = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    status = 409
    code = "CONFLICT"
    default_message = "Resource conflict"


class ServiceUnavailableError(AppError):
    status = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable, please try again"
