"""
Application error types mapped to HTTP status codes by the exception handlers in main
"""
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base error carrying the HTTP status it should be rendered with"""
    status_code = 500
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[List[Any]] = None):
        super().__init__(message, errors=errors)


class UnauthorizedError(AppError):
    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str = "Duplicate record"):
        super().__init__(message)
