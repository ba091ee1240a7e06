"""
Domain exceptions raised by the services.

Each subclass fixes its HTTP status and ``error_code``; callers pass only a
message and optional structured ``details``.
"""

from typing import Any, ClassVar, Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """
    Base application exception, rendered by ``core.error_handler``.

    ``expose_to_user`` controls whether a non-admin caller sees ``message``
    verbatim or the generic ``public_message`` instead.
    """
    http_status: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: ClassVar[str] = "INTERNAL_ERROR"
    default_message: ClassVar[str] = "An unexpected error occurred."
    expose_to_user: ClassVar[bool] = True
    public_message: ClassVar[str] = "The request could not be completed."
    default_headers: ClassVar[Optional[dict]] = None

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(
            status_code=self.http_status,
            detail={"message": self.message, "details": details},
            headers=headers or self.default_headers,
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(AppException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed."


class NotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Resource not found."
    expose_to_user = False
    public_message = "The requested resource is not available."


class UnauthorizedError(AppException):
    """Caller is not the resource owner or lacks the admin role."""
    http_status = status.HTTP_403_FORBIDDEN
    error_code = "UNAUTHORIZED"
    default_message = "You are not allowed to perform this action."


class AuthenticationError(AppException):
    """Missing, malformed or expired bearer token."""
    http_status = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    default_message = "Invalid authentication token."
    default_headers = {"WWW-Authenticate": "Bearer"}


class InvalidStateError(AppException):
    """Transition attempted from a state that forbids it."""
    http_status = status.HTTP_409_CONFLICT
    error_code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state."
    expose_to_user = False
    public_message = "This action is not available right now."


class InsufficientBalanceError(AppException):
    http_status = status.HTTP_400_BAD_REQUEST
    error_code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient balance."
