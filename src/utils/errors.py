"""
Error handling utilities for Lambda functions.

Provides standardized error responses with error codes.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Application error with error code and message.

    Used to return structured errors to GraphQL clients.
    """

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for GraphQL response."""
        return {
            "errorCode": self.error_code,
            "message": self.message,
            **self.details,
        }


class ErrorCode:
    """Standard error codes for the marketplace API."""

    # Authorization errors
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    USER_NOT_REGISTERED = "USER_NOT_REGISTERED"
    VERIFICATION_REQUIRED = "VERIFICATION_REQUIRED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_PHONE = "INVALID_PHONE"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Business logic errors
    INVALID_STATE = "INVALID_STATE"
    PAYMENT_ERROR = "PAYMENT_ERROR"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


def handle_error(error: Exception) -> Dict[str, Any]:
    """
    Convert exception to standardized error response.

    Args:
        error: Exception to handle

    Returns:
        Error dictionary for GraphQL response
    """
    if isinstance(error, AppError):
        return error.to_dict()

    return {
        "errorCode": ErrorCode.INTERNAL_ERROR,
        "message": "An unexpected error occurred. Please try again.",
    }
