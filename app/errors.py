"""API error types.

Every failure a route can report maps to one of these. The handlers in
``app.main`` render them as ``{"message": ...}`` with the class status code.
"""

from fastapi import status


class ApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class ConflictError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Resource already exists"


class InvalidCredentialsError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid email or password"


class InvalidCodeError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid or expired verification code"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Access token required"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid or expired token"


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class InternalError(ApiError):
    pass


class DeliveryError(InternalError):
    message = "Failed to send verification email"
