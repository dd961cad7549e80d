"""
Application error hierarchy.

Every error carries an HTTP status and a stable machine-readable code. The
codes are part of the public contract: the UI and payment webhook callers
branch on them, so they must not change between releases.
"""
from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, data: Any = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class BadRequestError(AppError):
    status_code = 400
    default_code = "BAD_REQUEST"
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Conflict"


class UnprocessableError(AppError):
    status_code = 422
    default_code = "UNPROCESSABLE"
    default_message = "Unprocessable entity"


class ServiceUnavailableError(AppError):
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"
    default_message = "Service unavailable"


class DeliveryError(Exception):
    """Raised by the notification sender when a message could not be sent."""


class GatewayError(Exception):
    """Raised by the payment gateway client on transport or API failures."""


class InvalidNotificationError(Exception):
    """Raised when a webhook payload fails signature or shape verification."""


class TransitionConflict(ConflictError):
    """A guarded status update found the ticket outside its allowed predecessors."""

    default_code = "INVALID_TRANSITION"
    default_message = "Ticket status changed concurrently"

    def __init__(self, current_status: Any = None, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message)

