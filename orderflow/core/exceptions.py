"""
Application error taxonomy.

Validation errors are reported to the caller and abort the enclosing
transaction. ``ReconciliationError`` marks a webhook that cannot be matched
to local state; the gateway is expected to retry it.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors rendered as structured JSON responses."""

    status_code: int = 500
    error_type: str = "InternalServerError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"type": self.error_type, "message": self.message}
        body.update({k: v for k, v in self.details.items() if v is not None})
        return body


class ValidationError(AppError):
    status_code = 400
    error_type = "ValidationError"


class PromoRejectedError(ValidationError):
    """A promo code failed one of the redemption rules."""

    error_type = "PromoRejected"

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message, reason=reason)
        self.reason = reason


class InsufficientPointsError(ValidationError):
    error_type = "InsufficientPoints"

    def __init__(self, requested: int, message: Optional[str] = None) -> None:
        super().__init__(
            message or "Insufficient points balance",
            requested=requested,
        )
        self.requested = requested


class UnauthorizedError(AppError):
    status_code = 401
    error_type = "UnauthorizedError"


class ForbiddenError(AppError):
    status_code = 403
    error_type = "ForbiddenError"


class NotFoundError(AppError):
    status_code = 404
    error_type = "NotFoundError"


class ConflictError(AppError):
    status_code = 409
    error_type = "ConflictError"


class InvalidTransitionError(AppError):
    status_code = 409
    error_type = "InvalidTransition"

    def __init__(self, current: str, target: str, message: str) -> None:
        super().__init__(message, current=current, target=target)
        self.current = current
        self.target = target


class WebhookSignatureError(AppError):
    status_code = 400
    error_type = "WebhookSignatureError"


class ReconciliationError(AppError):
    """A gateway event references state that does not exist locally."""

    status_code = 500
    error_type = "ReconciliationError"
