"""Custom exceptions for Concierge."""

from typing import Any


class ConciergeError(Exception):
    """Base exception for Concierge errors.

    Carries an HTTP status code and a machine-readable error code so that
    handlers can translate it into an API response.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize error.

        Args:
            message: Human-readable error message.
            details: Optional extra context for the response body.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ConciergeError):
    """Raised when a resource does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(ConciergeError):
    """Raised when request data fails validation."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        super().__init__("Validation failed", {"errors": errors})


class ForbiddenError(ConciergeError):
    """Raised when the caller may not access a resource."""

    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(
        self,
        message: str = "You don't have permission to perform this action",
        resource_type: str | None = None,
        action: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.action = action
        super().__init__(message)


class ConflictError(ConciergeError):
    """Raised on optimistic locking or uniqueness conflicts."""

    status_code = 409
    error_code = "CONFLICT"


class InsufficientCreditsError(ConciergeError):
    """Raised when a ledger cannot cover the cost of an operation."""

    status_code = 402
    error_code = "INSUFFICIENT_CREDITS"

    def __init__(self, operation: str, required: int, balance: int) -> None:
        self.operation = operation
        self.required = required
        self.balance = balance
        super().__init__(
            f"Operation '{operation}' needs {required} credits (balance: {balance})",
            {"operation": operation, "required": required, "balance": balance},
        )


class GenerationError(ConciergeError):
    """Raised when the model returned nothing usable for a step."""

    status_code = 502
    error_code = "GENERATION_FAILED"
