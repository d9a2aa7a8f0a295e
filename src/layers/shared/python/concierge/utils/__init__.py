"""Utility functions and helpers."""

from concierge.utils.auth import AuthContext, get_auth_context, require_workspace_access
from concierge.utils.exceptions import (
    ConciergeError,
    ConflictError,
    ForbiddenError,
    GenerationError,
    InsufficientCreditsError,
    NotFoundError,
    ValidationError,
)
from concierge.utils.responses import (
    capability_required,
    created,
    error,
    not_found,
    success,
    validation_error,
)

__all__ = [
    # Response helpers
    "success",
    "created",
    "error",
    "validation_error",
    "not_found",
    "capability_required",
    # Auth
    "AuthContext",
    "get_auth_context",
    "require_workspace_access",
    # Exceptions
    "ConciergeError",
    "ConflictError",
    "ForbiddenError",
    "GenerationError",
    "InsufficientCreditsError",
    "NotFoundError",
    "ValidationError",
]
