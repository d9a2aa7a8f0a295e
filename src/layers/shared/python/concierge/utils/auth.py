"""Authentication context helpers."""

from dataclasses import dataclass
from typing import Any

import structlog

from concierge.utils.exceptions import ForbiddenError

logger = structlog.get_logger()


@dataclass
class AuthContext:
    """Caller identity taken from the API Gateway authorizer."""

    user_id: str
    email: str | None = None
    workspace_ids: list[str] | None = None
    is_admin: bool = False

    def has_workspace_access(self, workspace_id: str) -> bool:
        """Check if the caller may act on a workspace."""
        if self.is_admin:
            return True
        return bool(self.workspace_ids) and workspace_id in self.workspace_ids


def get_auth_context(event: dict[str, Any]) -> AuthContext:
    """Extract authentication context from API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        AuthContext with user information.

    Raises:
        ValueError: If no user ID is present.
    """
    authorizer = event.get("requestContext", {}).get("authorizer", {}) or {}
    # Payload format 2.0 nests the context under "lambda"
    context = authorizer.get("lambda", authorizer)

    user_id = context.get("userId") or context.get("user_id") or context.get("sub")
    if not user_id:
        logger.warning("No user ID in auth context", authorizer=authorizer)
        raise ValueError("No user ID in authentication context")

    raw_ids = context.get("workspaceIds") or context.get("workspace_ids")
    if isinstance(raw_ids, str):
        workspace_ids = [ws.strip() for ws in raw_ids.split(",") if ws.strip()]
    else:
        workspace_ids = raw_ids or None

    is_admin = context.get("isAdmin", False)
    if isinstance(is_admin, str):
        is_admin = is_admin.lower() == "true"

    return AuthContext(
        user_id=user_id,
        email=context.get("email"),
        workspace_ids=workspace_ids,
        is_admin=is_admin,
    )


def require_workspace_access(auth: AuthContext, workspace_id: str) -> None:
    """Ensure user has access to a workspace.

    Raises:
        ForbiddenError: If user doesn't have access.
    """
    if not auth.has_workspace_access(workspace_id):
        logger.warning(
            "Workspace access denied",
            user_id=auth.user_id,
            workspace_id=workspace_id,
        )
        raise ForbiddenError(
            message=f"You don't have access to workspace '{workspace_id}'",
            resource_type="Workspace",
            action="access",
        )
