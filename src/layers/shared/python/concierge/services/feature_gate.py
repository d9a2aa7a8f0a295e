"""Gating for capabilities the operator has to select before use.

Paid image generation only runs once the host has selected a paid
capability (in the browser app, picking a billing-enabled key). The check is
explicit: callers pass a ``CapabilityContext`` and may pass ``skip_check``
right after the host has completed selection.
"""

from collections.abc import Callable
from typing import TypeVar

import structlog

from concierge.models.usage import CapabilityContext

logger = structlog.get_logger()

T = TypeVar("T")

PAID_IMAGE_GENERATION = "paid_image_generation"


class CapabilityRequiredError(Exception):
    """Raised when a gated operation runs without its capability selected.

    Deliberately not a ``ConciergeError``: callers must handle it by asking
    the host to select the capability, not as an ordinary failure.
    """

    error_code = "CAPABILITY_REQUIRED"

    def __init__(self, feature: str) -> None:
        """Initialize capability error.

        Args:
            feature: Capability that has to be selected.
        """
        self.feature = feature
        super().__init__(f"Feature '{feature}' requires a selected capability")


def require_capability(
    context: CapabilityContext | None,
    feature: str,
    skip_check: bool = False,
) -> None:
    """Require ``feature`` to be selected.

    Args:
        context: Current capability context (None means nothing selected).
        feature: Capability name.
        skip_check: Set right after the host completed selection, when the
            context may not reflect it yet.

    Raises:
        CapabilityRequiredError: If the capability is missing.
    """
    if skip_check:
        return
    if context is None or not context.has_capability:
        raise CapabilityRequiredError(feature)


def run_with_capability_selection(
    operation: Callable[..., T],
    select_capability: Callable[[str], object],
) -> T:
    """Run a gated operation, asking the host to select the capability if needed.

    On ``CapabilityRequiredError`` the host's selection action runs and the
    operation is retried exactly once with ``skip_check=True``. Any error from
    the retry propagates.

    Args:
        operation: Callable accepting a ``skip_check`` keyword.
        select_capability: Host action; receives the missing feature name.

    Returns:
        The operation's result.
    """
    try:
        return operation(skip_check=False)
    except CapabilityRequiredError as e:
        logger.info("Capability required, requesting selection", feature=e.feature)
        select_capability(e.feature)
    return operation(skip_check=True)
