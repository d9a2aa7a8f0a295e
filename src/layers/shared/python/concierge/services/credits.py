"""Per-operation credit costs and ledger debits."""

import os
from collections.abc import Callable
from typing import TypeVar

import structlog

from concierge.models.usage import UsageLedger
from concierge.utils.exceptions import InsufficientCreditsError

logger = structlog.get_logger()

T = TypeVar("T")

STARTING_CREDITS = int(os.environ.get("STARTING_CREDITS", "500"))

CREDIT_COSTS = {
    "lead_discovery": 10,
    "brand_analysis": 5,
    "visual_pitch": 75,
    "campaign_strategy": 5,
    "site_build": 125,
    "site_edit": 10,
    "email_pitch": 3,
    "social_image": 75,
}


def cost_of(operation: str) -> int:
    """Credit cost of an operation.

    Raises:
        ValueError: If the operation has no cost configured.
    """
    try:
        return CREDIT_COSTS[operation]
    except KeyError:
        raise ValueError(f"Unknown billable operation '{operation}'") from None


def new_ledger(workspace_id: str) -> UsageLedger:
    """Ledger for a workspace that has never been charged."""
    return UsageLedger(workspace_id=workspace_id).grant(STARTING_CREDITS, "starting_credits")


def debit(ledger: UsageLedger, operation: str) -> UsageLedger:
    """Return ``ledger`` with the operation's cost taken off.

    Raises:
        InsufficientCreditsError: If the balance doesn't cover the cost.
    """
    cost = cost_of(operation)
    if ledger.balance < cost:
        raise InsufficientCreditsError(operation, cost, ledger.balance)
    return ledger.debit(operation, cost)


def charge(ledger: UsageLedger, operation: str, call: Callable[[], T]) -> tuple[T, UsageLedger]:
    """Debit the ledger, then run ``call``.

    The debit stands whether or not the call succeeds. On failure the
    original exception propagates with the debited ledger attached as
    ``exc.ledger``.

    Returns:
        Tuple of (call result, debited ledger).
    """
    debited = debit(ledger, operation)
    logger.info(
        "Credits debited",
        workspace_id=ledger.workspace_id,
        operation=operation,
        balance=debited.balance,
    )
    try:
        result = call()
    except Exception as e:
        e.ledger = debited
        raise
    return result, debited
