"""Usage ledger repository."""

import structlog

from concierge.models.usage import UsageLedger
from concierge.repositories.base import BaseRepository
from concierge.services.credits import new_ledger

logger = structlog.get_logger()


class LedgerRepository(BaseRepository[UsageLedger]):
    """One ledger item per workspace.

    Writes are last-writer-wins: a debit is saved whether or not the call it
    paid for succeeded.
    """

    def __init__(self, table_name: str | None = None):
        super().__init__(UsageLedger, table_name)

    def get_for_workspace(self, workspace_id: str) -> UsageLedger:
        """Get the workspace ledger, or a fresh one with the starting credits."""
        ledger = self.get(pk=f"WS#{workspace_id}", sk="LEDGER")
        if ledger is None:
            logger.info("Opening usage ledger", workspace_id=workspace_id)
            return new_ledger(workspace_id)
        return ledger

    def save(self, ledger: UsageLedger) -> UsageLedger:
        return self.put(ledger)
