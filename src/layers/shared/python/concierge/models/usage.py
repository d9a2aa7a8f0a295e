"""Usage accounting and capability values passed explicitly through operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, Field

from concierge.models.base import BaseModel, utc_now

# Entries kept on the ledger item; older ones are dropped
MAX_LEDGER_ENTRIES = 100


@dataclass(frozen=True)
class CapabilityContext:
    """Whether a paid capability is currently selected by the host."""

    has_capability: bool = False


class LedgerEntry(PydanticBaseModel):
    operation: str
    credits: int
    balance_after: int
    created_at: datetime = Field(default_factory=utc_now)


class UsageLedger(BaseModel):
    """Credit balance for a workspace.

    Treated as a value: ``debit`` returns a new ledger and never mutates.

    Key Pattern:
        PK: WS#{workspace_id}
        SK: LEDGER
    """

    _pk_prefix: ClassVar[str] = "WS#"
    _sk_prefix: ClassVar[str] = "LEDGER"

    workspace_id: str
    balance: int = 0
    entries: list[LedgerEntry] = Field(default_factory=list)

    def get_pk(self) -> str:
        return f"WS#{self.workspace_id}"

    def get_sk(self) -> str:
        return "LEDGER"

    def debit(self, operation: str, credits: int) -> "UsageLedger":
        """Return a copy with ``credits`` taken off the balance."""
        balance = self.balance - credits
        entry = LedgerEntry(operation=operation, credits=-credits, balance_after=balance)
        entries = [*self.entries, entry][-MAX_LEDGER_ENTRIES:]
        return self.model_copy(update={"balance": balance, "entries": entries})

    def grant(self, credits: int, reason: str = "grant") -> "UsageLedger":
        """Return a copy with ``credits`` added to the balance."""
        balance = self.balance + credits
        entry = LedgerEntry(operation=reason, credits=credits, balance_after=balance)
        entries = [*self.entries, entry][-MAX_LEDGER_ENTRIES:]
        return self.model_copy(update={"balance": balance, "entries": entries})

    def spent_on(self, operation: str) -> int:
        """Total credits debited for an operation across recorded entries."""
        return -sum(e.credits for e in self.entries if e.operation == operation and e.credits < 0)
