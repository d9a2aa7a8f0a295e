"""Repository classes for DynamoDB data access."""

from concierge.repositories.base import BaseRepository
from concierge.repositories.lead import LeadRepository
from concierge.repositories.ledger import LedgerRepository

__all__ = [
    "BaseRepository",
    "LeadRepository",
    "LedgerRepository",
]
