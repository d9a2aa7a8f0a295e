"""Lead repository for DynamoDB operations."""

import structlog

from concierge.models.lead import Lead
from concierge.repositories.base import BaseRepository

logger = structlog.get_logger()


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead entities."""

    def __init__(self, table_name: str | None = None):
        super().__init__(Lead, table_name)

    def get_by_id(self, workspace_id: str, lead_id: str) -> Lead | None:
        return self.get(pk=f"WS#{workspace_id}", sk=f"LEAD#{lead_id}")

    def get_or_raise_by_id(self, workspace_id: str, lead_id: str) -> Lead:
        """Get a lead or raise NotFoundError."""
        return self.get_or_raise(f"WS#{workspace_id}", f"LEAD#{lead_id}", "Lead")

    def list_by_workspace(
        self,
        workspace_id: str,
        limit: int = 50,
        last_key: dict | None = None,
    ) -> tuple[list[Lead], dict | None]:
        """List leads in a workspace, newest first."""
        return self.query(
            pk=f"WS#{workspace_id}",
            sk_prefix="LEAD#",
            limit=limit,
            scan_forward=False,
            last_key=last_key,
        )

    def create_lead(self, lead: Lead) -> Lead:
        return self.create(lead)

    def update_lead(self, lead: Lead) -> Lead:
        return self.update(lead)

    def delete_lead(self, workspace_id: str, lead_id: str) -> bool:
        return self.delete(pk=f"WS#{workspace_id}", sk=f"LEAD#{lead_id}")
