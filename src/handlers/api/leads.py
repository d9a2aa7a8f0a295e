"""Leads API handler (sites manager and inbox views)."""

import base64
import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from concierge.models.lead import CreateLeadRequest, Lead, UpdateLeadRequest
from concierge.repositories.lead import LeadRepository
from concierge.utils.auth import get_auth_context, require_workspace_access
from concierge.utils.exceptions import ConciergeError, ForbiddenError, NotFoundError, ValidationError
from concierge.utils.responses import created, error, not_found, success, validation_error

logger = structlog.get_logger()

# Heavy fields left out of list responses
LIST_EXCLUDE = {"website_code", "history"}


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle leads API requests.

    Routes:
        GET    /workspaces/{workspace_id}/leads
        POST   /workspaces/{workspace_id}/leads
        GET    /workspaces/{workspace_id}/leads/{lead_id}
        PUT    /workspaces/{workspace_id}/leads/{lead_id}
        DELETE /workspaces/{workspace_id}/leads/{lead_id}
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path_params = event.get("pathParameters", {}) or {}
        workspace_id = path_params.get("workspace_id")
        lead_id = path_params.get("lead_id")

        auth = get_auth_context(event)
        if workspace_id:
            require_workspace_access(auth, workspace_id)

        repo = LeadRepository()

        if http_method == "GET" and lead_id:
            return get_lead(repo, workspace_id, lead_id)
        elif http_method == "GET":
            return list_leads(repo, workspace_id, event)
        elif http_method == "POST":
            return create_lead(repo, workspace_id, event)
        elif http_method == "PUT" and lead_id:
            return update_lead(repo, workspace_id, lead_id, event)
        elif http_method == "DELETE" and lead_id:
            return delete_lead(repo, workspace_id, lead_id)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors)
    except ForbiddenError as e:
        return error(e.message, 403, error_code="FORBIDDEN")
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except ConciergeError as e:
        return error(e.message, e.status_code, error_code=e.error_code, details=e.details)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Leads handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_body(event: dict, model: type) -> Any:
    """Validate the JSON body against a request model.

    Raises:
        ValidationError: If the body is not valid JSON or fails validation.
    """
    try:
        body = json.loads(event.get("body") or "{}")
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError([
            {"field": ".".join(str(x) for x in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ])
    except json.JSONDecodeError:
        raise ValidationError([{"field": "body", "message": "Invalid JSON body"}])


def list_leads(repo: LeadRepository, workspace_id: str, event: dict) -> dict:
    """List leads in a workspace."""
    query_params = event.get("queryStringParameters", {}) or {}
    limit = min(int(query_params.get("limit", 50)), 100)
    cursor = query_params.get("cursor")

    last_key = None
    if cursor:
        last_key = json.loads(base64.b64decode(cursor).decode())

    leads, next_key = repo.list_by_workspace(workspace_id, limit, last_key)

    status = query_params.get("status")
    if status:
        leads = [lead for lead in leads if lead.status == status]

    next_cursor = None
    if next_key:
        next_cursor = base64.b64encode(json.dumps(next_key).encode()).decode()

    return success({
        "items": [lead.model_dump(mode="json", by_alias=True, exclude=LIST_EXCLUDE) for lead in leads],
        "pagination": {
            "limit": limit,
            "next_cursor": next_cursor,
        },
    })


def get_lead(repo: LeadRepository, workspace_id: str, lead_id: str) -> dict:
    """Get a single lead by ID."""
    lead = repo.get_by_id(workspace_id, lead_id)
    if not lead:
        return not_found("Lead", lead_id)

    return success(lead)


def create_lead(repo: LeadRepository, workspace_id: str, event: dict) -> dict:
    """Save a lead picked in the wizard."""
    request = _parse_body(event, CreateLeadRequest)

    lead = Lead(workspace_id=workspace_id, **request.model_dump())
    lead = repo.create_lead(lead)

    logger.info("Lead created", lead_id=lead.id, workspace_id=workspace_id)

    return created(lead)


def update_lead(repo: LeadRepository, workspace_id: str, lead_id: str, event: dict) -> dict:
    """Update a lead's details, status, code or email draft."""
    lead = repo.get_by_id(workspace_id, lead_id)
    if not lead:
        return not_found("Lead", lead_id)

    request = _parse_body(event, UpdateLeadRequest)

    for field in request.model_fields_set:
        value = getattr(request, field)
        if value is not None:
            setattr(lead, field, value)

    lead = repo.update_lead(lead)

    logger.info("Lead updated", lead_id=lead_id, workspace_id=workspace_id)

    return success(lead)


def delete_lead(repo: LeadRepository, workspace_id: str, lead_id: str) -> dict:
    """Delete a lead."""
    deleted = repo.delete_lead(workspace_id, lead_id)
    if not deleted:
        return not_found("Lead", lead_id)

    logger.info("Lead deleted", lead_id=lead_id, workspace_id=workspace_id)

    return success({"deleted": True, "id": lead_id})
