"""API Gateway response builders."""

import json
import os
from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

_ALLOWED_ORIGIN = os.environ.get("CORS_ALLOWED_ORIGIN", "https://app.concierge.dev")
_STAGE = os.environ.get("STAGE", "dev")


def get_cors_headers(request_origin: str | None = None) -> dict:
    """Get CORS headers, echoing localhost origins in dev."""
    origin = _ALLOWED_ORIGIN
    if _STAGE == "dev" and request_origin and request_origin.startswith("http://localhost:"):
        origin = request_origin

    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Api-Key",
        "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _json_serializer(obj: Any) -> Any:
    """Serialize datetimes and pydantic models for json.dumps."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _serialize(data: Any) -> str:
    return json.dumps(data, default=_json_serializer)


def success(data: Any, status_code: int = 200) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).

    Returns:
        API Gateway response dict.
    """
    if isinstance(data, PydanticBaseModel):
        data = data.model_dump(mode="json", by_alias=True)

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(data),
    }


def created(data: Any) -> dict:
    """Create a 201 Created response."""
    return success(data, status_code=201)


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {
        "error": True,
        "message": message,
    }

    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(body),
    }


def validation_error(errors: list[dict]) -> dict:
    """Create a 400 response listing field errors."""
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def not_found(resource_type: str, resource_id: str) -> dict:
    """Create a 404 Not Found response."""
    return error(
        message=f"{resource_type} with ID '{resource_id}' not found",
        status_code=404,
        error_code="NOT_FOUND",
        details={"resource_type": resource_type, "resource_id": resource_id},
    )


def capability_required(feature: str) -> dict:
    """Create a 402 response asking the client to run its capability selection flow.

    The client is expected to prompt for a paid capability and retry the
    same request once with ``skip_check`` set.
    """
    return error(
        message=f"'{feature}' requires a paid capability to be selected",
        status_code=402,
        error_code="CAPABILITY_REQUIRED",
        details={"feature": feature},
    )
