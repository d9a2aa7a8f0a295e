"""Pytest configuration and fixtures."""

import io
import json
import os
import pytest
from unittest.mock import MagicMock

# Set environment variables before imports
os.environ["TABLE_NAME"] = "concierge-test"
os.environ["STAGE"] = "test"
os.environ["SERVICE_NAME"] = "concierge"
os.environ["ASSETS_BUCKET"] = "concierge-test-assets"
os.environ["STARTING_CREDITS"] = "500"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

WORKSPACE_ID = "test-workspace-456"


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table and assets bucket."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="concierge-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="concierge-test-assets")

        yield table


@pytest.fixture
def sample_design_spec():
    """Create a sample design spec as produced by extraction."""
    from concierge.models.design_spec import DesignSpecification

    return DesignSpecification.from_wire({
        "colors": {
            "primary": "#2E4A3F",
            "secondary": "#8FA89B",
            "accent": "#E8B04B",
            "background": "#FFFFFF",
            "text": "#1A1A1A",
            "exactHexCodes": ["#2E4A3F", "#8FA89B", "#E8B04B"],
        },
        "typography": {
            "headingFont": "Playfair Display",
            "bodyFont": "Inter",
            "baseFontSize": "16px",
            "headingSizes": {"h1": "56px", "h2": "40px", "h3": "24px"},
        },
        "layout": {
            "maxWidth": "1200px",
            "sectionPadding": "96px",
            "gridColumns": 12,
            "gutterWidth": "24px",
        },
        "components": {
            "header": {"style": "fixed", "logoPlacement": "left"},
            "hero": {"height": "100vh", "alignment": "center"},
            "buttons": {"borderRadius": "8px", "style": "solid"},
            "cards": {"borderRadius": "12px", "shadow": "lg"},
        },
        "content": {
            "sections": [
                {"type": "hero", "order": 1},
                {"type": "services", "order": 2},
                {"type": "testimonials", "order": 3},
                {"type": "contact", "order": 4},
            ],
            "exactText": {"heroHeadline": "Fresh Flowers, Every Day"},
        },
        "source": "extracted",
    })


@pytest.fixture
def sample_lead(sample_design_spec):
    """Create a sample lead that has been through analyze and visualize."""
    from concierge.models.lead import BrandGuidelines, Lead

    return Lead(
        id="test-lead-123",
        workspace_id=WORKSPACE_ID,
        business_name="Bloom & Co",
        location="Brighton, UK",
        details="Independent florist with an outdated site",
        website_url="https://bloomandco.example",
        brand_guidelines=BrandGuidelines(
            colors=["#2E4A3F", "#8FA89B", "#E8B04B"],
            tone="Friendly",
            suggestions="Lean into seasonal photography.",
            design_spec=sample_design_spec,
        ),
    )


@pytest.fixture
def ledger():
    """Create a fresh workspace ledger with the starting credits."""
    from concierge.services.credits import new_ledger

    return new_ledger(WORKSPACE_ID)


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
        user_id: str = "test-user-123",
        workspace_ids: list = None,
    ):
        workspace_ids = workspace_ids or [WORKSPACE_ID]

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (json.dumps(body) if body else None),
            "headers": {
                "Authorization": "Bearer test-token",
                "Content-Type": "application/json",
            },
            "requestContext": {
                "authorizer": {
                    "userId": user_id,
                    "email": "test@example.com",
                    "workspaceIds": ",".join(workspace_ids),
                    "isAdmin": "false",
                },
            },
        }

    return _create_event


@pytest.fixture
def bedrock_response():
    """Build a Bedrock invoke_model response from Anthropic content blocks."""
    def _create_response(*blocks: dict) -> dict:
        payload = {"content": list(blocks), "stop_reason": "end_turn"}
        return {"body": io.BytesIO(json.dumps(payload).encode())}

    return _create_response


@pytest.fixture
def mock_bedrock(monkeypatch):
    """Replace the module-level Bedrock runtime client."""
    from concierge.services import ai_service

    client = MagicMock()
    monkeypatch.setattr(ai_service, "bedrock", client)
    return client


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
