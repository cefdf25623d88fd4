"""Pytest configuration and fixtures."""

import json
import os

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "pagecraft-test"
os.environ["STAGE"] = "test"
os.environ["SERVICE_NAME"] = "pagecraft"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["RENDER_TIMEOUT_SECONDS"] = "5"

TENANT_ID = "test-tenant-456"
OTHER_TENANT_ID = "other-tenant-789"


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
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="pagecraft-test",
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

        yield table


@pytest.fixture(autouse=True)
def reset_render_engine():
    """Drop the process-wide render engine so each test gets fresh repositories."""
    from pagecraft.services import render_engine

    render_engine._engine = None
    yield
    render_engine._engine = None


@pytest.fixture
def snippet_resolver(dynamodb_table):
    """Snippet resolver backed by the mocked table."""
    from pagecraft.services.snippet_resolver import SnippetResolver

    return SnippetResolver()


@pytest.fixture
def template_store(dynamodb_table, snippet_resolver):
    """Template store backed by the mocked table."""
    from pagecraft.services.template_store import TemplateStore

    return TemplateStore(snippet_resolver=snippet_resolver)


@pytest.fixture
def hero_candidate():
    """A valid hero section submission with a block type and a snippet."""
    return {
        "type": "hero",
        "name": "Hero",
        "schema": {
            "settings": [
                {"type": "text", "id": "heading", "label": "Heading", "default": "Welcome"},
                {"type": "textarea", "id": "subheading", "label": "Subheading"},
                {"type": "range", "id": "padding_top", "label": "Top padding",
                 "min": 0, "max": 100, "step": 4, "default": 40},
                {"type": "checkbox", "id": "show_button", "label": "Show button", "default": True},
                {"type": "select", "id": "alignment", "label": "Alignment", "default": "center",
                 "options": [
                     {"value": "left", "label": "Left"},
                     {"value": "center", "label": "Center"},
                 ]},
            ],
            "blocks": [
                {
                    "type": "button",
                    "name": "Button",
                    "settings": [
                        {"type": "text", "id": "label", "label": "Label", "default": "Shop now"},
                        {"type": "url", "id": "link", "label": "Link"},
                    ],
                    "markup": '<a class="btn" href="{{ block.settings.link }}">{{ block.settings.label }}</a>',
                },
            ],
            "max_blocks": 3,
            "presets": [
                {
                    "name": "Default hero",
                    "settings": {"heading": "Big news"},
                    "blocks": [{"type": "button", "settings": {"label": "Go"}}],
                },
            ],
        },
        "markup": (
            '<h1 class="hero__heading">{{ section.settings.heading }}</h1>'
            "{% render 'hero-badge', text: section.settings.subheading %}"
            "{% for block in section.blocks %}{{ block.html }}{% endfor %}"
        ),
        "stylesheet": ".hero__heading { color: red; }",
        "snippets": {"hero-badge": '<span class="badge">{{ text }}</span>'},
    }


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
        tenant_ids: list = None,
    ):
        tenant_ids = tenant_ids or [TENANT_ID]

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (
                json.dumps(body) if body else None
            ),
            "headers": {
                "Authorization": "Bearer test-token",
                "Content-Type": "application/json",
            },
            "requestContext": {
                "authorizer": {
                    "userId": user_id,
                    "email": "test@example.com",
                    "tenantIds": ",".join(tenant_ids),
                    "isAdmin": "false",
                },
            },
        }

    return _create_event


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
