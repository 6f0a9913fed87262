"""Shared test fixtures for Tripbook."""

import json
import os
import sys
import uuid
from datetime import timedelta
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file for test configuration
load_dotenv()

# Unset AWS_PROFILE for local testing (DynamoDB Local doesn't need it)
if "AWS_PROFILE" in os.environ:
    del os.environ["AWS_PROFILE"]

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture
def config():
    """Memory-backed configuration with cheap bcrypt rounds."""
    from core.config import Config

    return Config(
        aws_region="us-east-1",
        store_backend="memory",
        users_table="TripbookUsers",
        trips_table="TripbookTrips",
        payments_table="TripbookPayments",
        rate_limit_table="TripbookRateLimits",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        environment="test",
    )


@pytest.fixture
def services(config):
    from core.db.memory import InMemoryDocumentStore
    from core.services.container import build_services
    from core.services.rate_limit import InMemoryRateLimitStore

    return build_services(config, store=InMemoryDocumentStore(), rate_limit_store=InMemoryRateLimitStore())


@pytest.fixture
def make_event():
    """Build an API Gateway REST proxy event."""

    def _make(method, resource, body=None, token=None, path_params=None, query=None, source_ip="203.0.113.7"):
        headers = {"Content-Type": "application/json"}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        return {
            "httpMethod": method,
            "resource": resource,
            "path": resource,
            "headers": headers,
            "pathParameters": path_params,
            "queryStringParameters": query,
            "body": json.dumps(body) if body is not None else None,
            "requestContext": {"identity": {"sourceIp": source_ip, "userAgent": "pytest"}},
        }

    return _make


@pytest.fixture
def call(services, make_event):
    """Dispatch an event through a handler's router; returns (status, body)."""

    def _call(router, method, resource, **kwargs):
        response = router.dispatch(make_event(method, resource, **kwargs), services)
        return response["statusCode"], json.loads(response["body"])

    return _call


@pytest.fixture
def user_payload():
    """Registration payloads with unique email and phone."""

    def _payload(**overrides):
        suffix = uuid.uuid4().int % 10**9
        payload = {
            "firstName": "Asha",
            "lastName": "Verma",
            "email": f"asha{suffix}@tripbook.io",
            "phone": f"+1555{suffix:09d}",
            "password": "Secret123",
            "dateOfBirth": "1990-04-12",
            "gender": "female",
            "nationality": "Indian",
            "address": {"city": "Pune", "state": "MH", "country": "India", "zipCode": "411001"},
            "emergencyContact": {"name": "Ravi Verma", "phone": "+15550001111", "relationship": "brother"},
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def register(services, user_payload):
    """Register a user directly through the service; returns (user, token)."""
    from core.models.user import RegisterRequest
    from core.services import users

    def _register(**overrides):
        return users.register(services, RegisterRequest.model_validate(user_payload(**overrides)))

    return _register


@pytest.fixture
def trip_payload():
    from core.models.base import utcnow

    def _payload(**overrides):
        start = utcnow().replace(microsecond=0) + timedelta(days=30)
        payload = {
            "title": "Kyoto in spring",
            "destination": {"country": "Japan", "city": "Kyoto"},
            "startDate": start.isoformat(),
            "endDate": (start + timedelta(days=5)).isoformat(),
            "tripType": "leisure",
            "budget": {"totalBudget": 3000, "currency": "USD"},
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def payment_payload():
    def _payload(trip_id, **overrides):
        payload = {
            "trip": trip_id,
            "description": "Hotel deposit",
            "category": "accommodation",
            "amount": 180,
            "currency": "USD",
            "paymentMethod": {"type": "credit_card"},
            "vendor": {"name": "Hotel Granvia"},
            "taxes": [{"type": "city_tax", "amount": 20}],
        }
        payload.update(overrides)
        return payload

    return _payload


# DynamoDB fixtures
@pytest.fixture
def dynamo_client():
    """Provide a DynamoDB client for integration tests."""
    import boto3
    from core.config import _reset_config, get_config

    _reset_config()
    config = get_config()
    if not config.dynamodb_endpoint:
        pytest.skip("DYNAMODB_ENDPOINT not set")

    return boto3.client(
        "dynamodb",
        endpoint_url=config.dynamodb_endpoint,
        region_name=config.aws_region,
        aws_access_key_id="dummy",
        aws_secret_access_key="dummy",
    )


@pytest.fixture
def dynamo_store(dynamo_client):
    """Provide a DynamoDocumentStore over the local tables, emptied after the test."""
    from core.config import get_config
    from core.db.dynamo import DynamoDocumentStore

    config = get_config()
    tables = {"users": config.users_table, "trips": config.trips_table, "payments": config.payments_table}
    yield DynamoDocumentStore(dynamo_client, tables)

    # Cleanup: scan and delete all items created during test, guard items included
    for table in tables.values():
        response = dynamo_client.scan(TableName=table, ProjectionExpression="id")
        for item in response.get("Items", []):
            dynamo_client.delete_item(TableName=table, Key={"id": item["id"]})
