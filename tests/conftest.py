"""
Shared pytest fixtures for SubRelay tests.
"""

import hashlib
import hmac
import json
import os
import sys
import time
from unittest.mock import MagicMock, patch

import boto3
import pytest
from moto import mock_aws

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))

WEBHOOK_SECRET = "whsec_test_secret"
STRIPE_API_KEY = "sk_test_123"
IDENTITY_SECRET = "identity-test-secret"


def pytest_configure(config):
    """Set AWS credentials before test collection.

    This runs before test collection starts, ensuring boto3 resource
    creation during imports doesn't fail with NoRegionError.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def reset_aws_clients():
    """Reset shared AWS client singletons between tests."""
    yield
    from subrelay.aws_clients import reset_clients
    reset_clients()


@pytest.fixture(autouse=True)
def reset_secret_caches():
    """Reset cached Stripe and identity secrets so tests don't leak them."""
    from subrelay.auth import reset_identity_secret_cache
    from subrelay.billing_utils import reset_stripe_secrets_cache

    reset_stripe_secrets_cache()
    reset_identity_secret_cache()
    yield
    reset_stripe_secrets_cache()
    reset_identity_secret_cache()


@pytest.fixture(autouse=True)
def mock_cloudwatch():
    """Keep metric emission off the network."""
    client = MagicMock()
    with patch("subrelay.metrics.get_cloudwatch", return_value=client):
        yield client


def create_dynamodb_tables(dynamodb):
    """Create the users and rate-limit tables with their GSIs.

    Args:
        dynamodb: boto3 DynamoDB resource
    """
    dynamodb.create_table(
        TableName="subrelay-users",
        KeySchema=[
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
            {"AttributeName": "billing_customer_id", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "billing-customer-index",
                "KeySchema": [{"AttributeName": "billing_customer_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    dynamodb.create_table(
        TableName="subrelay-rate-limits",
        KeySchema=[
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def mock_dynamodb():
    """Provide mocked DynamoDB with tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_dynamodb_tables(dynamodb)
        yield dynamodb


@pytest.fixture
def users_table(mock_dynamodb):
    return mock_dynamodb.Table("subrelay-users")


@pytest.fixture
def user_store(users_table):
    from subrelay.users import UserStore

    return UserStore(users_table)


@pytest.fixture
def seeded_users_table(users_table):
    """Users table with a linked user (u1 -> c1) and an unlinked user (u2)."""
    users_table.put_item(
        Item={
            "pk": "u1",
            "sk": "USER_META",
            "email": "u1@example.com",
            "billing_customer_id": "c1",
            "plan": "free",
        }
    )
    users_table.put_item(
        Item={
            "pk": "u2",
            "sk": "USER_META",
            "email": "u2@example.com",
            "plan": "free",
        }
    )
    return users_table


@pytest.fixture
def stripe_secrets(mock_dynamodb):
    """Store Stripe secrets in mocked Secrets Manager and point env vars at them."""
    sm = boto3.client("secretsmanager", region_name="us-east-1")
    api_key_arn = sm.create_secret(
        Name="subrelay/stripe-api-key", SecretString=json.dumps({"key": STRIPE_API_KEY})
    )["ARN"]
    webhook_arn = sm.create_secret(
        Name="subrelay/stripe-webhook-secret", SecretString=json.dumps({"secret": WEBHOOK_SECRET})
    )["ARN"]

    os.environ["STRIPE_SECRET_ARN"] = api_key_arn
    os.environ["STRIPE_WEBHOOK_SECRET_ARN"] = webhook_arn
    yield {"api_key": STRIPE_API_KEY, "webhook_secret": WEBHOOK_SECRET}
    os.environ.pop("STRIPE_SECRET_ARN", None)
    os.environ.pop("STRIPE_WEBHOOK_SECRET_ARN", None)


@pytest.fixture
def identity_secret(mock_dynamodb):
    """Store the bearer-token signing secret in mocked Secrets Manager."""
    sm = boto3.client("secretsmanager", region_name="us-east-1")
    arn = sm.create_secret(Name="subrelay/identity", SecretString=IDENTITY_SECRET)["ARN"]
    os.environ["IDENTITY_SECRET_ARN"] = arn
    yield IDENTITY_SECRET
    os.environ.pop("IDENTITY_SECRET_ARN", None)


def bearer_token(uid: str, email: str = None, ttl: int = 3600, secret: str = IDENTITY_SECRET) -> str:
    from subrelay.auth import create_identity_token

    data = {"uid": uid, "exp": int(time.time()) + ttl}
    if email:
        data["email"] = email
    return create_identity_token(data, secret)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def subscription_object(
    customer: str = "c1",
    subscription_id: str = "s1",
    status: str = "active",
    price_id: str = "p1",
    current_period_end: int = 1767225600,
    cancel_at_period_end: bool = False,
    trial_end: int = None,
) -> dict:
    """Minimal Stripe subscription object."""
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "current_period_end": current_period_end,
        "cancel_at_period_end": cancel_at_period_end,
        "trial_end": trial_end,
        "items": {
            "object": "list",
            "data": [{"id": "si_1", "price": {"id": price_id}, "current_period_end": current_period_end}],
        },
    }


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1760000000,
        "livemode": False,
        "data": {"object": obj},
    }


@pytest.fixture
def api_gateway_event():
    """Base API Gateway event for Lambda handler tests."""
    return {
        "httpMethod": "POST",
        "headers": {},
        "pathParameters": {},
        "queryStringParameters": {},
        "body": None,
        "isBase64Encoded": False,
        "requestContext": {
            "requestId": "req-test",
            "identity": {"sourceIp": "127.0.0.1"},
        },
    }


@pytest.fixture
def webhook_request(api_gateway_event):
    """Build a signed webhook request for an event dict."""

    def _build(event: dict, secret: str = WEBHOOK_SECRET) -> dict:
        payload = json.dumps(event)
        api_gateway_event["body"] = payload
        api_gateway_event["headers"] = {"Stripe-Signature": sign_payload(payload, secret)}
        return api_gateway_event

    return _build


class FakeBilling:
    """In-memory stand-in for StripeBilling."""

    def __init__(self):
        self.customers = []
        self.checkout_calls = []
        self.portal_calls = []

    def create_customer(self, user_id, email=None):
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "user_id": user_id, "email": email})
        return customer_id

    def create_checkout_session(self, **params):
        self.checkout_calls.append(params)
        return MagicMock(id=f"cs_test_{len(self.checkout_calls)}")

    def create_portal_session(self, customer_id, return_url):
        self.portal_calls.append({"customer_id": customer_id, "return_url": return_url})
        return MagicMock(url=f"https://billing.stripe.com/session/{customer_id}")


@pytest.fixture
def fake_billing():
    return FakeBilling()
