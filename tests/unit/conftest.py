"""
Test fixtures for Lambda function tests.

Provides mocked AWS resources (moto) plus seeded users, members and role
records for the resolvers.
"""

from typing import Any, Callable, Dict, Generator, Iterator
from unittest.mock import MagicMock, patch

import boto3
import pytest
from moto import mock_aws

from src.handlers import report_generation
from src.utils import email as email_utils
from src.utils import stripe_payments
from src.utils import uploads as upload_utils
from src.utils.dynamodb import clear_all_overrides
from tests.unit.fixtures import (
    MockLambdaContext,
    make_appsync_event,
    make_chapter,
    make_member,
    make_seller,
    make_steward,
    make_user,
)
from tests.unit.table_schemas import TABLE_NAMES, create_all_tables

UPLOADS_BUCKET = "brotherhood-uploads-test"
EXPORTS_BUCKET = "brotherhood-exports-test"
FROM_EMAIL = "noreply@example.com"


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set fake AWS credentials and every table / bucket name the resolvers read."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    for accessor, table_name in TABLE_NAMES.items():
        monkeypatch.setenv(f"{accessor.upper()}_TABLE_NAME", table_name)
    monkeypatch.setenv("UPLOADS_BUCKET", UPLOADS_BUCKET)
    monkeypatch.setenv("EXPORTS_BUCKET", EXPORTS_BUCKET)
    monkeypatch.setenv("FROM_EMAIL", FROM_EMAIL)
    monkeypatch.setenv("FRONTEND_URL", "https://app.example.com")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.delenv("ASSETS_BASE_URL", raising=False)
    for endpoint in ("DYNAMODB_ENDPOINT", "S3_ENDPOINT", "SES_ENDPOINT", "COGNITO_ENDPOINT"):
        monkeypatch.delenv(endpoint, raising=False)


@pytest.fixture
def aws(aws_credentials: None) -> Generator[None, None, None]:
    """Single moto context shared by the DynamoDB, S3, SES and Cognito fixtures."""
    with mock_aws():
        yield


@pytest.fixture
def dynamodb_tables(aws: None) -> Generator[Dict[str, Any], None, None]:
    """Create all mock DynamoDB tables; yields accessor name -> table."""
    clear_all_overrides()
    dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
    yield create_all_tables(dynamodb)
    clear_all_overrides()


@pytest.fixture
def s3_buckets(aws: None) -> Generator[Any, None, None]:
    """Create mock upload and export buckets."""
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket=UPLOADS_BUCKET)
    s3.create_bucket(Bucket=EXPORTS_BUCKET)
    yield s3


@pytest.fixture
def ses(aws: None) -> Generator[Any, None, None]:
    """SES with the sender identity verified so send_email succeeds."""
    client = boto3.client("ses", region_name="us-east-1")
    client.verify_email_identity(EmailAddress=FROM_EMAIL)
    yield client


@pytest.fixture(autouse=True)
def reset_module_clients() -> Generator[None, None, None]:
    yield
    email_utils.ses_client = None
    upload_utils.s3_client = None
    report_generation.s3_client = None


@pytest.fixture
def mock_ses(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the SES client so tests can inspect outgoing emails."""
    client = MagicMock()
    monkeypatch.setattr(email_utils, "ses_client", client)
    return client


@pytest.fixture
def mock_stripe(aws_credentials: None, monkeypatch: pytest.MonkeyPatch) -> Iterator[MagicMock]:
    """Configure a Stripe key and replace the SDK module used by stripe_payments."""
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    with patch.object(stripe_payments, "stripe") as fake:
        yield fake


@pytest.fixture
def lambda_context() -> MockLambdaContext:
    return MockLambdaContext()


@pytest.fixture
def put(dynamodb_tables: Dict[str, Any]) -> Callable[[str, Dict[str, Any]], Dict[str, Any]]:
    """put("members", item) writes an item and returns it."""

    def _put(table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        dynamodb_tables[table].put_item(Item=item)
        return item

    return _put


@pytest.fixture
def chapter(put: Callable[..., Dict[str, Any]]) -> Dict[str, Any]:
    return put("chapters", make_chapter(stripeAccountId="acct_chapter"))


@pytest.fixture
def verified_member(put: Callable[..., Dict[str, Any]], chapter: Dict[str, Any]) -> Dict[str, Any]:
    return put("members", make_member(email="brother@example.com", cognitoSub="member-sub"))


@pytest.fixture
def member_user(put: Callable[..., Dict[str, Any]], verified_member: Dict[str, Any]) -> Dict[str, Any]:
    """GUEST user whose email matches the verified member."""
    return put(
        "users",
        make_user("member-sub", "brother@example.com", memberId=verified_member["memberId"]),
    )


@pytest.fixture
def guest_user(put: Callable[..., Dict[str, Any]]) -> Dict[str, Any]:
    return put("users", make_user("guest-sub", "guest@example.com", onboardingStatus="COGNITO_CONFIRMED"))


@pytest.fixture
def admin_user(put: Callable[..., Dict[str, Any]]) -> Dict[str, Any]:
    return put("users", make_user("admin-sub", "admin@example.com", role="ADMIN"))


@pytest.fixture
def seller_user(put: Callable[..., Dict[str, Any]], chapter: Dict[str, Any]) -> Dict[str, Any]:
    """APPROVED seller with a Stripe account, plus its SELLER user."""
    seller = put("sellers", make_seller("SELLER#one", email="seller@example.com", stripeAccountId="acct_seller"))
    put("users", make_user("seller-sub", "seller@example.com", role="SELLER", sellerId=seller["sellerId"]))
    return seller


@pytest.fixture
def steward_user(
    put: Callable[..., Dict[str, Any]], verified_member: Dict[str, Any], member_user: Dict[str, Any]
) -> Dict[str, Any]:
    """APPROVED steward for the verified member; the member's user becomes a STEWARD."""
    steward = put(
        "stewards",
        make_steward(verified_member["memberId"], "STEWARD#one", stripeAccountId="acct_steward"),
    )
    put("users", {**member_user, "role": "STEWARD", "stewardId": steward["stewardId"]})
    return steward


@pytest.fixture
def event_for() -> Callable[..., Dict[str, Any]]:
    """event_for("member-sub", arguments={...}) builds an AppSync event."""
    return make_appsync_event
