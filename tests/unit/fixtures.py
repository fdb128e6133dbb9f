"""
Test data builders for Lambda function tests.

Provides factory functions for creating test data with sensible defaults
and customization options. Use these to create test entities without
repeating boilerplate across test files.
"""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4


def _id(prefix: str, suffix: Optional[str] = None) -> str:
    return f"{prefix}#{suffix or uuid4().hex[:12]}"


def now_iso() -> str:
    """Get current UTC time as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def make_user(
    cognito_sub: Optional[str] = None,
    email: Optional[str] = None,
    role: str = "GUEST",
    **kwargs: Any,
) -> Dict[str, Any]:
    """Create a test user dictionary.

    Args:
        cognito_sub: Cognito sub (auto-generated if not provided)
        email: Email address (auto-generated if not provided)
        role: Primary role
        **kwargs: Additional fields (memberId, sellerId, ...)

    Returns:
        User dictionary suitable for DynamoDB
    """
    cognito_sub = cognito_sub or uuid4().hex[:12]
    user = {
        "userId": f"USER#{cognito_sub}",
        "cognitoSub": cognito_sub,
        "email": email or f"user-{uuid4().hex[:8]}@example.com",
        "role": role,
        "onboardingStatus": "ONBOARDING_FINISHED",
        "features": {},
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    user.update(kwargs)
    return user


def make_chapter(chapter_id: str = "CHAPTER#alpha", name: str = "Alpha Chapter", **kwargs: Any) -> Dict[str, Any]:
    chapter = {
        "chapterId": chapter_id,
        "name": name,
        "type": "Collegiate",
        "status": "Active",
        "province": "Northern",
        "city": "Bloomington",
        "state": "IN",
    }
    chapter.update(kwargs)
    return chapter


def make_member(
    member_id: Optional[str] = None,
    email: Optional[str] = None,
    verification_status: str = "VERIFIED",
    **kwargs: Any,
) -> Dict[str, Any]:
    """Create a fraternity member dictionary (initiated at CHAPTER#alpha by default)."""
    member = {
        "memberId": member_id or _id("MEMBER"),
        "email": email or f"member-{uuid4().hex[:8]}@example.com",
        "name": "Test Brother",
        "membershipNumber": "12345",
        "initiatedChapterId": "CHAPTER#alpha",
        "verificationStatus": verification_status,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    member.update(kwargs)
    return member


def make_seller(
    seller_id: Optional[str] = None,
    status: str = "APPROVED",
    **kwargs: Any,
) -> Dict[str, Any]:
    seller = {
        "sellerId": seller_id or _id("SELLER"),
        "name": "Test Seller",
        "email": f"seller-{uuid4().hex[:8]}@example.com",
        "sponsoringChapterId": "CHAPTER#alpha",
        "vendorLicenseNumber": "VL-1",
        "storeLogoUrl": "https://cdn.example.com/logo.png",
        "status": status,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    seller.update(kwargs)
    return seller


def make_promoter(promoter_id: Optional[str] = None, status: str = "APPROVED", **kwargs: Any) -> Dict[str, Any]:
    promoter = {
        "promoterId": promoter_id or _id("PROMOTER"),
        "name": "Test Promoter",
        "email": f"promoter-{uuid4().hex[:8]}@example.com",
        "sponsoringChapterId": "CHAPTER#alpha",
        "status": status,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    promoter.update(kwargs)
    return promoter


def make_steward(
    member_id: str,
    steward_id: Optional[str] = None,
    status: str = "APPROVED",
    **kwargs: Any,
) -> Dict[str, Any]:
    steward = {
        "stewardId": steward_id or _id("STEWARD"),
        "memberId": member_id,
        "sponsoringChapterId": "CHAPTER#alpha",
        "status": status,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    steward.update(kwargs)
    return steward


def make_product(seller_id: str, product_id: Optional[str] = None, price_cents: int = 2500, **kwargs: Any) -> Dict[str, Any]:
    """Create a product dictionary.

    Args:
        seller_id: Owning seller
        product_id: Product ID (auto-generated if not provided)
        price_cents: Price in cents
        **kwargs: Additional fields to include
    """
    product = {
        "productId": product_id or _id("PRODUCT"),
        "sellerId": seller_id,
        "name": "Chapter Hoodie",
        "description": "Heavyweight hoodie",
        "priceCents": price_cents,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    product.update(kwargs)
    return product


def make_event_record(promoter_id: str, event_id: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
    """Create a fraternity event (not a Lambda event) dictionary."""
    item = {
        "eventId": event_id or _id("EVENT"),
        "promoterId": promoter_id,
        "title": "Founders Day Gala",
        "description": "Annual celebration",
        "eventDate": "2030-01-05T19:00:00+00:00",
        "location": "Grand Ballroom",
        "ticketPriceCents": 5000,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    item.update(kwargs)
    return item


def make_listing(
    steward_id: str,
    listing_id: Optional[str] = None,
    status: str = "ACTIVE",
    **kwargs: Any,
) -> Dict[str, Any]:
    listing = {
        "listingId": listing_id or _id("LISTING"),
        "stewardId": steward_id,
        "sponsoringChapterId": "CHAPTER#alpha",
        "name": "Vintage Paddle",
        "description": "Hand painted",
        "images": [],
        "shippingCostCents": 1000,
        "chapterDonationCents": 500,
        "status": status,
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    listing.update(kwargs)
    return listing


def make_claim(listing_id: str, claimant_member_id: str, claim_id: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
    claim = {
        "claimId": claim_id or _id("CLAIM"),
        "listingId": listing_id,
        "claimantMemberId": claimant_member_id,
        "claimantEmail": "claimant@example.com",
        "stripeSessionId": f"cs_test_{uuid4().hex[:10]}",
        "totalAmountCents": 1575,
        "shippingCents": 1000,
        "platformFeeCents": 75,
        "chapterDonationCents": 500,
        "status": "PENDING",
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    claim.update(kwargs)
    return claim


def make_order(product_id: str, order_id: Optional[str] = None, amount_cents: int = 2500, **kwargs: Any) -> Dict[str, Any]:
    order = {
        "orderId": order_id or _id("ORDER"),
        "productId": product_id,
        "buyerEmail": "buyer@example.com",
        "amountCents": amount_cents,
        "stripeSessionId": f"cs_test_{uuid4().hex[:10]}",
        "status": "PENDING",
        "createdAt": now_iso(),
        "updatedAt": now_iso(),
    }
    order.update(kwargs)
    return order


def make_appsync_event(
    cognito_sub: Optional[str] = None,
    arguments: Optional[Dict[str, Any]] = None,
    groups: Optional[List[str]] = None,
    field_name: str = "testField",
    parent_type: str = "Query",
    **kwargs: Any,
) -> Dict[str, Any]:
    """Create a test AppSync event dictionary.

    Args:
        cognito_sub: Caller's Cognito sub; pass "" for an anonymous (API key) call
        arguments: GraphQL arguments
        groups: cognito:groups claim
        field_name: Name of the GraphQL field being resolved
        parent_type: Type name (Query, Mutation, etc.)
        **kwargs: Additional fields to include

    Returns:
        AppSync event dictionary suitable for Lambda handlers
    """
    if cognito_sub is None:
        cognito_sub = uuid4().hex[:12]

    event: Dict[str, Any] = {
        "arguments": arguments or {},
        "identity": None,
        "requestContext": {"requestId": f"test-{uuid4().hex[:8]}"},
        "info": {"fieldName": field_name, "parentTypeName": parent_type},
    }
    if cognito_sub:
        event["identity"] = {
            "sub": cognito_sub,
            "username": f"user-{cognito_sub[:8]}",
            "claims": {"cognito:groups": groups or []},
        }
    event.update(kwargs)
    return event


def make_webhook_event(payload: Dict[str, Any], signature: Optional[str] = "t=1,v1=abc", encode: bool = False) -> Dict[str, Any]:
    """Create an API Gateway proxy event carrying a Stripe webhook."""
    body = json.dumps(payload)
    headers = {"Stripe-Signature": signature} if signature else {}
    return {
        "headers": headers,
        "body": base64.b64encode(body.encode()).decode() if encode else body,
        "isBase64Encoded": encode,
        "requestContext": {"requestId": f"test-{uuid4().hex[:8]}"},
    }


class MockLambdaContext:
    """Mock AWS Lambda context for testing."""

    def __init__(
        self,
        function_name: str = "test-function",
        memory_limit_in_mb: int = 128,
        aws_request_id: Optional[str] = None,
    ):
        self.function_name = function_name
        self.memory_limit_in_mb = memory_limit_in_mb
        self.aws_request_id = aws_request_id or f"test-{uuid4().hex[:8]}"
        self.invoked_function_arn = f"arn:aws:lambda:us-east-1:123456789012:function:{function_name}"

    def get_remaining_time_in_millis(self) -> int:
        return 30000
