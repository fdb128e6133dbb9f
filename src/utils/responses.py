"""
GraphQL response builders for Lambda resolvers.

Provides consistent response structures and entity builders for
AppSync GraphQL resolvers. DynamoDB hands numbers back as Decimal, so every
builder coerces numeric fields before the result is serialized.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, TypedDict, cast


class UserResponse(TypedDict, total=False):
    """GraphQL User (getMe) response type."""

    userId: str
    cognitoSub: str
    email: str
    role: str
    onboardingStatus: str
    memberId: Optional[str]
    sellerId: Optional[str]
    promoterId: Optional[str]
    stewardId: Optional[str]
    features: Dict[str, Any]
    name: Optional[str]
    fraternityMemberId: Optional[str]
    isFraternityMember: bool
    isSeller: bool
    isPromoter: bool
    isSteward: bool
    lastLogin: Optional[str]
    createdAt: str
    updatedAt: str


class ProductResponse(TypedDict, total=False):
    """GraphQL Product response type."""

    productId: str
    sellerId: str
    name: str
    description: str
    priceCents: int
    imageUrl: Optional[str]
    sponsoredChapterId: Optional[str]
    isKappaBranded: bool
    sellerName: Optional[str]
    sellerStatus: Optional[str]
    sellerSponsoringChapterId: Optional[str]
    createdAt: str


class SellerResponse(TypedDict, total=False):
    """GraphQL Seller response type (invitation tokens are never returned)."""

    sellerId: str
    memberId: Optional[str]
    name: str
    email: str
    sponsoringChapterId: Optional[str]
    businessName: Optional[str]
    vendorLicenseNumber: Optional[str]
    headshotUrl: Optional[str]
    storeLogoUrl: Optional[str]
    socialLinks: Dict[str, str]
    status: str
    stripeAccountId: Optional[str]
    verificationStatus: Optional[str]
    businessEmail: Optional[str]
    website: Optional[str]
    businessPhone: Optional[str]
    stripeAccountType: Optional[str]
    businessAddress: Optional[Dict[str, Any]]
    createdAt: str
    updatedAt: str


class EventResponse(TypedDict, total=False):
    """GraphQL Event response type."""

    eventId: str
    promoterId: str
    promoterName: Optional[str]
    title: str
    description: Optional[str]
    eventDate: str
    durationMinutes: Optional[int]
    location: str
    city: Optional[str]
    state: Optional[str]
    imageUrl: Optional[str]
    sponsoredChapterId: Optional[str]
    ticketPriceCents: int
    maxAttendees: Optional[int]
    createdAt: str


class OrderResponse(TypedDict, total=False):
    """GraphQL Order response type."""

    orderId: str
    productId: str
    buyerEmail: str
    amountCents: int
    stripeSessionId: str
    status: str
    chapterId: Optional[str]
    createdAt: str
    updatedAt: str


def normalize_item(value: Any) -> Any:
    """Recursively convert DynamoDB Decimals into int/float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: normalize_item(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [normalize_item(v) for v in value]
    return value


def _to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def build_user_response(item: Dict[str, Any]) -> UserResponse:
    """Build a User response from a DynamoDB item (role flags are added by the caller)."""
    return UserResponse(
        userId=cast(str, item.get("userId", "")),
        cognitoSub=cast(str, item.get("cognitoSub", "")),
        email=cast(str, item.get("email", "")),
        role=cast(str, item.get("role", "GUEST")),
        onboardingStatus=cast(str, item.get("onboardingStatus", "")),
        memberId=item.get("memberId"),
        sellerId=item.get("sellerId"),
        promoterId=item.get("promoterId"),
        stewardId=item.get("stewardId"),
        features=normalize_item(item.get("features") or {}),
        lastLogin=item.get("lastLogin"),
        createdAt=cast(str, item.get("createdAt", "")),
        updatedAt=cast(str, item.get("updatedAt", "")),
    )


def build_product_response(
    item: Dict[str, Any], seller: Optional[Dict[str, Any]] = None
) -> ProductResponse:
    """
    Build a Product response from a DynamoDB item.

    Args:
        item: Product item
        seller: Optional seller item used to enrich the product with seller fields

    Returns:
        ProductResponse with normalized field names
    """
    response = ProductResponse(
        productId=cast(str, item.get("productId", "")),
        sellerId=cast(str, item.get("sellerId", "")),
        name=cast(str, item.get("name", "")),
        description=cast(str, item.get("description", "")),
        priceCents=cast(int, _to_int(item.get("priceCents"))),
        imageUrl=item.get("imageUrl"),
        sponsoredChapterId=item.get("sponsoredChapterId"),
        isKappaBranded=bool(item.get("isKappaBranded", False)),
        createdAt=cast(str, item.get("createdAt", "")),
    )
    if seller is not None:
        response["sellerName"] = seller.get("name")
        response["sellerStatus"] = seller.get("status")
        response["sellerSponsoringChapterId"] = seller.get("sponsoringChapterId")
    return response


def build_seller_response(item: Dict[str, Any]) -> SellerResponse:
    """Build a Seller response from a DynamoDB item."""
    return SellerResponse(
        sellerId=cast(str, item.get("sellerId", "")),
        memberId=item.get("memberId"),
        name=cast(str, item.get("name", "")),
        email=cast(str, item.get("email", "")),
        sponsoringChapterId=item.get("sponsoringChapterId"),
        businessName=item.get("businessName"),
        vendorLicenseNumber=item.get("vendorLicenseNumber"),
        headshotUrl=item.get("headshotUrl"),
        storeLogoUrl=item.get("storeLogoUrl"),
        socialLinks=dict(item.get("socialLinks") or {}),
        status=cast(str, item.get("status", "PENDING")),
        stripeAccountId=item.get("stripeAccountId"),
        verificationStatus=item.get("verificationStatus"),
        businessEmail=item.get("businessEmail"),
        website=item.get("website"),
        businessPhone=item.get("businessPhone"),
        stripeAccountType=item.get("stripeAccountType"),
        businessAddress=item.get("businessAddress"),
        createdAt=cast(str, item.get("createdAt", "")),
        updatedAt=cast(str, item.get("updatedAt", "")),
    )


def build_event_response(
    item: Dict[str, Any], promoter: Optional[Dict[str, Any]] = None
) -> EventResponse:
    """Build an Event response, optionally enriched with the promoter's name."""
    response = EventResponse(
        eventId=cast(str, item.get("eventId", "")),
        promoterId=cast(str, item.get("promoterId", "")),
        title=cast(str, item.get("title", "")),
        description=item.get("description"),
        eventDate=cast(str, item.get("eventDate", "")),
        durationMinutes=_to_int(item.get("durationMinutes"), None),
        location=cast(str, item.get("location", "")),
        city=item.get("city"),
        state=item.get("state"),
        imageUrl=item.get("imageUrl"),
        sponsoredChapterId=item.get("sponsoredChapterId"),
        ticketPriceCents=cast(int, _to_int(item.get("ticketPriceCents"))),
        maxAttendees=_to_int(item.get("maxAttendees"), None),
        createdAt=cast(str, item.get("createdAt", "")),
    )
    if promoter is not None:
        response["promoterName"] = promoter.get("name")
    return response


def build_order_response(item: Dict[str, Any]) -> OrderResponse:
    """Build an Order response from a DynamoDB item."""
    return OrderResponse(
        orderId=cast(str, item.get("orderId", "")),
        productId=cast(str, item.get("productId", "")),
        buyerEmail=cast(str, item.get("buyerEmail", "")),
        amountCents=cast(int, _to_int(item.get("amountCents"))),
        stripeSessionId=cast(str, item.get("stripeSessionId", "")),
        status=cast(str, item.get("status", "PENDING")),
        chapterId=item.get("chapterId"),
        createdAt=cast(str, item.get("createdAt", "")),
        updatedAt=cast(str, item.get("updatedAt", "")),
    )


def build_list_response(items: List[Dict[str, Any]], builder: Any) -> List[Any]:
    """Build a list of responses using a builder function."""
    return [builder(item) for item in items]
