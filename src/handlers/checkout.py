"""
Lambda resolvers that open Stripe Checkout sessions.

Implements:
- createProductCheckout: buy a shop product (destination charge to the seller)
- createStewardCheckout: pay shipping, platform fee and chapter donation for a
  steward listing
"""

from datetime import datetime, timezone
from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import authenticate, require_verified_member  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, tables  # type: ignore[import-not-found]
    from utils.email import send_seller_stripe_setup_required_email  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus  # type: ignore[import-not-found]
    from utils.notifications import record_purchase_blocked  # type: ignore[import-not-found]
    from utils.stripe_payments import (  # type: ignore[import-not-found]
        calculate_steward_platform_fee,
        create_product_checkout_session,
        create_steward_checkout_session,
    )
    from utils.validation import require_text, validate_email  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import authenticate, require_verified_member
    from ..utils.dynamodb import get_item, tables
    from ..utils.email import send_seller_stripe_setup_required_email
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus
    from ..utils.notifications import record_purchase_blocked
    from ..utils.stripe_payments import (
        calculate_steward_platform_fee,
        create_product_checkout_session,
        create_steward_checkout_session,
    )
    from ..utils.validation import require_text, validate_email

CHECKOUT_STATUSES_FOR_STEWARD = ("ACTIVE", "CLAIMED")


def create_product_checkout(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Start checkout for one product.

    GraphQL mutation: createProductCheckout(input: {productId, buyerEmail})

    Returns:
        {"sessionId", "url", "orderId"}

    Raises:
        AppError: NOT_FOUND for unknown products, INVALID_INPUT when the
            seller cannot take payments yet (the buyer gets a PURCHASE_BLOCKED
            notification), PAYMENT_ERROR when Stripe fails
    """
    logger = get_logger(__name__, get_correlation_id(event))
    args = event.get("arguments", {}).get("input") or {}
    buyer_email = validate_email(args.get("buyerEmail"), "buyerEmail")
    product_id = require_text(args.get("productId"), "productId", "Product")

    product = get_item(tables.products, {"productId": product_id})
    if not product:
        raise AppError(ErrorCode.NOT_FOUND, f"Product {product_id} not found")

    seller = get_item(tables.sellers, {"sellerId": product["sellerId"]})
    if not seller or seller.get("status") != ApplicationStatus.APPROVED:
        raise AppError(ErrorCode.INVALID_INPUT, "Seller is not approved to sell")
    if not seller.get("stripeAccountId"):
        send_seller_stripe_setup_required_email(
            seller["email"], seller.get("name", ""), product["name"], product_id
        )
        record_purchase_blocked(buyer_email, product)
        raise AppError(ErrorCode.INVALID_INPUT, "Seller has not connected a Stripe account yet")

    chapter_id = seller.get("sponsoringChapterId")
    try:
        session = create_product_checkout_session(
            product, seller["stripeAccountId"], buyer_email, chapter_id
        )
    except Exception as e:
        logger.error("Failed to create checkout session", product_id=product_id, error=str(e))
        raise AppError(ErrorCode.PAYMENT_ERROR, "Could not start checkout. Please try again.")

    now = datetime.now(timezone.utc).isoformat()
    order: Dict[str, Any] = {
        "orderId": new_id("ORDER"),
        "productId": product_id,
        "buyerEmail": buyer_email,
        "amountCents": int(product["priceCents"]),
        "stripeSessionId": session.id,
        "status": "PENDING",
        "createdAt": now,
        "updatedAt": now,
    }
    if chapter_id:
        order["chapterId"] = chapter_id
    tables.orders.put_item(Item=order)

    logger.info(
        "Checkout session created",
        order_id=order["orderId"],
        product_id=product_id,
        session_id=session.id,
    )
    return {"sessionId": session.id, "url": session.url, "orderId": order["orderId"]}


def create_steward_checkout(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Start checkout for a steward listing.

    GraphQL mutation: createStewardCheckout(listingId: ID!)

    Returns:
        {"sessionId", "url", "claimId", "totalAmountCents"}
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    member = require_verified_member(caller)
    listing_id = event.get("arguments", {}).get("listingId")

    listing = get_item(tables.steward_listings, {"listingId": listing_id}) if listing_id else None
    if not listing:
        raise AppError(ErrorCode.NOT_FOUND, f"Listing {listing_id} not found")
    if listing.get("status") not in CHECKOUT_STATUSES_FOR_STEWARD:
        raise AppError(ErrorCode.INVALID_STATE, "Listing is not available for checkout")
    if listing.get("status") == "CLAIMED" and listing.get("claimedByMemberId") != member["memberId"]:
        raise AppError(ErrorCode.INVALID_STATE, "Listing has already been claimed by another member")

    chapter_id = listing.get("sponsoringChapterId")
    chapter = get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None
    if not chapter:
        raise AppError(ErrorCode.NOT_FOUND, "Sponsoring chapter not found")
    if not chapter.get("stripeAccountId"):
        raise AppError(ErrorCode.INVALID_INPUT, "Chapter does not have a Stripe account configured")

    steward = get_item(tables.stewards, {"stewardId": listing["stewardId"]})
    if not steward or not steward.get("stripeAccountId"):
        raise AppError(ErrorCode.INVALID_INPUT, "Steward does not have a Stripe account configured")

    shipping_cents = int(listing.get("shippingCostCents") or 0)
    donation_cents = int(listing.get("chapterDonationCents") or 0)
    platform_fee_cents = calculate_steward_platform_fee(shipping_cents, donation_cents)
    total_cents = shipping_cents + platform_fee_cents + donation_cents
    buyer_email = member.get("email") or caller["email"]

    try:
        session = create_steward_checkout_session(
            listing,
            steward["stripeAccountId"],
            chapter["stripeAccountId"],
            buyer_email,
            shipping_cents,
            platform_fee_cents,
            donation_cents,
        )
    except Exception as e:
        logger.error("Failed to create steward checkout session", listing_id=listing_id, error=str(e))
        raise AppError(ErrorCode.PAYMENT_ERROR, "Could not start checkout. Please try again.")

    now = datetime.now(timezone.utc).isoformat()
    claim: Dict[str, Any] = {
        "claimId": new_id("CLAIM"),
        "listingId": listing["listingId"],
        "claimantMemberId": member["memberId"],
        "claimantEmail": buyer_email,
        "stripeSessionId": session.id,
        "totalAmountCents": total_cents,
        "shippingCents": shipping_cents,
        "platformFeeCents": platform_fee_cents,
        "chapterDonationCents": donation_cents,
        "status": "PENDING",
        "createdAt": now,
        "updatedAt": now,
    }
    tables.steward_claims.put_item(Item=claim)

    logger.info(
        "Steward checkout session created",
        claim_id=claim["claimId"],
        listing_id=listing["listingId"],
        total_cents=total_cents,
    )
    return {
        "sessionId": session.id,
        "url": session.url,
        "claimId": claim["claimId"],
        "totalAmountCents": total_cents,
    }
