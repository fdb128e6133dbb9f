"""
Stripe webhook endpoint (API Gateway proxy integration).

Handles:
- checkout.session.completed: mark orders / steward claims PAID
- checkout.session.expired: mark them FAILED and release claimed listings
- account.updated: backfill seller business details from Stripe

Once the signature checks out the endpoint always answers 200 so Stripe does
not retry events that failed for application reasons; those failures are
logged instead.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_header, get_raw_body  # type: ignore[import-not-found]
    from utils.dynamodb import (  # type: ignore[import-not-found]
        build_update,
        get_item,
        query_first,
        tables,
        transact_update,
        update_fields,
    )
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.stripe_payments import (  # type: ignore[import-not-found]
        construct_webhook_event,
        get_account_business_details,
        transfer_chapter_donation,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_header, get_raw_body
    from ..utils.dynamodb import (
        build_update,
        get_item,
        query_first,
        tables,
        transact_update,
        update_fields,
    )
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.stripe_payments import (
        construct_webhook_event,
        get_account_business_details,
        transfer_chapter_donation,
    )

STEWARD_CLAIM = "steward_claim"

# Seller attributes that account.updated may fill in
BUSINESS_FIELDS = (
    "businessName",
    "businessEmail",
    "website",
    "businessPhone",
    "taxId",
    "stripeAccountType",
)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _transition(table: Any, key: Dict[str, Any], new_status: str, **extra: Any) -> bool:
    """Move a PENDING record to new_status; False when it was not PENDING (replay)."""
    try:
        update_fields(
            table,
            key,
            {"status": new_status, "updatedAt": _now(), **extra},
            condition="#status = :pending",
            condition_values={":pending": "PENDING"},
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
            return False
        raise
    return True


def _complete_steward_claim(session: Dict[str, Any], logger: Any) -> None:
    claim = query_first(tables.steward_claims, "stripeSessionId-index", "stripeSessionId", session["id"])
    if not claim:
        logger.warning("No steward claim for completed session", session_id=session["id"])
        return
    if claim.get("status") != "PENDING":
        logger.info("Steward claim already processed", claim_id=claim["claimId"], status=claim.get("status"))
        return

    claimant = claim["claimantMemberId"]
    now = _now()
    try:
        # Claim PAID and listing SOLD commit together or not at all
        transact_update(
            [
                (
                    tables.steward_claims,
                    build_update(
                        {"claimId": claim["claimId"]},
                        {"status": "PAID", "updatedAt": now},
                        condition="#status = :pending",
                        condition_values={":pending": "PENDING"},
                    ),
                ),
                (
                    tables.steward_listings,
                    build_update(
                        {"listingId": claim["listingId"]},
                        {"status": "SOLD", "claimedByMemberId": claimant, "soldAt": now, "updatedAt": now},
                        condition=(
                            "#status IN (:active, :claimed) AND "
                            "(attribute_not_exists(claimedByMemberId) OR claimedByMemberId = :claimant)"
                        ),
                        condition_values={":active": "ACTIVE", ":claimed": "CLAIMED", ":claimant": claimant},
                    ),
                ),
            ]
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "TransactionCanceledException":
            raise
        _reject_steward_claim(claim, session, logger)
        return

    logger.info("Steward claim paid", claim_id=claim["claimId"], listing_id=claim["listingId"])

    metadata = session.get("metadata") or {}
    chapter_account_id = metadata.get("chapter_account_id")
    donation_cents = int(claim.get("chapterDonationCents") or 0)
    if chapter_account_id and donation_cents > 0:
        try:
            transfer_id = transfer_chapter_donation(chapter_account_id, donation_cents, session["id"])
            update_fields(
                tables.steward_claims,
                {"claimId": claim["claimId"]},
                {"donationTransferId": transfer_id},
            )
        except Exception as e:
            logger.error(
                "Failed to transfer chapter donation",
                claim_id=claim["claimId"],
                chapter_account_id=chapter_account_id,
                error=str(e),
            )


def _reject_steward_claim(claim: Dict[str, Any], session: Dict[str, Any], logger: Any) -> None:
    """The settlement transaction was cancelled: a replay, or the listing went to someone else."""
    current = get_item(tables.steward_claims, {"claimId": claim["claimId"]})
    if not current or current.get("status") != "PENDING":
        logger.info("Steward claim already processed", claim_id=claim["claimId"])
        return

    listing = get_item(tables.steward_listings, {"listingId": claim["listingId"]}) or {}
    if _transition(tables.steward_claims, {"claimId": claim["claimId"]}, "FAILED", failureReason="LISTING_UNAVAILABLE"):
        logger.error(
            "Steward listing no longer available; payment needs a refund",
            claim_id=claim["claimId"],
            listing_id=claim["listingId"],
            listing_status=listing.get("status"),
            claimed_by=listing.get("claimedByMemberId"),
            session_id=session["id"],
        )


def _complete_order(session: Dict[str, Any], logger: Any) -> None:
    order = query_first(tables.orders, "stripeSessionId-index", "stripeSessionId", session["id"])
    if not order:
        logger.warning("No order for completed session", session_id=session["id"])
        return
    if _transition(tables.orders, {"orderId": order["orderId"]}, "PAID"):
        logger.info("Order paid", order_id=order["orderId"])
    else:
        logger.info("Order already processed", order_id=order["orderId"], status=order.get("status"))


def _expire_session(session: Dict[str, Any], logger: Any) -> None:
    metadata = session.get("metadata") or {}
    if metadata.get("type") == STEWARD_CLAIM:
        claim = query_first(tables.steward_claims, "stripeSessionId-index", "stripeSessionId", session["id"])
        if claim and _transition(tables.steward_claims, {"claimId": claim["claimId"]}, "FAILED"):
            listing = get_item(tables.steward_listings, {"listingId": claim["listingId"]})
            if (
                listing
                and listing.get("status") == "CLAIMED"
                and listing.get("claimedByMemberId") == claim["claimantMemberId"]
            ):
                update_fields(
                    tables.steward_listings,
                    {"listingId": claim["listingId"]},
                    {"status": "ACTIVE", "updatedAt": _now()},
                    remove=["claimedByMemberId", "claimedAt"],
                )
            logger.info("Steward claim expired", claim_id=claim["claimId"])
        return

    order = query_first(tables.orders, "stripeSessionId-index", "stripeSessionId", session["id"])
    if order and _transition(tables.orders, {"orderId": order["orderId"]}, "FAILED"):
        logger.info("Order expired", order_id=order["orderId"])


def _merge_address(current: Optional[Dict[str, Any]], incoming: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Fill each empty sub-field of the stored address; None when nothing changes."""
    if not incoming:
        return None
    merged = dict(current or {})
    changed = False
    for part, value in incoming.items():
        if value and not merged.get(part):
            merged[part] = value
            changed = True
    return merged if changed else None


def _sync_seller_account(account: Dict[str, Any], logger: Any) -> None:
    seller = query_first(tables.sellers, "stripeAccountId-index", "stripeAccountId", account["id"])
    if not seller:
        logger.info("account.updated for unknown seller account", account_id=account["id"])
        return

    details = get_account_business_details(account["id"])
    updates = {
        field: details[field]
        for field in BUSINESS_FIELDS
        if details.get(field) and not seller.get(field)
    }
    address = _merge_address(seller.get("businessAddress"), details.get("businessAddress"))
    if address:
        updates["businessAddress"] = address
    if not updates:
        return
    updates["updatedAt"] = _now()
    update_fields(tables.sellers, {"sellerId": seller["sellerId"]}, updates)
    logger.info("Seller business details synced", seller_id=seller["sellerId"], fields=sorted(updates))


def process_event(stripe_event: Dict[str, Any], logger: Any) -> None:
    """Dispatch one verified Stripe event."""
    event_type = stripe_event.get("type")
    obj: Dict[str, Any] = (stripe_event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        if (obj.get("metadata") or {}).get("type") == STEWARD_CLAIM:
            _complete_steward_claim(obj, logger)
        else:
            _complete_order(obj, logger)
    elif event_type == "checkout.session.expired":
        _expire_session(obj, logger)
    elif event_type == "account.updated":
        _sync_seller_account(obj, logger)
    else:
        logger.debug("Ignoring Stripe event", event_type=event_type)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    POST /webhooks/stripe

    Returns:
        400 for missing or invalid signatures, otherwise 200 {"received": true}
    """
    logger = get_logger(__name__, get_correlation_id(event))
    signature: Optional[str] = get_header(event, "Stripe-Signature")
    if not signature:
        return _response(400, {"error": "Missing stripe-signature header"})

    try:
        stripe_event = construct_webhook_event(get_raw_body(event), signature)
    except Exception as e:
        logger.warning("Stripe webhook signature verification failed", error=str(e))
        return _response(400, {"error": f"Webhook Error: {e}"})

    logger.info("Stripe webhook received", event_type=stripe_event.get("type"), event_id=stripe_event.get("id"))
    try:
        process_event(stripe_event, logger)
    except Exception as e:
        logger.error(
            "Error processing Stripe webhook",
            event_type=stripe_event.get("type"),
            event_id=stripe_event.get("id"),
            error=str(e),
        )

    return _response(200, {"received": True})
