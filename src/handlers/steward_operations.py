"""
Lambda resolvers for the steward program.

Stewards are verified brothers who re-home legacy fraternity items. A claimant
pays only shipping, a platform fee and a donation to the steward's sponsoring
chapter.

Implements:
- applyAsSteward (auto-approved for verified members)
- getStewardProfile, getStewardMetrics, listMyStewardClaims
- createStewardListing, listMyStewardListings, updateStewardListing, deleteStewardListing
- getStewardMarketplace, getStewardListing, claimStewardListing (verified members)
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import Caller, authenticate, require_steward, require_verified_member  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_index, scan_all, tables, update_fields  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus, Role, VerificationStatus  # type: ignore[import-not-found]
    from utils.responses import normalize_item  # type: ignore[import-not-found]
    from utils.stripe_payments import (  # type: ignore[import-not-found]
        create_connect_account,
        describe_stripe_error,
        is_stripe_configured,
    )
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import optional_text, require_text, validate_cents  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import Caller, authenticate, require_steward, require_verified_member
    from ..utils.dynamodb import get_item, query_index, scan_all, tables, update_fields
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus, Role, VerificationStatus
    from ..utils.responses import normalize_item
    from ..utils.stripe_payments import (
        create_connect_account,
        describe_stripe_error,
        is_stripe_configured,
    )
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import optional_text, require_text, validate_cents


class ListingStatus:
    ACTIVE = "ACTIVE"
    CLAIMED = "CLAIMED"
    SOLD = "SOLD"
    REMOVED = "REMOVED"


class ClaimStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


MAX_LISTING_IMAGES = 10
RECENT_CLAIMS_LIMIT = 10


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_caller_steward(caller: Caller) -> Dict[str, Any]:
    require_steward(caller)
    steward = get_item(tables.stewards, {"stewardId": caller["stewardId"]}) if caller["stewardId"] else None
    if not steward:
        raise AppError(ErrorCode.FORBIDDEN, "Steward profile not found")
    return steward


def _get_own_listing(steward: Dict[str, Any], listing_id: Any) -> Dict[str, Any]:
    listing = get_item(tables.steward_listings, {"listingId": listing_id}) if listing_id else None
    if not listing or listing.get("status") == ListingStatus.REMOVED:
        raise AppError(ErrorCode.NOT_FOUND, f"Listing {listing_id} not found")
    if listing.get("stewardId") != steward["stewardId"]:
        raise AppError(ErrorCode.FORBIDDEN, "You can only manage your own listings")
    return listing


def _own_listings(steward_id: str) -> List[Dict[str, Any]]:
    listings = [
        listing
        for listing in query_index(tables.steward_listings, "stewardId-index", "stewardId", steward_id)
        if listing.get("status") != ListingStatus.REMOVED
    ]
    listings.sort(key=lambda item: item.get("createdAt", ""), reverse=True)
    return listings


def _claims_for_listings(listings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    claims: List[Dict[str, Any]] = []
    for listing in listings:
        for claim in query_index(tables.steward_claims, "listingId-index", "listingId", listing["listingId"]):
            claim = dict(claim)
            claim["listingName"] = listing.get("name")
            claims.append(claim)
    return claims


def _enrich_listing(listing: Dict[str, Any]) -> Dict[str, Any]:
    """Attach steward (with member) and sponsoring chapter to a listing."""
    result: Dict[str, Any] = normalize_item(listing)
    steward = get_item(tables.stewards, {"stewardId": listing.get("stewardId")})
    if steward:
        steward_view: Dict[str, Any] = normalize_item(steward)
        steward_view.pop("stripeAccountId", None)
        member = get_item(tables.members, {"memberId": steward.get("memberId")}) if steward.get("memberId") else None
        steward_view["member"] = (
            {"memberId": member["memberId"], "name": member.get("name"), "headshotUrl": member.get("headshotUrl")}
            if member
            else None
        )
        result["steward"] = steward_view
    chapter_id = listing.get("sponsoringChapterId")
    chapter = get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None
    result["chapter"] = (
        {"chapterId": chapter["chapterId"], "name": chapter.get("name")} if chapter else None
    )
    return result


def apply_as_steward(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Become a steward. Verified members are approved immediately.

    GraphQL mutation: applyAsSteward(input: {sponsoringChapterId})

    When Stripe is configured a Connect account is opened for payouts; if that
    fails the steward is still approved and a ``warning`` is returned.
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    args = event.get("arguments", {}).get("input") or {}

    if not caller["memberId"]:
        raise AppError(ErrorCode.FORBIDDEN, "Member profile required")
    member = get_item(tables.members, {"memberId": caller["memberId"]})
    if not member:
        raise AppError(ErrorCode.MEMBER_NOT_FOUND, "Member not found")
    if member.get("verificationStatus") != VerificationStatus.VERIFIED:
        raise AppError(ErrorCode.VERIFICATION_REQUIRED, "Only verified members can become stewards")
    if query_index(tables.stewards, "memberId-index", "memberId", caller["memberId"]):
        raise AppError(ErrorCode.ALREADY_EXISTS, "You are already a steward")

    sponsoring_chapter_id = require_text(
        args.get("sponsoringChapterId"), "sponsoringChapterId", "Sponsoring chapter"
    )

    warning: Optional[str] = None
    stripe_account_id: Optional[str] = None
    if is_stripe_configured():
        try:
            stripe_account_id = create_connect_account(member.get("email") or caller["email"])["id"]
        except Exception as e:
            logger.error("Failed to create Stripe account for steward", member_id=caller["memberId"], error=str(e))
            warning = describe_stripe_error(e)
    else:
        warning = "Stripe is not configured. The steward was approved without a Stripe account."

    now = _now()
    steward: Dict[str, Any] = {
        "stewardId": new_id("STEWARD"),
        "memberId": caller["memberId"],
        "sponsoringChapterId": sponsoring_chapter_id,
        "status": ApplicationStatus.APPROVED,
        "createdAt": now,
        "updatedAt": now,
    }
    if stripe_account_id:
        steward["stripeAccountId"] = stripe_account_id
    tables.stewards.put_item(Item=steward)

    user_updates: Dict[str, Any] = {"stewardId": steward["stewardId"], "updatedAt": now}
    if caller["role"] == Role.GUEST:
        user_updates["role"] = Role.STEWARD
    update_fields(tables.users, {"userId": caller["userId"]}, user_updates)

    logger.info("Steward approved", steward_id=steward["stewardId"], stripe_account_id=stripe_account_id)
    result: Dict[str, Any] = normalize_item(steward)
    if warning:
        result["warning"] = warning
    return result


def get_steward_profile(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getStewardProfile. The caller's steward record with member and chapter."""
    steward = _get_caller_steward(authenticate(event))
    result: Dict[str, Any] = normalize_item(steward)
    member = get_item(tables.members, {"memberId": steward["memberId"]})
    chapter_id = steward.get("sponsoringChapterId")
    chapter = get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None
    result["member"] = normalize_item(member) if member else None
    result["chapter"] = normalize_item(chapter) if chapter else None
    return result


def _listing_images(caller: Caller, image_keys: Any) -> List[str]:
    if image_keys is None:
        return []
    if not isinstance(image_keys, list):
        raise AppError(ErrorCode.INVALID_INPUT, "imageKeys must be a list")
    if len(image_keys) > MAX_LISTING_IMAGES:
        raise AppError(ErrorCode.INVALID_INPUT, f"A listing can have at most {MAX_LISTING_IMAGES} images")
    return [resolve_upload_key(key, caller["cognitoSub"], "steward-listings") for key in image_keys]


def create_steward_listing(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: createStewardListing(input: CreateStewardListingInput!)

    Raises:
        AppError: FORBIDDEN unless the caller is an APPROVED steward,
            INVALID_INPUT on bad input
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    steward = _get_caller_steward(caller)
    if steward.get("status") != ApplicationStatus.APPROVED:
        raise AppError(ErrorCode.FORBIDDEN, "Steward must be approved to create listings")
    args = event.get("arguments", {}).get("input") or {}

    images = _listing_images(caller, args.get("imageKeys"))
    now = _now()
    listing: Dict[str, Any] = {
        "listingId": new_id("LISTING"),
        "stewardId": steward["stewardId"],
        "name": require_text(args.get("name"), "name", "Name"),
        "shippingCostCents": validate_cents(args.get("shippingCostCents"), "shippingCostCents"),
        "chapterDonationCents": validate_cents(args.get("chapterDonationCents"), "chapterDonationCents"),
        "sponsoringChapterId": steward["sponsoringChapterId"],
        "images": images,
        "status": ListingStatus.ACTIVE,
        "createdAt": now,
        "updatedAt": now,
    }
    if images:
        listing["imageUrl"] = images[0]
    for field in ("description", "categoryId"):
        value = optional_text(args.get(field))
        if value:
            listing[field] = value

    tables.steward_listings.put_item(Item=listing)
    logger.info("Steward listing created", listing_id=listing["listingId"], steward_id=steward["stewardId"])
    result: Dict[str, Any] = normalize_item(listing)
    return result


def list_my_steward_listings(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listMyStewardListings. Newest first."""
    steward = _get_caller_steward(authenticate(event))
    return [normalize_item(listing) for listing in _own_listings(steward["stewardId"])]


def update_steward_listing(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: updateStewardListing(listingId: ID!, input: UpdateStewardListingInput!)."""
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    steward = _get_caller_steward(caller)
    arguments = event.get("arguments", {})
    listing = _get_own_listing(steward, arguments.get("listingId"))
    if listing.get("status") == ListingStatus.SOLD:
        raise AppError(ErrorCode.INVALID_STATE, "Sold listings cannot be edited")
    args = arguments.get("input") or {}

    updates: Dict[str, Any] = {}
    if args.get("name") is not None:
        updates["name"] = require_text(args["name"], "name", "Name")
    for field in ("description", "categoryId"):
        if args.get(field) is not None:
            updates[field] = str(args[field]).strip()
    for field in ("shippingCostCents", "chapterDonationCents"):
        if args.get(field) is not None:
            updates[field] = validate_cents(args[field], field)
    if args.get("imageKeys") is not None:
        images = _listing_images(caller, args["imageKeys"])
        updates["images"] = images
        updates["imageUrl"] = images[0] if images else None

    if not updates:
        raise AppError(ErrorCode.INVALID_INPUT, "At least one field must be provided")
    updates["updatedAt"] = _now()

    remove = [k for k, v in updates.items() if v is None]
    updated = update_fields(
        tables.steward_listings,
        {"listingId": listing["listingId"]},
        {k: v for k, v in updates.items() if v is not None},
        remove=remove or None,
    )
    logger.info("Steward listing updated", listing_id=listing["listingId"], fields=sorted(updates))
    result: Dict[str, Any] = normalize_item(updated)
    return result


def delete_steward_listing(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: deleteStewardListing(listingId: ID!)

    Listings are marked REMOVED rather than deleted so paid claims keep their
    listing reference.
    """
    logger = get_logger(__name__, get_correlation_id(event))
    steward = _get_caller_steward(authenticate(event))
    listing = _get_own_listing(steward, event.get("arguments", {}).get("listingId"))
    if listing.get("status") == ListingStatus.SOLD:
        raise AppError(ErrorCode.INVALID_STATE, "Sold listings cannot be deleted")

    update_fields(
        tables.steward_listings,
        {"listingId": listing["listingId"]},
        {"status": ListingStatus.REMOVED, "updatedAt": _now()},
    )
    logger.info("Steward listing removed", listing_id=listing["listingId"])
    return {"success": True, "listingId": listing["listingId"]}


def get_steward_metrics(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getStewardMetrics."""
    steward = _get_caller_steward(authenticate(event))
    listings = _own_listings(steward["stewardId"])
    paid_claims = [c for c in _claims_for_listings(listings) if c.get("status") == ClaimStatus.PAID]
    return {
        "totalListings": len(listings),
        "activeListings": sum(1 for item in listings if item.get("status") == ListingStatus.ACTIVE),
        "totalClaims": len(paid_claims),
        "totalDonationsCents": sum(int(c.get("chapterDonationCents") or 0) for c in paid_claims),
    }


def list_my_steward_claims(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listMyStewardClaims. The ten most recent claims on the caller's listings."""
    steward = _get_caller_steward(authenticate(event))
    claims = _claims_for_listings(_own_listings(steward["stewardId"]))
    claims.sort(key=lambda c: c.get("createdAt", ""), reverse=True)
    return [normalize_item(c) for c in claims[:RECENT_CLAIMS_LIMIT]]


def get_steward_marketplace(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: getStewardMarketplace. ACTIVE listings, verified members only."""
    require_verified_member(authenticate(event))
    listings = [
        listing
        for listing in scan_all(tables.steward_listings)
        if listing.get("status") == ListingStatus.ACTIVE
    ]
    listings.sort(key=lambda item: item.get("createdAt", ""), reverse=True)
    return [_enrich_listing(listing) for listing in listings]


def get_steward_listing(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getStewardListing(listingId: ID!). Verified members only."""
    require_verified_member(authenticate(event))
    listing_id = event.get("arguments", {}).get("listingId")
    listing = get_item(tables.steward_listings, {"listingId": listing_id}) if listing_id else None
    if not listing or listing.get("status") == ListingStatus.REMOVED:
        raise AppError(ErrorCode.NOT_FOUND, f"Listing {listing_id} not found")
    return _enrich_listing(listing)


def claim_steward_listing(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Reserve an ACTIVE listing for the calling verified member.

    GraphQL mutation: claimStewardListing(listingId: ID!)

    Raises:
        AppError: NOT_FOUND for unknown listings, INVALID_STATE when the
            listing is not (or no longer) ACTIVE
    """
    logger = get_logger(__name__, get_correlation_id(event))
    member = require_verified_member(authenticate(event))
    listing_id = event.get("arguments", {}).get("listingId")

    listing = get_item(tables.steward_listings, {"listingId": listing_id}) if listing_id else None
    if not listing or listing.get("status") == ListingStatus.REMOVED:
        raise AppError(ErrorCode.NOT_FOUND, f"Listing {listing_id} not found")
    if listing.get("status") != ListingStatus.ACTIVE:
        raise AppError(ErrorCode.INVALID_STATE, "Listing is not available for claim")

    try:
        updated = update_fields(
            tables.steward_listings,
            {"listingId": listing_id},
            {
                "status": ListingStatus.CLAIMED,
                "claimedByMemberId": member["memberId"],
                "claimedAt": _now(),
                "updatedAt": _now(),
            },
            condition="#status = :expected",
            condition_values={":expected": ListingStatus.ACTIVE},
        )
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
            raise AppError(
                ErrorCode.INVALID_STATE, "Listing is not available (may have already been claimed)"
            )
        raise

    logger.info("Steward listing claimed", listing_id=listing_id, member_id=member["memberId"])
    result: Dict[str, Any] = normalize_item(updated)
    return result
