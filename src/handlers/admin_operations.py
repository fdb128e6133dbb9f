"""
Admin Lambda resolvers.

Every resolver here requires an admin caller (role ADMIN or membership of the
ADMIN Cognito group).

Implements:
- application review: pending sellers / promoters / stewards, approve or reject
- member verification review
- orders, chapter donations and steward activity dashboards
- chapter Stripe accounts and platform settings
"""

import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import authenticate, require_admin  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_first, query_index, scan_all, tables, update_fields  # type: ignore[import-not-found]
    from utils.email import send_seller_approved_email  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus, Role, VerificationStatus  # type: ignore[import-not-found]
    from utils.notifications import notify_interested_buyers  # type: ignore[import-not-found]
    from utils.responses import build_seller_response, normalize_item  # type: ignore[import-not-found]
    from utils.sales import (  # type: ignore[import-not-found]
        build_chapter_donation_rows,
        build_order_rows,
        build_steward_donation_rows,
        chapter_names,
        newest_first,
    )
    from utils.stripe_payments import (  # type: ignore[import-not-found]
        create_connect_account,
        describe_stripe_error,
        is_stripe_configured,
    )
    from utils.validation import optional_text, require_text, validate_choice  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import authenticate, require_admin
    from ..utils.dynamodb import get_item, query_first, query_index, scan_all, tables, update_fields
    from ..utils.email import send_seller_approved_email
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus, Role, VerificationStatus
    from ..utils.notifications import notify_interested_buyers
    from ..utils.responses import build_seller_response, normalize_item
    from ..utils.sales import (
        build_chapter_donation_rows,
        build_order_rows,
        build_steward_donation_rows,
        chapter_names,
        newest_first,
    )
    from ..utils.stripe_payments import (
        create_connect_account,
        describe_stripe_error,
        is_stripe_configured,
    )
    from ..utils.validation import optional_text, require_text, validate_choice


def _require_admin(event: Dict[str, Any]) -> None:
    require_admin(authenticate(event))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _open_stripe_account(email: str, logger: Any, **log_fields: Any) -> tuple[Optional[str], Optional[str]]:
    """Return (account_id, warning); Stripe problems never block an approval."""
    if not is_stripe_configured():
        return None, "Stripe is not configured. Approved without a Stripe account."
    try:
        return create_connect_account(email)["id"], None
    except Exception as e:
        logger.error("Failed to create Stripe account", error=str(e), **log_fields)
        return None, describe_stripe_error(e)


# ----------------------------------------------------------------------------
# Sellers
# ----------------------------------------------------------------------------


def list_pending_sellers(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListPendingSellers."""
    _require_admin(event)
    sellers = query_index(tables.sellers, "status-index", "status", ApplicationStatus.PENDING)
    return [dict(build_seller_response(s)) for s in newest_first(sellers)]


def update_seller_status(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Approve or reject a seller application.

    GraphQL mutation: adminUpdateSellerStatus(sellerId: ID!, status: ApplicationDecision!)

    On approval an existing user with the seller's email is linked as SELLER;
    otherwise an invitation token is issued for account setup. A Stripe
    Connect account is opened when possible and the approval email is sent.
    Once the seller can take payments, buyers blocked on its products are
    notified that the items are available.
    """
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    seller_id = args.get("sellerId")
    status = validate_choice(args.get("status"), ApplicationStatus.DECISIONS, "status")

    seller = get_item(tables.sellers, {"sellerId": seller_id}) if seller_id else None
    if not seller:
        raise AppError(ErrorCode.NOT_FOUND, f"Seller {seller_id} not found")

    updates: Dict[str, Any] = {"status": status, "updatedAt": _now()}
    warning: Optional[str] = None
    invitation_token: Optional[str] = None

    if status == ApplicationStatus.APPROVED:
        user = query_first(tables.users, "email-index", "email", seller["email"])
        if user:
            user_updates: Dict[str, Any] = {"sellerId": seller_id, "updatedAt": _now()}
            if user.get("role") in (None, Role.GUEST):
                user_updates["role"] = Role.SELLER
            update_fields(tables.users, {"userId": user["userId"]}, user_updates)
            logger.info("Linked existing user to seller", seller_id=seller_id, user_id=user["userId"])
        else:
            invitation_token = secrets.token_hex(32)
            updates["invitationToken"] = invitation_token

        if not seller.get("stripeAccountId"):
            account_id, warning = _open_stripe_account(seller["email"], logger, seller_id=seller_id)
            if account_id:
                updates["stripeAccountId"] = account_id

    updated = update_fields(tables.sellers, {"sellerId": seller_id}, updates)

    if status == ApplicationStatus.APPROVED:
        send_seller_approved_email(seller["email"], seller.get("name", ""), invitation_token)
        if updates.get("stripeAccountId"):
            notify_interested_buyers(seller_id)

    logger.info("Seller status updated", seller_id=seller_id, status=status)
    result: Dict[str, Any] = dict(build_seller_response(updated))
    if warning:
        result["warning"] = warning
    return result


# ----------------------------------------------------------------------------
# Promoters
# ----------------------------------------------------------------------------


def list_pending_promoters(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListPendingPromoters."""
    _require_admin(event)
    promoters = query_index(tables.promoters, "status-index", "status", ApplicationStatus.PENDING)
    return [normalize_item(p) for p in newest_first(promoters)]


def update_promoter_status(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: adminUpdatePromoterStatus(promoterId: ID!, status: ApplicationDecision!)."""
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    promoter_id = args.get("promoterId")
    status = validate_choice(args.get("status"), ApplicationStatus.DECISIONS, "status")

    promoter = get_item(tables.promoters, {"promoterId": promoter_id}) if promoter_id else None
    if not promoter:
        raise AppError(ErrorCode.NOT_FOUND, f"Promoter {promoter_id} not found")

    updates: Dict[str, Any] = {"status": status, "updatedAt": _now()}
    warning = None
    if status == ApplicationStatus.APPROVED and not promoter.get("stripeAccountId"):
        account_id, warning = _open_stripe_account(promoter["email"], logger, promoter_id=promoter_id)
        if account_id:
            updates["stripeAccountId"] = account_id

    updated = update_fields(tables.promoters, {"promoterId": promoter_id}, updates)
    logger.info("Promoter status updated", promoter_id=promoter_id, status=status)
    result: Dict[str, Any] = normalize_item(updated)
    if warning:
        result["warning"] = warning
    return result


# ----------------------------------------------------------------------------
# Members
# ----------------------------------------------------------------------------


def list_pending_members(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListPendingMembers. PENDING and MANUAL_REVIEW members."""
    _require_admin(event)
    names = chapter_names()
    members = [
        m
        for m in scan_all(tables.members)
        if m.get("verificationStatus") in (VerificationStatus.PENDING, VerificationStatus.MANUAL_REVIEW)
    ]
    result = []
    for member in newest_first(members):
        item: Dict[str, Any] = normalize_item(member)
        item["initiatedChapterName"] = names.get(member.get("initiatedChapterId", ""))
        result.append(item)
    return result


def update_member_verification(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Record a verification decision for a member.

    GraphQL mutation: adminUpdateMemberVerification(memberId: ID!, status: VerificationStatus!, notes: String)
    """
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    member_id = args.get("memberId")
    status = validate_choice(args.get("status"), VerificationStatus.ALL, "status")

    member = get_item(tables.members, {"memberId": member_id}) if member_id else None
    if not member:
        raise AppError(ErrorCode.MEMBER_NOT_FOUND, f"Member {member_id} not found")

    now = _now()
    updates: Dict[str, Any] = {"verificationStatus": status, "verificationDate": now, "updatedAt": now}
    notes = optional_text(args.get("notes"))
    if notes:
        updates["verificationNotes"] = notes

    updated = update_fields(tables.members, {"memberId": member_id}, updates)
    logger.info("Member verification updated", member_id=member_id, status=status)
    result: Dict[str, Any] = normalize_item(updated)
    return result


# ----------------------------------------------------------------------------
# Stewards
# ----------------------------------------------------------------------------


def list_pending_stewards(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListPendingStewards."""
    _require_admin(event)
    result = []
    for steward in newest_first(
        query_index(tables.stewards, "status-index", "status", ApplicationStatus.PENDING)
    ):
        item: Dict[str, Any] = normalize_item(steward)
        member = get_item(tables.members, {"memberId": steward.get("memberId")})
        chapter_id = steward.get("sponsoringChapterId")
        chapter = get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None
        item["member"] = normalize_item(member) if member else None
        item["chapter"] = normalize_item(chapter) if chapter else None
        result.append(item)
    return result


def update_steward_status(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: adminUpdateStewardStatus(stewardId: ID!, status: ApplicationDecision!)."""
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    steward_id = args.get("stewardId")
    status = validate_choice(args.get("status"), ApplicationStatus.DECISIONS, "status")

    steward = get_item(tables.stewards, {"stewardId": steward_id}) if steward_id else None
    if not steward:
        raise AppError(ErrorCode.NOT_FOUND, f"Steward {steward_id} not found")

    updated = update_fields(tables.stewards, {"stewardId": steward_id}, {"status": status, "updatedAt": _now()})

    if status == ApplicationStatus.APPROVED:
        for user in query_index(tables.users, "memberId-index", "memberId", steward["memberId"]):
            user_updates: Dict[str, Any] = {"stewardId": steward_id, "updatedAt": _now()}
            if user.get("role") in (None, Role.GUEST):
                user_updates["role"] = Role.STEWARD
            update_fields(tables.users, {"userId": user["userId"]}, user_updates)
            logger.info("Linked user to steward", steward_id=steward_id, user_id=user["userId"])

    logger.info("Steward status updated", steward_id=steward_id, status=status)
    result: Dict[str, Any] = normalize_item(updated)
    return result


def get_steward_activity(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminGetStewardActivity. Every claim, newest first."""
    _require_admin(event)
    listings = {item["listingId"]: item for item in scan_all(tables.steward_listings)}
    activity = []
    for claim in newest_first(scan_all(tables.steward_claims)):
        item: Dict[str, Any] = normalize_item(claim)
        listing = listings.get(claim.get("listingId", ""), {})
        item["listingName"] = listing.get("name")
        item["listingStatus"] = listing.get("status")
        item["stewardId"] = listing.get("stewardId")
        activity.append(item)
    return activity


def get_steward_chapter_donations(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminGetStewardDonations. Paid claim donations per sponsoring chapter."""
    _require_admin(event)
    return build_steward_donation_rows()


# ----------------------------------------------------------------------------
# Orders and donations
# ----------------------------------------------------------------------------


def list_orders(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListOrders."""
    _require_admin(event)
    return build_order_rows()


def get_chapter_donations(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminGetChapterDonations."""
    _require_admin(event)
    return build_chapter_donation_rows()


# ----------------------------------------------------------------------------
# Chapters and platform settings
# ----------------------------------------------------------------------------


def set_chapter_stripe_account(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: adminSetChapterStripeAccount(chapterId: ID!, stripeAccountId: String!)."""
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    chapter_id = args.get("chapterId")
    stripe_account_id = require_text(args.get("stripeAccountId"), "stripeAccountId", "Stripe account")

    if not chapter_id or not get_item(tables.chapters, {"chapterId": chapter_id}):
        raise AppError(ErrorCode.NOT_FOUND, f"Chapter {chapter_id} not found")

    updated = update_fields(
        tables.chapters,
        {"chapterId": chapter_id},
        {"stripeAccountId": stripe_account_id, "updatedAt": _now()},
    )
    logger.info("Chapter Stripe account set", chapter_id=chapter_id)
    result: Dict[str, Any] = normalize_item(updated)
    return result


def list_platform_settings(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: adminListPlatformSettings."""
    _require_admin(event)
    settings = scan_all(tables.platform_settings)
    return [normalize_item(s) for s in sorted(settings, key=lambda s: s["settingKey"])]


def set_platform_setting(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: adminSetPlatformSetting(key: String!, value: String, description: String)."""
    logger = get_logger(__name__, get_correlation_id(event))
    _require_admin(event)
    args = event.get("arguments", {})
    key = require_text(args.get("key"), "key", "Setting key")
    value = args.get("value")

    item: Dict[str, Any] = {
        "settingKey": key,
        "value": None if value is None else str(value).strip(),
        "updatedAt": _now(),
    }
    description = optional_text(args.get("description"))
    if description:
        item["description"] = description
    tables.platform_settings.put_item(Item=item)

    logger.info("Platform setting updated", key=key)
    return item
