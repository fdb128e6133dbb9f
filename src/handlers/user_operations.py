"""Lambda resolvers for the signed-in user (getMe, deleteMyAccount)."""

from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import Caller, authenticate  # type: ignore[import-not-found]
    from utils.dynamodb import delete_items, get_item, query_index, scan_all, tables  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import get_fraternity_member_id, resolve_role_flags  # type: ignore[import-not-found]
    from utils.notifications import notifications_for  # type: ignore[import-not-found]
    from utils.responses import build_user_response  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import Caller, authenticate
    from ..utils.dynamodb import delete_items, get_item, query_index, scan_all, tables
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import get_fraternity_member_id, resolve_role_flags
    from ..utils.notifications import notifications_for
    from ..utils.responses import build_user_response


def get_me(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Return the caller's user record with derived role flags.

    GraphQL query: getMe

    Returns:
        User fields plus name, fraternityMemberId, isFraternityMember,
        isSeller, isPromoter and isSteward
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)

    # authenticate() may have cleared an orphaned member link, so re-read the row
    user = get_item(tables.users, {"userId": caller["userId"]}) or {}
    response: Dict[str, Any] = dict(build_user_response(user))
    response.update(resolve_role_flags(user))
    response["isAdmin"] = caller["isAdmin"]

    logger.info(
        "Resolved current user",
        user_id=caller["userId"],
        role=response["role"],
        is_fraternity_member=response["isFraternityMember"],
    )
    return response


def _keys(items: List[Dict[str, Any]], attribute: str) -> List[Dict[str, Any]]:
    return [{attribute: value} for value in sorted({item[attribute] for item in items})]


def _order_keys(caller: Caller, product_ids: set) -> List[Dict[str, Any]]:
    """Orders for the caller's products plus orders the caller placed as a buyer."""
    email = caller["email"].strip().lower()
    orders = [
        o
        for o in scan_all(tables.orders)
        if o.get("productId") in product_ids or (email and o.get("buyerEmail", "").lower() == email)
    ]
    return _keys(orders, "orderId")


def delete_my_account(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Delete the caller and everything they own.

    GraphQL mutation: deleteMyAccount

    Removes the caller's buyer orders and the orders for their products
    first, then the seller with its products, the promoter with its events,
    the steward with its listings and the claims on them, the caller's
    notifications and favorites, the member profile and finally the user
    record. The Cognito user is left for the client to delete after sign-out.

    Returns:
        {"success", "message", "deleted"} where deleted counts removed items
        per table
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    user = get_item(tables.users, {"userId": caller["userId"]}) or {}
    member_id = caller["memberId"] or get_fraternity_member_id(user)
    deleted: Dict[str, int] = {}

    product_ids: set = set()
    if caller["sellerId"]:
        products = query_index(tables.products, "sellerId-index", "sellerId", caller["sellerId"])
        product_ids = {p["productId"] for p in products}

    deleted["orders"] = delete_items(tables.orders, _order_keys(caller, product_ids))

    if caller["sellerId"]:
        deleted["products"] = delete_items(tables.products, [{"productId": p} for p in sorted(product_ids)])
        deleted["sellers"] = delete_items(tables.sellers, [{"sellerId": caller["sellerId"]}])

    if caller["promoterId"]:
        events = query_index(tables.events, "promoterId-index", "promoterId", caller["promoterId"])
        deleted["events"] = delete_items(tables.events, _keys(events, "eventId"))
        deleted["promoters"] = delete_items(tables.promoters, [{"promoterId": caller["promoterId"]}])

    if caller["stewardId"]:
        listings = query_index(tables.steward_listings, "stewardId-index", "stewardId", caller["stewardId"])
        claims = [
            claim
            for listing in listings
            for claim in query_index(tables.steward_claims, "listingId-index", "listingId", listing["listingId"])
        ]
        deleted["stewardClaims"] = delete_items(tables.steward_claims, _keys(claims, "claimId"))
        deleted["stewardListings"] = delete_items(tables.steward_listings, _keys(listings, "listingId"))
        deleted["stewards"] = delete_items(tables.stewards, [{"stewardId": caller["stewardId"]}])

    if caller["email"]:
        deleted["notifications"] = delete_items(
            tables.notifications, _keys(notifications_for(caller["email"]), "notificationId")
        )
    favorites = query_index(tables.favorites, "userId-index", "userId", caller["userId"])
    deleted["favorites"] = delete_items(tables.favorites, _keys(favorites, "favoriteId"))

    if member_id:
        deleted["members"] = delete_items(tables.members, [{"memberId": member_id}])
    deleted["users"] = delete_items(tables.users, [{"userId": caller["userId"]}])

    logger.info("Account deleted", user_id=caller["userId"], member_id=member_id, deleted=deleted)
    return {"success": True, "message": "Account deleted successfully", "deleted": deleted}
