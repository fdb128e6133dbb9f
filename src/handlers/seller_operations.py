"""
Lambda resolvers for sellers.

Implements:
- applyAsSeller: submit a seller application (status PENDING)
- listSellerCollections: approved sellers with their products, for the shop
- createStripeOnboardingLink: hosted Stripe onboarding for an approved seller
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_caller_id  # type: ignore[import-not-found]
    from utils.auth import authenticate, authenticate_optional  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_index, scan_all, tables  # type: ignore[import-not-found]
    from utils.email import send_seller_application_submitted_email  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus  # type: ignore[import-not-found]
    from utils.responses import build_product_response, build_seller_response  # type: ignore[import-not-found]
    from utils.stripe_payments import create_seller_onboarding_link  # type: ignore[import-not-found]
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import (  # type: ignore[import-not-found]
        optional_text,
        require_text,
        validate_email,
        validate_social_links,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_caller_id
    from ..utils.auth import authenticate, authenticate_optional
    from ..utils.dynamodb import get_item, query_index, scan_all, tables
    from ..utils.email import send_seller_application_submitted_email
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus
    from ..utils.responses import build_product_response, build_seller_response
    from ..utils.stripe_payments import create_seller_onboarding_link
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import (
        optional_text,
        require_text,
        validate_email,
        validate_social_links,
    )


def apply_as_seller(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Submit a seller application.

    GraphQL mutation: applyAsSeller(input: SellerApplicationInput!)

    The caller does not need a marketplace user record; when they have one
    with a member profile, the application is linked to that member. Images
    must have been uploaded by the calling identity.

    Raises:
        AppError: INVALID_INPUT / INVALID_EMAIL on bad input, FORBIDDEN for
            foreign upload keys
    """
    logger = get_logger(__name__, get_correlation_id(event))
    args = event.get("arguments", {}).get("input") or {}
    caller = authenticate_optional(event)
    uploader = get_caller_id(event) or ""

    name = require_text(args.get("name"), "name", "Name")
    email = validate_email(args.get("email"))
    sponsoring_chapter_id = require_text(
        args.get("sponsoringChapterId"), "sponsoringChapterId", "Sponsoring chapter"
    )
    vendor_license_number = require_text(
        args.get("vendorLicenseNumber"), "vendorLicenseNumber", "Vendor license number"
    )
    social_links = validate_social_links(args.get("socialLinks"))

    if not args.get("storeLogoKey"):
        raise AppError(ErrorCode.INVALID_INPUT, "Store logo is required", {"field": "storeLogoKey"})
    store_logo_url = resolve_upload_key(args["storeLogoKey"], uploader, "store-logos")

    headshot_url = None
    if args.get("headshotKey"):
        headshot_url = resolve_upload_key(args["headshotKey"], uploader, "headshots")
    elif optional_text(args.get("existingHeadshotUrl")):
        headshot_url = args["existingHeadshotUrl"].strip()

    now = datetime.now(timezone.utc).isoformat()
    seller: Dict[str, Any] = {
        "sellerId": new_id("SELLER"),
        "name": name,
        "email": email,
        "sponsoringChapterId": sponsoring_chapter_id,
        "vendorLicenseNumber": vendor_license_number,
        "storeLogoUrl": store_logo_url,
        "socialLinks": social_links,
        "status": ApplicationStatus.PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    business_name = optional_text(args.get("businessName"))
    if business_name:
        seller["businessName"] = business_name
    if headshot_url:
        seller["headshotUrl"] = headshot_url
    if caller and caller["memberId"]:
        seller["memberId"] = caller["memberId"]

    tables.sellers.put_item(Item=seller)
    send_seller_application_submitted_email(email, name)

    logger.info(
        "Seller application submitted",
        seller_id=seller["sellerId"],
        member_id=seller.get("memberId"),
    )
    return dict(build_seller_response(seller))


def list_seller_collections(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """
    Approved sellers that have at least one product, ordered by name.

    GraphQL query: listSellerCollections
    """
    sellers = query_index(tables.sellers, "status-index", "status", ApplicationStatus.APPROVED)
    products_by_seller: Dict[str, List[Dict[str, Any]]] = {}
    for product in scan_all(tables.products):
        products_by_seller.setdefault(product.get("sellerId", ""), []).append(product)

    collections = []
    for seller in sorted(sellers, key=lambda s: str(s.get("name") or "").casefold()):
        products = products_by_seller.get(seller["sellerId"])
        if not products:
            continue
        products.sort(key=lambda p: p.get("createdAt", ""), reverse=True)
        collection: Dict[str, Any] = dict(build_seller_response(seller))
        collection["products"] = [dict(build_product_response(p, seller)) for p in products]
        collection["productCount"] = len(products)
        collections.append(collection)
    return collections


def create_stripe_onboarding_link(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Start (or resume) Stripe Connect onboarding for the caller's seller account.

    GraphQL mutation: createStripeOnboardingLink -> {url}

    Raises:
        AppError: FORBIDDEN without a seller profile, INVALID_STATE until the
            seller is approved with a Stripe account, PAYMENT_ERROR when
            Stripe fails
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    if not caller["sellerId"]:
        raise AppError(ErrorCode.FORBIDDEN, "Seller profile not found")

    seller = get_item(tables.sellers, {"sellerId": caller["sellerId"]})
    if not seller:
        raise AppError(ErrorCode.NOT_FOUND, f"Seller {caller['sellerId']} not found")
    if seller.get("status") != ApplicationStatus.APPROVED or not seller.get("stripeAccountId"):
        raise AppError(ErrorCode.INVALID_STATE, "Seller does not have a Stripe account yet")

    try:
        url = create_seller_onboarding_link(seller["stripeAccountId"])
    except Exception as e:
        logger.error("Failed to create onboarding link", seller_id=seller["sellerId"], error=str(e))
        raise AppError(ErrorCode.PAYMENT_ERROR, "Could not start Stripe onboarding. Please try again.")

    logger.info("Stripe onboarding link created", seller_id=seller["sellerId"])
    return {"url": url}
