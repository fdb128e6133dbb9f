"""
Lambda resolvers for shop products.

Implements:
- createProduct: add a product to a seller's store
- getProduct
- listProducts: active products (approved sellers) with search, filters and sort
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import authenticate  # type: ignore[import-not-found]
    from utils.catalog import filter_products, sort_products  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_index, scan_all, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus, VerificationStatus, get_member  # type: ignore[import-not-found]
    from utils.responses import build_product_response  # type: ignore[import-not-found]
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import optional_text, require_text, validate_cents  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import authenticate
    from ..utils.catalog import filter_products, sort_products
    from ..utils.dynamodb import get_item, query_index, scan_all, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus, VerificationStatus, get_member
    from ..utils.responses import build_product_response
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import optional_text, require_text, validate_cents


def seller_is_verified_member(seller: Dict[str, Any]) -> bool:
    """Whether the seller's linked member profile is VERIFIED."""
    member = get_member(seller.get("memberId"))
    return member is not None and member.get("verificationStatus") == VerificationStatus.VERIFIED


def check_branding_rule(seller: Dict[str, Any], is_kappa_branded: bool) -> None:
    """
    Vendors verified as businesses but not as brothers may only list
    fraternity-branded merchandise.

    Raises:
        AppError: INVALID_INPUT when the product must be branded and is not
    """
    if seller.get("verificationStatus") != VerificationStatus.VERIFIED:
        return
    if seller_is_verified_member(seller):
        return
    if not is_kappa_branded:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            "Verified non-member sellers can only sell Kappa branded merchandise",
            {"field": "isKappaBranded"},
        )


def create_product(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create a product for a seller.

    GraphQL mutation: createProduct(input: CreateProductInput!)

    Raises:
        AppError: FORBIDDEN unless the caller owns the seller (or is admin),
            NOT_FOUND for unknown sellers, INVALID_INPUT on bad input
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    args = event.get("arguments", {}).get("input") or {}

    seller_id = require_text(args.get("sellerId"), "sellerId", "Seller")
    if caller["sellerId"] != seller_id and not caller["isAdmin"]:
        raise AppError(ErrorCode.FORBIDDEN, "You can only add products to your own store")

    seller = get_item(tables.sellers, {"sellerId": seller_id})
    if not seller:
        raise AppError(ErrorCode.NOT_FOUND, f"Seller {seller_id} not found")

    name = require_text(args.get("name"), "name", "Name")
    description = require_text(args.get("description"), "description", "Description")
    price_cents = validate_cents(args.get("priceCents"), "priceCents", minimum=1)
    is_kappa_branded = bool(args.get("isKappaBranded", False))
    check_branding_rule(seller, is_kappa_branded)

    now = datetime.now(timezone.utc).isoformat()
    product: Dict[str, Any] = {
        "productId": new_id("PRODUCT"),
        "sellerId": seller_id,
        "name": name,
        "description": description,
        "priceCents": price_cents,
        "isKappaBranded": is_kappa_branded,
        "createdAt": now,
        "updatedAt": now,
    }
    sponsored_chapter_id = optional_text(args.get("sponsoredChapterId"))
    if sponsored_chapter_id:
        product["sponsoredChapterId"] = sponsored_chapter_id
    if args.get("imageKey"):
        product["imageUrl"] = resolve_upload_key(args["imageKey"], caller["cognitoSub"], "products")

    tables.products.put_item(Item=product)
    logger.info("Product created", product_id=product["productId"], seller_id=seller_id)
    return dict(build_product_response(product, seller))


def get_product(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getProduct(productId: ID!)."""
    product_id = event.get("arguments", {}).get("productId")
    product = get_item(tables.products, {"productId": product_id}) if product_id else None
    if not product:
        raise AppError(ErrorCode.NOT_FOUND, f"Product {product_id} not found")
    seller = get_item(tables.sellers, {"sellerId": product["sellerId"]})
    return dict(build_product_response(product, seller or {}))


def get_active_products() -> List[Dict[str, Any]]:
    """Products of APPROVED sellers, enriched with seller fields, newest first."""
    sellers = {
        s["sellerId"]: s
        for s in query_index(tables.sellers, "status-index", "status", ApplicationStatus.APPROVED)
    }
    products = [
        dict(build_product_response(p, sellers[p["sellerId"]]))
        for p in scan_all(tables.products)
        if p.get("sellerId") in sellers
    ]
    products.sort(key=lambda p: p.get("createdAt", ""), reverse=True)
    return products


def _optional_int(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    return validate_cents(value, field)


def list_products(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """
    GraphQL query: listProducts(filter: ProductFilterInput)

    Filter fields: searchQuery, chapterId, sellerId, minPriceCents,
    maxPriceCents, sortBy (newest | name | price-low | price-high).
    """
    filters = event.get("arguments", {}).get("filter") or {}
    products = filter_products(
        get_active_products(),
        search_query=filters.get("searchQuery"),
        chapter_id=filters.get("chapterId"),
        seller_id=filters.get("sellerId"),
        min_price_cents=_optional_int(filters.get("minPriceCents"), "minPriceCents"),
        max_price_cents=_optional_int(filters.get("maxPriceCents"), "maxPriceCents"),
    )
    return sort_products(products, filters.get("sortBy"))
