"""
Lambda resolvers for saved (favorite) products.

Implements:
- addFavorite / removeFavorite
- isFavorite
- listMyFavorites: saved products with seller fields, most recently saved first
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_argument_required  # type: ignore[import-not-found]
    from utils.auth import Caller, authenticate  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_index, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import strip_prefix  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.responses import build_product_response  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_argument_required
    from ..utils.auth import Caller, authenticate
    from ..utils.dynamodb import get_item, query_index, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import strip_prefix
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import build_product_response


def favorite_key(caller: Caller, product_id: str) -> Dict[str, str]:
    """One favorite per (user, product)."""
    return {"favoriteId": f"FAVORITE#{caller['cognitoSub']}#{strip_prefix(product_id)}"}


def add_favorite(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: addFavorite(productId: ID!)

    Saving a product twice keeps the original savedAt.

    Raises:
        AppError: NOT_FOUND for unknown products
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    product_id = get_argument_required(event, "productId")
    if not get_item(tables.products, {"productId": product_id}):
        raise AppError(ErrorCode.NOT_FOUND, f"Product {product_id} not found")

    key = favorite_key(caller, product_id)
    existing = get_item(tables.favorites, key)
    if existing:
        return {"productId": product_id, "favorited": True, "savedAt": existing["savedAt"]}

    favorite = {
        **key,
        "userId": caller["userId"],
        "productId": product_id,
        "savedAt": datetime.now(timezone.utc).isoformat(),
    }
    tables.favorites.put_item(Item=favorite)
    logger.info("Product saved", user_id=caller["userId"], product_id=product_id)
    return {"productId": product_id, "favorited": True, "savedAt": favorite["savedAt"]}


def remove_favorite(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: removeFavorite(productId: ID!) -> {productId, favorited: false}."""
    caller = authenticate(event)
    product_id = get_argument_required(event, "productId")
    tables.favorites.delete_item(Key=favorite_key(caller, product_id))
    return {"productId": product_id, "favorited": False}


def is_favorite(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: isFavorite(productId: ID!) -> {productId, favorited}."""
    caller = authenticate(event)
    product_id = get_argument_required(event, "productId")
    favorited = get_item(tables.favorites, favorite_key(caller, product_id)) is not None
    return {"productId": product_id, "favorited": favorited}


def list_my_favorites(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """
    GraphQL query: listMyFavorites

    Products that have since been deleted are skipped.
    """
    caller = authenticate(event)
    favorites = query_index(tables.favorites, "userId-index", "userId", caller["userId"])
    favorites.sort(key=lambda f: f.get("savedAt", ""), reverse=True)

    sellers: Dict[str, Dict[str, Any]] = {}
    results: List[Dict[str, Any]] = []
    for favorite in favorites:
        product = get_item(tables.products, {"productId": favorite["productId"]})
        if not product:
            continue
        seller_id = product["sellerId"]
        if seller_id not in sellers:
            sellers[seller_id] = get_item(tables.sellers, {"sellerId": seller_id}) or {}
        response: Dict[str, Any] = dict(build_product_response(product, sellers[seller_id]))
        response["savedAt"] = favorite["savedAt"]
        results.append(response)
    return results
