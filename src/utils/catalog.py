"""
Shop catalog helpers: product filtering/sorting and event calendar links.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .errors import AppError, ErrorCode

SORT_OPTIONS = ("newest", "name", "price-low", "price-high")

DEFAULT_EVENT_DURATION_MINUTES = 60


def _matches_search(product: Dict[str, Any], query: str) -> bool:
    needle = query.casefold()
    return any(
        needle in str(product.get(field) or "").casefold()
        for field in ("name", "description", "sellerName")
    )


def filter_products(
    products: List[Dict[str, Any]],
    search_query: Optional[str] = None,
    chapter_id: Optional[str] = None,
    seller_id: Optional[str] = None,
    min_price_cents: Optional[int] = None,
    max_price_cents: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Apply shop filters to enriched products.

    Search is a case-insensitive substring match on name, description and
    seller name; blank queries are ignored. The chapter filter matches the
    seller's sponsoring chapter. Price bounds are inclusive.
    """
    result = products
    if search_query and search_query.strip():
        query = search_query.strip()
        result = [p for p in result if _matches_search(p, query)]
    if chapter_id:
        result = [p for p in result if p.get("sellerSponsoringChapterId") == chapter_id]
    if seller_id:
        result = [p for p in result if p.get("sellerId") == seller_id]
    if min_price_cents is not None:
        result = [p for p in result if int(p.get("priceCents") or 0) >= min_price_cents]
    if max_price_cents is not None:
        result = [p for p in result if int(p.get("priceCents") or 0) <= max_price_cents]
    return result


def sort_products(products: List[Dict[str, Any]], sort_by: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Sort products for display. ``newest`` keeps the incoming (newest-first) order.

    Raises:
        AppError: INVALID_INPUT for an unknown sort option
    """
    sort_by = sort_by or "newest"
    if sort_by not in SORT_OPTIONS:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"sortBy must be one of: {', '.join(SORT_OPTIONS)}",
            {"sortBy": sort_by},
        )
    if sort_by == "name":
        return sorted(products, key=lambda p: str(p.get("name") or "").casefold())
    if sort_by == "price-low":
        return sorted(products, key=lambda p: int(p.get("priceCents") or 0))
    if sort_by == "price-high":
        return sorted(products, key=lambda p: int(p.get("priceCents") or 0), reverse=True)
    return list(products)


def _encode(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def _calendar_stamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%dT%H%M%SZ")


def _iso_millis(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_calendar_links(event: Dict[str, Any]) -> Dict[str, str]:
    """Add-to-calendar URLs (Google, Apple webcal, Outlook) for an event."""
    start = datetime.fromisoformat(str(event["eventDate"]).replace("Z", "+00:00"))
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    start = start.astimezone(timezone.utc)
    duration = int(event.get("durationMinutes") or DEFAULT_EVENT_DURATION_MINUTES)
    end = start + timedelta(minutes=duration)

    location_text = event.get("location") or ""
    if event.get("city") and event.get("state"):
        location_text = f"{location_text}, {event['city']}, {event['state']}"

    title = _encode(event.get("title") or "")
    details = _encode(event.get("description") or f"Event at {event.get('location') or ''}")
    location = _encode(location_text)
    dates = f"{_calendar_stamp(start)}/{_calendar_stamp(end)}"
    query = f"action=TEMPLATE&text={title}&dates={dates}&details={details}&location={location}"

    return {
        "google": f"https://calendar.google.com/calendar/render?{query}",
        "apple": f"webcal://calendar.google.com/calendar/ical?{query}",
        "outlook": (
            "https://outlook.live.com/calendar/0/deeplink/compose?"
            f"subject={title}&startdt={_iso_millis(start)}&enddt={_iso_millis(end)}"
            f"&body={details}&location={location}"
        ),
    }
