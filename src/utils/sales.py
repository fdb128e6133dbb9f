"""Order and donation rollups shared by the admin dashboards and exported reports."""

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List

from .dynamodb import scan_all, tables
from .responses import build_order_response
from .stripe_payments import round_half_up

CHAPTER_DONATION_RATE = Decimal("0.03")


def newest_first(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda item: item.get("createdAt", ""), reverse=True)


def chapter_names() -> Dict[str, str]:
    return {c["chapterId"]: c.get("name", "") for c in scan_all(tables.chapters)}


def build_order_rows() -> List[Dict[str, Any]]:
    """All orders newest first, with product, seller and chapter names."""
    products = {p["productId"]: p for p in scan_all(tables.products)}
    sellers = {s["sellerId"]: s for s in scan_all(tables.sellers)}
    names = chapter_names()
    rows = []
    for order in newest_first(scan_all(tables.orders)):
        row: Dict[str, Any] = dict(build_order_response(order))
        product = products.get(order.get("productId", ""), {})
        row["productName"] = product.get("name")
        row["sellerName"] = sellers.get(product.get("sellerId", ""), {}).get("name")
        row["chapterName"] = names.get(order.get("chapterId") or "")
        rows.append(row)
    return rows


def donation_rows(totals: Dict[str, int]) -> List[Dict[str, Any]]:
    """Per-chapter totals as rows, largest first."""
    names = chapter_names()
    rows = [
        {
            "chapterId": chapter_id,
            "chapterName": names.get(chapter_id),
            "totalDonationsCents": total,
        }
        for chapter_id, total in totals.items()
    ]
    rows.sort(key=lambda r: r["totalDonationsCents"], reverse=True)
    return rows


def build_chapter_donation_rows() -> List[Dict[str, Any]]:
    """3% of every PAID order with a chapter, summed per chapter."""
    totals: Dict[str, Decimal] = defaultdict(Decimal)
    for order in scan_all(tables.orders):
        if order.get("status") == "PAID" and order.get("chapterId"):
            totals[order["chapterId"]] += Decimal(int(order.get("amountCents") or 0)) * CHAPTER_DONATION_RATE
    return donation_rows({k: round_half_up(v) for k, v in totals.items()})


def build_steward_donation_rows() -> List[Dict[str, Any]]:
    """Donations of PAID steward claims, summed per the listing's sponsoring chapter."""
    listings = {item["listingId"]: item for item in scan_all(tables.steward_listings)}
    totals: Dict[str, int] = defaultdict(int)
    for claim in scan_all(tables.steward_claims):
        if claim.get("status") != "PAID":
            continue
        chapter_id = listings.get(claim.get("listingId", ""), {}).get("sponsoringChapterId")
        if chapter_id:
            totals[chapter_id] += int(claim.get("chapterDonationCents") or 0)
    return donation_rows(totals)
