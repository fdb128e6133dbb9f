"""Tests for shop filtering, sorting and calendar links."""

from typing import Any, Dict, List

import pytest

from src.utils.catalog import build_calendar_links, filter_products, sort_products
from src.utils.errors import AppError


@pytest.fixture
def products() -> List[Dict[str, Any]]:
    return [
        {"productId": "P1", "name": "Hoodie", "description": "Crimson", "sellerName": "Nupe Goods",
         "sellerId": "S1", "sellerSponsoringChapterId": "C1", "priceCents": 5000},
        {"productId": "P2", "name": "cane", "description": "Hand carved", "sellerName": "Woodshop",
         "sellerId": "S2", "sellerSponsoringChapterId": "C2", "priceCents": 12000},
        {"productId": "P3", "name": "Pin", "description": None, "sellerName": "Nupe Goods",
         "sellerId": "S1", "sellerSponsoringChapterId": "C1", "priceCents": 800},
    ]


class TestFilterProducts:
    def test_search_matches_seller_name_case_insensitively(self, products: List[Dict[str, Any]]) -> None:
        assert [p["productId"] for p in filter_products(products, search_query="nupe")] == ["P1", "P3"]

    def test_search_matches_description(self, products: List[Dict[str, Any]]) -> None:
        assert [p["productId"] for p in filter_products(products, search_query="CARVED")] == ["P2"]

    def test_blank_search_ignored(self, products: List[Dict[str, Any]]) -> None:
        assert len(filter_products(products, search_query="   ")) == 3

    def test_chapter_and_seller(self, products: List[Dict[str, Any]]) -> None:
        assert [p["productId"] for p in filter_products(products, chapter_id="C2")] == ["P2"]
        assert [p["productId"] for p in filter_products(products, seller_id="S1")] == ["P1", "P3"]

    def test_price_bounds_inclusive(self, products: List[Dict[str, Any]]) -> None:
        result = filter_products(products, min_price_cents=800, max_price_cents=5000)

        assert [p["productId"] for p in result] == ["P1", "P3"]


class TestSortProducts:
    def test_newest_keeps_order(self, products: List[Dict[str, Any]]) -> None:
        assert [p["productId"] for p in sort_products(products)] == ["P1", "P2", "P3"]

    def test_name_case_insensitive(self, products: List[Dict[str, Any]]) -> None:
        assert [p["name"] for p in sort_products(products, "name")] == ["cane", "Hoodie", "Pin"]

    def test_price(self, products: List[Dict[str, Any]]) -> None:
        assert [p["productId"] for p in sort_products(products, "price-low")] == ["P3", "P1", "P2"]
        assert [p["productId"] for p in sort_products(products, "price-high")] == ["P2", "P1", "P3"]

    def test_unknown_option(self, products: List[Dict[str, Any]]) -> None:
        with pytest.raises(AppError):
            sort_products(products, "popular")


class TestCalendarLinks:
    def test_default_duration_and_encoding(self) -> None:
        links = build_calendar_links(
            {"eventDate": "2030-01-05T19:00:00Z", "title": "Founders' Day & Gala", "location": "Hall A"}
        )

        assert "dates=20300105T190000Z/20300105T200000Z" in links["google"]
        assert "text=Founders'%20Day%20%26%20Gala" in links["google"]
        assert "details=Event%20at%20Hall%20A" in links["google"]
        assert links["apple"].startswith("webcal://")

    def test_outlook_uses_iso_millis(self) -> None:
        links = build_calendar_links(
            {"eventDate": "2030-01-05T14:00:00-05:00", "durationMinutes": 90, "title": "Gala",
             "location": "Hall", "city": "Dallas", "state": "TX"}
        )

        assert "startdt=2030-01-05T19:00:00.000Z" in links["outlook"]
        assert "enddt=2030-01-05T20:30:00.000Z" in links["outlook"]
        assert "location=Hall%2C%20Dallas%2C%20TX" in links["outlook"]
