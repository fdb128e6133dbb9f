"""Tests for Stripe Checkout resolvers (Stripe SDK mocked)."""

from typing import Any, Callable, Dict
from unittest.mock import MagicMock

import pytest

from src.handlers.checkout import create_product_checkout, create_steward_checkout
from src.utils.errors import AppError, ErrorCode
from tests.unit.fixtures import make_listing, make_member, make_product, make_seller, make_user


@pytest.fixture
def session(mock_stripe: MagicMock) -> MagicMock:
    created = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")
    mock_stripe.checkout.Session.create.return_value = created
    return created


def _product_args(product_id: str = "PRODUCT#1", email: str = "Buyer@Example.com") -> Dict[str, Any]:
    return {"input": {"productId": product_id, "buyerEmail": email}}


class TestProductCheckout:
    def test_creates_pending_order(
        self,
        seller_user: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        session: MagicMock,
        mock_stripe: MagicMock,
        dynamodb_tables: Dict[str, Any],
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("products", make_product("SELLER#one", "PRODUCT#1", 2500))

        result = create_product_checkout(event_for("", arguments=_product_args()), None)

        assert result["sessionId"] == "cs_test_1"
        assert result["url"] == "https://checkout.stripe.com/c/cs_test_1"
        order = dynamodb_tables["orders"].get_item(Key={"orderId": result["orderId"]})["Item"]
        assert order["status"] == "PENDING"
        assert order["amountCents"] == 2500
        assert order["buyerEmail"] == "buyer@example.com"
        assert order["chapterId"] == "CHAPTER#alpha"

        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["payment_intent_data"]["application_fee_amount"] == 200
        assert kwargs["payment_intent_data"]["transfer_data"] == {"destination": "acct_seller"}
        assert kwargs["metadata"] == {"product_id": "PRODUCT#1", "chapter_id": "CHAPTER#alpha"}

    def test_unknown_product(self, dynamodb_tables: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]) -> None:
        with pytest.raises(AppError) as exc_info:
            create_product_checkout(event_for("", arguments=_product_args("PRODUCT#none")), None)
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_invalid_buyer_email(self, dynamodb_tables: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]) -> None:
        with pytest.raises(AppError) as exc_info:
            create_product_checkout(event_for("", arguments=_product_args(email="nope")), None)
        assert exc_info.value.error_code == ErrorCode.INVALID_EMAIL

    def test_unapproved_seller(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]
    ) -> None:
        put("sellers", make_seller("SELLER#p", status="PENDING", stripeAccountId="acct_p"))
        put("products", make_product("SELLER#p", "PRODUCT#1"))

        with pytest.raises(AppError) as exc_info:
            create_product_checkout(event_for("", arguments=_product_args()), None)
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT

    def test_seller_without_stripe_is_emailed(
        self,
        put: Callable[..., Dict[str, Any]],
        mock_ses: MagicMock,
        dynamodb_tables: Dict[str, Any],
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("sellers", make_seller("SELLER#n", email="nostripe@example.com"))
        put("products", make_product("SELLER#n", "PRODUCT#1"))

        with pytest.raises(AppError) as exc_info:
            create_product_checkout(event_for("", arguments=_product_args()), None)

        assert "Stripe account" in exc_info.value.message
        sent = mock_ses.send_email.call_args.kwargs
        assert sent["Destination"] == {"ToAddresses": ["nostripe@example.com"]}
        assert "PRODUCT#1" in sent["Message"]["Body"]["Text"]["Data"]
        assert dynamodb_tables["orders"].scan()["Items"] == []

    def test_buyer_blocked_by_missing_stripe_is_notified_once(
        self,
        put: Callable[..., Dict[str, Any]],
        mock_ses: MagicMock,
        dynamodb_tables: Dict[str, Any],
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("sellers", make_seller("SELLER#n", email="nostripe@example.com"))
        put("products", make_product("SELLER#n", "PRODUCT#1", name="Crimson Tote"))

        for _ in range(2):
            with pytest.raises(AppError):
                create_product_checkout(event_for("", arguments=_product_args()), None)

        notifications = dynamodb_tables["notifications"].scan()["Items"]
        assert len(notifications) == 1
        assert notifications[0]["userEmail"] == "buyer@example.com"
        assert notifications[0]["type"] == "PURCHASE_BLOCKED"
        assert notifications[0]["relatedProductId"] == "PRODUCT#1"
        assert '"Crimson Tote" is temporarily unavailable' in notifications[0]["message"]
        assert notifications[0]["isRead"] is False

    def test_stripe_failure(
        self,
        seller_user: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        mock_stripe: MagicMock,
        dynamodb_tables: Dict[str, Any],
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("products", make_product("SELLER#one", "PRODUCT#1"))
        mock_stripe.checkout.Session.create.side_effect = RuntimeError("api down")

        with pytest.raises(AppError) as exc_info:
            create_product_checkout(event_for("", arguments=_product_args()), None)
        assert exc_info.value.error_code == ErrorCode.PAYMENT_ERROR
        assert dynamodb_tables["orders"].scan()["Items"] == []


class TestStewardCheckout:
    @pytest.fixture
    def buyer(self, put: Callable[..., Dict[str, Any]], steward_user: Dict[str, Any]) -> Dict[str, Any]:
        member = put("members", make_member("MEMBER#buyer", email="buyer@example.com"))
        put("users", make_user("buyer-sub", "buyer@example.com", memberId=member["memberId"]))
        put(
            "steward_listings",
            make_listing(
                steward_user["stewardId"], "LISTING#one", status="CLAIMED", claimedByMemberId=member["memberId"]
            ),
        )
        return member

    def test_creates_pending_claim(
        self,
        buyer: Dict[str, Any],
        session: MagicMock,
        mock_stripe: MagicMock,
        dynamodb_tables: Dict[str, Any],
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        result = create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)

        # 1000 shipping + 500 donation + 5% platform fee
        assert result["totalAmountCents"] == 1575
        claim = dynamodb_tables["steward_claims"].get_item(Key={"claimId": result["claimId"]})["Item"]
        assert claim["status"] == "PENDING"
        assert claim["platformFeeCents"] == 75
        assert claim["claimantMemberId"] == "MEMBER#buyer"
        assert claim["stripeSessionId"] == "cs_test_1"

        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert len(kwargs["line_items"]) == 3
        assert kwargs["payment_intent_data"]["application_fee_amount"] == 575
        assert kwargs["payment_intent_data"]["transfer_data"] == {"destination": "acct_steward", "amount": 1000}
        assert kwargs["metadata"]["type"] == "steward_claim"
        assert kwargs["metadata"]["chapter_account_id"] == "acct_chapter"

    def test_percentage_setting_overrides_fee(
        self,
        buyer: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        session: MagicMock,
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("platform_settings", {"settingKey": "steward_platform_fee_percentage", "value": "0.10"})

        result = create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)

        assert result["totalAmountCents"] == 1650

    def test_chapter_without_stripe(
        self,
        buyer: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        chapter: Dict[str, Any],
        session: MagicMock,
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("chapters", {k: v for k, v in chapter.items() if k != "stripeAccountId"})

        with pytest.raises(AppError) as exc_info:
            create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)
        assert "Chapter" in exc_info.value.message

    def test_sold_listing(
        self,
        buyer: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        session: MagicMock,
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("steward_listings", make_listing("STEWARD#one", "LISTING#one", status="SOLD"))

        with pytest.raises(AppError) as exc_info:
            create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)
        assert exc_info.value.error_code == ErrorCode.INVALID_STATE

    def test_listing_claimed_by_another_member(
        self,
        buyer: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        session: MagicMock,
        mock_stripe: MagicMock,
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put(
            "steward_listings",
            make_listing("STEWARD#one", "LISTING#one", status="CLAIMED", claimedByMemberId="MEMBER#other"),
        )

        with pytest.raises(AppError) as exc_info:
            create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)
        assert exc_info.value.error_code == ErrorCode.INVALID_STATE
        mock_stripe.checkout.Session.create.assert_not_called()

    def test_active_listing_can_be_bought_directly(
        self,
        buyer: Dict[str, Any],
        put: Callable[..., Dict[str, Any]],
        session: MagicMock,
        event_for: Callable[..., Dict[str, Any]],
    ) -> None:
        put("steward_listings", make_listing("STEWARD#one", "LISTING#one", status="ACTIVE"))

        result = create_steward_checkout(event_for("buyer-sub", arguments={"listingId": "LISTING#one"}), None)

        assert result["sessionId"] == "cs_test_1"

    def test_requires_verified_member(
        self, buyer: Dict[str, Any], guest_user: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]
    ) -> None:
        with pytest.raises(AppError) as exc_info:
            create_steward_checkout(event_for("guest-sub", arguments={"listingId": "LISTING#one"}), None)
        assert exc_info.value.error_code == ErrorCode.FORBIDDEN
