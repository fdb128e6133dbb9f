"""Tests for the Stripe webhook endpoint."""

import json
from typing import Any, Callable, Dict, Iterator
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from src.handlers.stripe_webhook import lambda_handler
from src.utils.dynamodb import transact_update
from tests.unit.fixtures import make_claim, make_listing, make_order, make_seller, make_webhook_event

SESSION_ID = "cs_test_abc"


@pytest.fixture
def verified_event() -> Iterator[MagicMock]:
    """Skip signature verification; tests set return_value to the Stripe event."""
    with patch("src.handlers.stripe_webhook.construct_webhook_event") as construct:
        yield construct


def _stripe_event(event_type: str, obj: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def _item(table: Any, key: Dict[str, Any]) -> Dict[str, Any]:
    item: Dict[str, Any] = table.get_item(Key=key)["Item"]
    return item


class TestSignature:
    def test_missing_signature(self, dynamodb_tables: Dict[str, Any]) -> None:
        response = lambda_handler(make_webhook_event({}, signature=None), None)

        assert response["statusCode"] == 400
        assert json.loads(response["body"]) == {"error": "Missing stripe-signature header"}

    def test_invalid_signature(self, dynamodb_tables: Dict[str, Any], verified_event: MagicMock) -> None:
        verified_event.side_effect = ValueError("No signatures found")

        response = lambda_handler(make_webhook_event({}), None)

        assert response["statusCode"] == 400
        assert "No signatures found" in json.loads(response["body"])["error"]

    def test_base64_body_is_decoded(self, dynamodb_tables: Dict[str, Any], verified_event: MagicMock) -> None:
        verified_event.return_value = _stripe_event("customer.created", {})

        response = lambda_handler(make_webhook_event({"hello": "world"}, encode=True), None)

        assert response["statusCode"] == 200
        payload, signature = verified_event.call_args.args
        assert json.loads(payload) == {"hello": "world"}
        assert signature == "t=1,v1=abc"


class TestOrders:
    def test_completed_marks_paid_once(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("orders", make_order("PRODUCT#1", "ORDER#1", stripeSessionId=SESSION_ID))
        verified_event.return_value = _stripe_event("checkout.session.completed", {"id": SESSION_ID, "metadata": {}})

        assert lambda_handler(make_webhook_event({}), None)["statusCode"] == 200
        assert lambda_handler(make_webhook_event({}), None)["statusCode"] == 200

        assert _item(dynamodb_tables["orders"], {"orderId": "ORDER#1"})["status"] == "PAID"

    def test_expired_marks_failed(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("orders", make_order("PRODUCT#1", "ORDER#1", stripeSessionId=SESSION_ID))
        verified_event.return_value = _stripe_event("checkout.session.expired", {"id": SESSION_ID})

        lambda_handler(make_webhook_event({}), None)

        assert _item(dynamodb_tables["orders"], {"orderId": "ORDER#1"})["status"] == "FAILED"

    def test_paid_order_is_not_expired(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("orders", make_order("PRODUCT#1", "ORDER#1", stripeSessionId=SESSION_ID, status="PAID"))
        verified_event.return_value = _stripe_event("checkout.session.expired", {"id": SESSION_ID})

        lambda_handler(make_webhook_event({}), None)

        assert _item(dynamodb_tables["orders"], {"orderId": "ORDER#1"})["status"] == "PAID"

    def test_unknown_session_still_acknowledged(
        self, dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        verified_event.return_value = _stripe_event("checkout.session.completed", {"id": "cs_unknown"})

        response = lambda_handler(make_webhook_event({}), None)

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"received": True}


class TestStewardClaims:
    @pytest.fixture
    def claim(self, put: Callable[..., Dict[str, Any]]) -> Dict[str, Any]:
        put("steward_listings", make_listing("STEWARD#one", "LISTING#one", status="CLAIMED", claimedByMemberId="MEMBER#b"))
        return put("steward_claims", make_claim("LISTING#one", "MEMBER#b", "CLAIM#1", stripeSessionId=SESSION_ID))

    def _session(self) -> Dict[str, Any]:
        return {
            "id": SESSION_ID,
            "metadata": {"type": "steward_claim", "listing_id": "LISTING#one", "chapter_account_id": "acct_chapter"},
        }

    def test_completed_sells_listing_and_transfers_donation(
        self, claim: Dict[str, Any], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        verified_event.return_value = _stripe_event("checkout.session.completed", self._session())

        with patch("src.handlers.stripe_webhook.transfer_chapter_donation", return_value="tr_1") as transfer:
            lambda_handler(make_webhook_event({}), None)

        transfer.assert_called_once_with("acct_chapter", 500, SESSION_ID)
        stored_claim = _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#1"})
        assert stored_claim["status"] == "PAID"
        assert stored_claim["donationTransferId"] == "tr_1"
        listing = _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})
        assert listing["status"] == "SOLD"
        assert listing["claimedByMemberId"] == "MEMBER#b"

    def test_transfer_failure_keeps_claim_paid(
        self, claim: Dict[str, Any], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        verified_event.return_value = _stripe_event("checkout.session.completed", self._session())

        with patch("src.handlers.stripe_webhook.transfer_chapter_donation", side_effect=RuntimeError("no funds")):
            response = lambda_handler(make_webhook_event({}), None)

        assert response["statusCode"] == 200
        stored_claim = _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#1"})
        assert stored_claim["status"] == "PAID"
        assert "donationTransferId" not in stored_claim

    def test_replay_does_not_transfer_twice(
        self, claim: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        verified_event.return_value = _stripe_event("checkout.session.completed", self._session())

        with patch("src.handlers.stripe_webhook.transfer_chapter_donation", return_value="tr_1") as transfer:
            lambda_handler(make_webhook_event({}), None)
            lambda_handler(make_webhook_event({}), None)

        assert transfer.call_count == 1

    def test_expired_releases_listing(
        self, claim: Dict[str, Any], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        verified_event.return_value = _stripe_event("checkout.session.expired", self._session())

        lambda_handler(make_webhook_event({}), None)

        assert _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#1"})["status"] == "FAILED"
        listing = _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})
        assert listing["status"] == "ACTIVE"
        assert "claimedByMemberId" not in listing

    def test_expired_leaves_listing_held_by_another_member(
        self, put: Callable[..., Dict[str, Any]], claim: Dict[str, Any], dynamodb_tables: Dict[str, Any],
        verified_event: MagicMock,
    ) -> None:
        put("steward_claims", make_claim("LISTING#one", "MEMBER#a", "CLAIM#a", stripeSessionId="cs_a"))
        verified_event.return_value = _stripe_event(
            "checkout.session.expired", {"id": "cs_a", "metadata": {"type": "steward_claim"}}
        )

        lambda_handler(make_webhook_event({}), None)

        assert _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#a"})["status"] == "FAILED"
        listing = _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})
        assert listing["status"] == "CLAIMED"
        assert listing["claimedByMemberId"] == "MEMBER#b"


class TestStewardClaimSettlement:
    def _complete(self, verified_event: MagicMock, session_id: str) -> None:
        verified_event.return_value = _stripe_event(
            "checkout.session.completed",
            {"id": session_id, "metadata": {"type": "steward_claim", "chapter_account_id": "acct_chapter"}},
        )
        lambda_handler(make_webhook_event({}), None)

    def _seed_two_claims(self, put: Callable[..., Dict[str, Any]], **listing_fields: Any) -> None:
        put("steward_listings", make_listing("STEWARD#one", "LISTING#one", **listing_fields))
        put("steward_claims", make_claim("LISTING#one", "MEMBER#a", "CLAIM#a", stripeSessionId="cs_a"))
        put("steward_claims", make_claim("LISTING#one", "MEMBER#b", "CLAIM#b", stripeSessionId="cs_b"))

    def test_only_the_claim_holder_can_buy_a_claimed_listing(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        self._seed_two_claims(put, status="CLAIMED", claimedByMemberId="MEMBER#b")

        with patch("src.handlers.stripe_webhook.transfer_chapter_donation", return_value="tr_1") as transfer:
            self._complete(verified_event, "cs_a")
            self._complete(verified_event, "cs_b")

        claim_a = _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#a"})
        assert claim_a["status"] == "FAILED"
        assert claim_a["failureReason"] == "LISTING_UNAVAILABLE"
        assert _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#b"})["status"] == "PAID"
        assert transfer.call_count == 1
        listing = _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})
        assert listing["status"] == "SOLD"
        assert listing["claimedByMemberId"] == "MEMBER#b"

    def test_active_listing_sells_once(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        self._seed_two_claims(put, status="ACTIVE")

        with patch("src.handlers.stripe_webhook.transfer_chapter_donation", return_value="tr_1") as transfer:
            self._complete(verified_event, "cs_a")
            self._complete(verified_event, "cs_b")

        statuses = [
            _item(dynamodb_tables["steward_claims"], {"claimId": claim_id})["status"]
            for claim_id in ("CLAIM#a", "CLAIM#b")
        ]
        assert statuses == ["PAID", "FAILED"]
        transfer.assert_called_once_with("acct_chapter", 500, "cs_a")
        listing = _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})
        assert listing["status"] == "SOLD"
        assert listing["claimedByMemberId"] == "MEMBER#a"

    def test_failed_write_leaves_claim_pending_for_retry(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("steward_listings", make_listing("STEWARD#one", "LISTING#one", status="CLAIMED", claimedByMemberId="MEMBER#a"))
        put("steward_claims", make_claim("LISTING#one", "MEMBER#a", "CLAIM#a", stripeSessionId="cs_a"))
        outage = ClientError({"Error": {"Code": "InternalServerError", "Message": "boom"}}, "TransactWriteItems")
        attempts: list = []

        def flaky(updates: Any) -> None:
            attempts.append(updates)
            if len(attempts) == 1:
                raise outage
            transact_update(updates)

        with patch("src.handlers.stripe_webhook.transact_update", side_effect=flaky), patch(
            "src.handlers.stripe_webhook.transfer_chapter_donation", return_value="tr_1"
        ) as transfer:
            self._complete(verified_event, "cs_a")

            assert _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#a"})["status"] == "PENDING"
            assert _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})["status"] == "CLAIMED"
            transfer.assert_not_called()

            self._complete(verified_event, "cs_a")

        assert _item(dynamodb_tables["steward_claims"], {"claimId": "CLAIM#a"})["status"] == "PAID"
        assert _item(dynamodb_tables["steward_listings"], {"listingId": "LISTING#one"})["status"] == "SOLD"
        transfer.assert_called_once()


class TestAccountUpdated:
    def test_backfills_missing_business_fields(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("sellers", make_seller("SELLER#1", stripeAccountId="acct_1", businessName="Keep Me"))
        verified_event.return_value = _stripe_event("account.updated", {"id": "acct_1"})
        details = {"businessName": "Stripe Name", "businessEmail": "biz@example.com", "website": None}

        with patch("src.handlers.stripe_webhook.get_account_business_details", return_value=details):
            lambda_handler(make_webhook_event({}), None)

        seller = _item(dynamodb_tables["sellers"], {"sellerId": "SELLER#1"})
        assert seller["businessName"] == "Keep Me"
        assert seller["businessEmail"] == "biz@example.com"
        assert "website" not in seller

    def test_unknown_account_ignored(self, dynamodb_tables: Dict[str, Any], verified_event: MagicMock) -> None:
        verified_event.return_value = _stripe_event("account.updated", {"id": "acct_unknown"})

        with patch("src.handlers.stripe_webhook.get_account_business_details") as details:
            assert lambda_handler(make_webhook_event({}), None)["statusCode"] == 200
        details.assert_not_called()

    def test_stripe_error_is_swallowed_with_200(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put("sellers", make_seller("SELLER#1", stripeAccountId="acct_1"))
        verified_event.return_value = _stripe_event("account.updated", {"id": "acct_1"})

        with patch("src.handlers.stripe_webhook.get_account_business_details", side_effect=RuntimeError("boom")):
            assert lambda_handler(make_webhook_event({}), None)["statusCode"] == 200

    def test_address_merged_per_field(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        put(
            "sellers",
            make_seller(
                "SELLER#1",
                stripeAccountId="acct_1",
                businessAddress={"line1": "1 Main St", "city": "", "state": "IN"},
            ),
        )
        verified_event.return_value = _stripe_event("account.updated", {"id": "acct_1"})
        details = {
            "businessAddress": {
                "line1": "99 Other Rd",
                "line2": None,
                "city": "Bloomington",
                "state": "OH",
                "postalCode": "47401",
                "country": "US",
            }
        }

        with patch("src.handlers.stripe_webhook.get_account_business_details", return_value=details):
            lambda_handler(make_webhook_event({}), None)

        address = _item(dynamodb_tables["sellers"], {"sellerId": "SELLER#1"})["businessAddress"]
        assert address == {
            "line1": "1 Main St",
            "city": "Bloomington",
            "state": "IN",
            "postalCode": "47401",
            "country": "US",
        }

    def test_complete_address_is_not_rewritten(
        self, put: Callable[..., Dict[str, Any]], dynamodb_tables: Dict[str, Any], verified_event: MagicMock
    ) -> None:
        stored = {"line1": "1 Main St", "city": "Gary"}
        put("sellers", make_seller("SELLER#1", stripeAccountId="acct_1", businessAddress=stored, updatedAt="then"))
        verified_event.return_value = _stripe_event("account.updated", {"id": "acct_1"})

        with patch(
            "src.handlers.stripe_webhook.get_account_business_details",
            return_value={"businessAddress": {"line1": "2 Elm St", "city": "Gary"}},
        ):
            lambda_handler(make_webhook_event({}), None)

        seller = _item(dynamodb_tables["sellers"], {"sellerId": "SELLER#1"})
        assert seller["businessAddress"] == stored
        assert seller["updatedAt"] == "then"
