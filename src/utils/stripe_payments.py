"""
Stripe Connect integration.

Sellers, promoters and stewards are paid through Stripe Connect Express
accounts. Product purchases are destination charges to the seller with an 8%
platform application fee. Steward claims pay the steward shipping, while the
platform keeps its fee plus the chapter donation and forwards the donation to
the chapter once the session completes.
"""

import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import stripe

from .dynamodb import get_item, tables
from .logging import get_logger

logger = get_logger(__name__)

PRODUCT_PLATFORM_FEE_RATE = Decimal("0.08")
DEFAULT_STEWARD_FEE_RATE = Decimal("0.05")
CURRENCY = "usd"

STEWARD_FEE_PERCENTAGE_SETTING = "steward_platform_fee_percentage"
STEWARD_FEE_FLAT_SETTING = "steward_platform_fee_flat_cents"


def round_half_up(value: Decimal) -> int:
    """Round to whole cents, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_stripe_configured() -> bool:
    """A usable secret key is non-blank and not the 'your-key-here' placeholder."""
    key = os.getenv("STRIPE_SECRET_KEY", "").strip()
    return bool(key) and "here" not in key


def _configure() -> None:
    key = os.getenv("STRIPE_SECRET_KEY", "").strip()
    if key and not key.startswith("sk_"):
        logger.error(
            "STRIPE_SECRET_KEY does not look like a secret key",
            key_prefix=key[:7],
            hint="publishable keys (pk_) cannot be used server-side",
        )
    stripe.api_key = key


def _plain(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        value = to_dict()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def as_dict(obj: Any) -> Dict[str, Any]:
    """Convert a StripeObject (nested ones included) or a dict into plain dicts."""
    if obj is None:
        return {}
    result: Dict[str, Any] = _plain(obj)
    return result


def describe_stripe_error(error: Exception) -> str:
    """Human-facing explanation of a Stripe failure."""
    message = str(error)
    if "publishable API key" in message or "pk_" in message:
        return (
            "Stripe is configured with a publishable key (pk_) instead of a secret key (sk_). "
            "The account was approved without a Stripe account."
        )
    return f"Stripe account could not be created: {message}"


def create_connect_account(email: str, country: str = "US") -> Dict[str, Any]:
    """Create an Express connected account with card payments and transfers."""
    _configure()
    account = stripe.Account.create(
        type="express",
        country=country,
        email=email,
        capabilities={
            "card_payments": {"requested": True},
            "transfers": {"requested": True},
        },
    )
    logger.info("Created Stripe connected account", account_id=account.id)
    return {"id": account.id}


def create_account_link(account_id: str, return_url: str, refresh_url: str) -> str:
    """Return the hosted onboarding URL for a connected account."""
    _configure()
    link = stripe.AccountLink.create(
        account=account_id,
        refresh_url=refresh_url,
        return_url=return_url,
        type="account_onboarding",
    )
    url: str = link.url
    return url


def _frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")


def create_seller_onboarding_link(account_id: str) -> str:
    """Onboarding link that brings the seller back to the Stripe setup page."""
    setup_page = f"{_frontend_url()}/seller-dashboard/stripe-setup"
    return create_account_link(
        account_id,
        return_url=f"{setup_page}?status=complete",
        refresh_url=f"{setup_page}?status=refresh",
    )


def create_product_checkout_session(
    product: Dict[str, Any],
    seller_account_id: str,
    buyer_email: str,
    chapter_id: Optional[str],
) -> Any:
    """
    Create a Checkout session for one product as a destination charge.

    Args:
        product: Product item (priceCents, name, description, imageUrl, productId)
        seller_account_id: Seller's connected account (acct_...)
        buyer_email: Prefilled customer email
        chapter_id: Seller's sponsoring chapter, recorded in metadata

    Returns:
        The Stripe Checkout Session
    """
    _configure()
    price_cents = int(product["priceCents"])
    application_fee = round_half_up(Decimal(price_cents) * PRODUCT_PLATFORM_FEE_RATE)

    product_data: Dict[str, Any] = {"name": product["name"]}
    if product.get("description"):
        product_data["description"] = product["description"]
    if product.get("imageUrl"):
        product_data["images"] = [product["imageUrl"]]

    frontend_url = _frontend_url()
    return stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        line_items=[
            {
                "price_data": {
                    "currency": CURRENCY,
                    "product_data": product_data,
                    "unit_amount": price_cents,
                },
                "quantity": 1,
            }
        ],
        customer_email=buyer_email,
        payment_intent_data={
            "application_fee_amount": application_fee,
            "on_behalf_of": seller_account_id,
            "transfer_data": {"destination": seller_account_id},
        },
        success_url=f"{frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{frontend_url}/cancel",
        metadata={
            "product_id": product["productId"],
            "chapter_id": chapter_id or "",
        },
    )


def _get_setting(key: str) -> Optional[str]:
    item = get_item(tables.platform_settings, {"settingKey": key})
    value = item.get("value") if item else None
    return None if value is None else str(value)


def calculate_steward_platform_fee(shipping_cents: int, donation_cents: int) -> int:
    """
    Platform fee for a steward claim.

    A percentage setting in (0, 1] wins, then a non-negative flat-cents setting,
    then 5% of shipping plus donation.
    """
    base = Decimal(int(shipping_cents) + int(donation_cents))

    percentage = _get_setting(STEWARD_FEE_PERCENTAGE_SETTING)
    if percentage is not None:
        try:
            rate = Decimal(percentage)
            usable = Decimal(0) < rate <= Decimal(1)
        except ArithmeticError:
            usable = False
        if usable:
            return round_half_up(base * rate)

    flat = _get_setting(STEWARD_FEE_FLAT_SETTING)
    if flat is not None:
        try:
            flat_cents = int(Decimal(flat))
        except (ArithmeticError, ValueError):
            flat_cents = -1
        if flat_cents >= 0:
            return flat_cents

    return round_half_up(base * DEFAULT_STEWARD_FEE_RATE)


def create_steward_checkout_session(
    listing: Dict[str, Any],
    steward_account_id: str,
    chapter_account_id: str,
    buyer_email: str,
    shipping_cents: int,
    platform_fee_cents: int,
    chapter_donation_cents: int,
) -> Any:
    """
    Create a Checkout session for claiming a steward listing.

    The steward receives the shipping amount; the platform keeps the fee and
    the chapter donation, which is transferred to the chapter on completion.
    """
    _configure()
    line_items: List[Dict[str, Any]] = []
    for label, amount in (
        ("Shipping", shipping_cents),
        ("Platform Fee", platform_fee_cents),
        ("Chapter Donation", chapter_donation_cents),
    ):
        if amount > 0:
            line_items.append(
                {
                    "price_data": {
                        "currency": CURRENCY,
                        "product_data": {"name": f"{label} - {listing['name']}"},
                        "unit_amount": amount,
                    },
                    "quantity": 1,
                }
            )

    frontend_url = _frontend_url()
    return stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        line_items=line_items,
        customer_email=buyer_email,
        payment_intent_data={
            "application_fee_amount": platform_fee_cents + chapter_donation_cents,
            "on_behalf_of": steward_account_id,
            "transfer_data": {"destination": steward_account_id, "amount": shipping_cents},
        },
        success_url=f"{frontend_url}/steward-checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{frontend_url}/steward-marketplace",
        metadata={
            "listing_id": listing["listingId"],
            "type": "steward_claim",
            "steward_account_id": steward_account_id,
            "chapter_account_id": chapter_account_id,
            "chapter_donation_cents": str(chapter_donation_cents),
            "shipping_cents": str(shipping_cents),
        },
    )


def transfer_chapter_donation(
    chapter_account_id: str, amount_cents: int, session_id: str
) -> Optional[str]:
    """Forward a steward claim's chapter donation; returns the transfer ID."""
    if amount_cents <= 0:
        return None
    _configure()
    transfer = stripe.Transfer.create(
        amount=amount_cents,
        currency=CURRENCY,
        destination=chapter_account_id,
        transfer_group=session_id,
        metadata={"type": "chapter_donation", "checkout_session_id": session_id},
    )
    transfer_id: str = transfer.id
    return transfer_id


def construct_webhook_event(payload: bytes, signature: str) -> Dict[str, Any]:
    """
    Verify a webhook signature and return the event as a plain dict.

    Raises:
        ValueError: invalid payload
        stripe.SignatureVerificationError: bad signature
    """
    secret = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    event = stripe.Webhook.construct_event(payload, signature, secret)
    return as_dict(event)


def _build_address(address: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not address:
        return None
    return {
        "line1": address.get("line1"),
        "line2": address.get("line2"),
        "city": address.get("city"),
        "state": address.get("state"),
        "postalCode": address.get("postal_code"),
        "country": address.get("country"),
    }


def extract_business_details(account: Dict[str, Any]) -> Dict[str, Any]:
    """Pull seller-facing business details out of a Stripe account object."""
    business_profile = account.get("business_profile") or {}
    company = account.get("company") or {}
    individual = account.get("individual") or {}

    full_name = " ".join(
        part for part in (individual.get("first_name"), individual.get("last_name")) if part
    )

    if company.get("name") or company.get("tax_id"):
        account_type: Optional[str] = "company"
    elif individual.get("first_name") or individual.get("last_name"):
        account_type = "individual"
    else:
        account_type = None

    tax_id = company.get("tax_id")
    if not tax_id and individual.get("ssn_last_4"):
        tax_id = f"***-**-{individual['ssn_last_4']}"

    return {
        "businessName": business_profile.get("name") or company.get("name") or full_name or None,
        "businessEmail": business_profile.get("support_email") or account.get("email"),
        "website": business_profile.get("url"),
        "businessPhone": business_profile.get("support_phone") or company.get("phone"),
        "taxId": tax_id,
        "stripeAccountType": account_type,
        "businessAddress": _build_address(company.get("address") or individual.get("address") or {}),
    }


def get_account_business_details(account_id: str) -> Dict[str, Any]:
    """Retrieve a connected account and extract its business details."""
    _configure()
    account = as_dict(stripe.Account.retrieve(account_id))
    return extract_business_details(account)
