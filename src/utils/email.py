"""
Transactional email via Amazon SES.

Every sender returns True/False and never raises: a failed email must not
fail the mutation that triggered it.
"""

import html
import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

import boto3

from .logging import get_logger

if TYPE_CHECKING:
    from mypy_boto3_ses.client import SESClient

logger = get_logger(__name__)

# Module-level SES client proxy for testing
ses_client: "SESClient | None" = None


def _get_ses_client() -> "SESClient":
    if ses_client is not None:
        return ses_client
    return boto3.client("ses", endpoint_url=os.getenv("SES_ENDPOINT"))


def _platform_name() -> str:
    return os.getenv("PLATFORM_NAME", "1Kappa")


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")


def _render(greeting_name: str, paragraphs: List[str], bullets: Optional[List[str]] = None) -> tuple[str, str]:
    """Render matching text and HTML bodies from plain paragraphs."""
    platform = _platform_name()
    footer = f"© {datetime.now(timezone.utc).year} {platform}. All rights reserved."
    closing = f"Best regards,\nThe {platform} Team"

    text_parts = [f"Hello {greeting_name},", *paragraphs]
    if bullets:
        text_parts.append("\n".join(f"• {b}" for b in bullets))
    text_parts += [closing, footer]
    text_body = "\n\n".join(text_parts)

    html_parts = [f"<p>Hello {html.escape(greeting_name)},</p>"]
    html_parts += [f"<p>{html.escape(p)}</p>" for p in paragraphs]
    if bullets:
        items = "".join(f"<li>{html.escape(b)}</li>" for b in bullets)
        html_parts.append(f"<ul>{items}</ul>")
    html_parts.append(f"<p>{html.escape(closing).replace(chr(10), '<br>')}</p>")
    html_parts.append(f'<p style="color:#888;font-size:12px">{html.escape(footer)}</p>')
    html_body = f"<!DOCTYPE html><html><body>{''.join(html_parts)}</body></html>"
    return text_body, html_body


def send_email(to_address: str, subject: str, text_body: str, html_body: str) -> bool:
    """Send one email through SES. Returns False (and logs) on any failure."""
    from_email = os.getenv("FROM_EMAIL", "no-reply@example.com")
    try:
        _get_ses_client().send_email(
            Source=from_email,
            Destination={"ToAddresses": [to_address]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {
                    "Html": {"Data": html_body, "Charset": "UTF-8"},
                    "Text": {"Data": text_body, "Charset": "UTF-8"},
                },
            },
        )
    except Exception as e:
        logger.error("Failed to send email", to=to_address, subject=subject, error=str(e))
        return False

    logger.info("Email sent", to=to_address, subject=subject)
    return True


def send_welcome_email(email: str, name: str) -> bool:
    platform = _platform_name()
    text_body, html_body = _render(
        name,
        [
            f"We're thrilled to welcome you to the {platform} community! "
            "Your registration has been successfully completed.",
            "As a member, you now have access to:",
        ],
        [
            "Connect with brothers from across all chapters",
            "Discover and support member-owned businesses",
            "Attend exclusive events and gatherings",
            "Shop for authentic fraternity merchandise",
        ],
    )
    return send_email(email, f"Welcome to {platform}!", text_body, html_body)


def send_seller_application_submitted_email(email: str, name: str) -> bool:
    platform = _platform_name()
    text_body, html_body = _render(
        name,
        [
            "Thank you for applying to become a seller. We have received your application "
            "and our team will review it shortly.",
            "You will receive another email as soon as a decision has been made.",
        ],
    )
    return send_email(email, f"Seller Application Received - {platform}", text_body, html_body)


def send_seller_approved_email(email: str, name: str, invitation_token: Optional[str] = None) -> bool:
    """Approval email; with a token it links to seller account setup, otherwise to login."""
    platform = _platform_name()
    if invitation_token:
        link = f"{frontend_url()}/seller-setup?token={invitation_token}"
        steps = [
            f"Set up your seller account: {link}",
            "Create a secure password for your account",
            "Start adding products to your store",
        ]
    else:
        steps = [
            f"Log in to your existing account: {frontend_url()}/login",
            "Navigate to your seller dashboard",
            "Start adding products to your store",
        ]
    text_body, html_body = _render(
        name,
        [
            "Great news! Your seller application has been approved. "
            f"You can now start listing products in the {platform} shop.",
            "Next steps:",
        ],
        steps,
    )
    return send_email(
        email,
        f"Congratulations! Your Seller Application Has Been Approved - {platform}",
        text_body,
        html_body,
    )


def send_seller_stripe_setup_required_email(
    email: str, seller_name: str, product_name: str, product_id: str
) -> bool:
    """Sent when a buyer tries to check out a product whose seller has no Stripe account."""
    text_body, html_body = _render(
        seller_name,
        [
            "A Brother attempted to purchase your item!",
            f"Product: {product_name} ({product_id})",
            "To activate your listings and start receiving payments, connect your Stripe "
            f"account: {frontend_url()}/seller-setup",
        ],
    )
    return send_email(
        email, "Action Required: Connect Stripe to Activate Your Listings", text_body, html_body
    )
