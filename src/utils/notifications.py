"""
In-app notifications.

Buyers who try to purchase from a seller without a Stripe account get a
PURCHASE_BLOCKED notification tied to the product. Once the seller can take
payments, every buyer with an unread PURCHASE_BLOCKED notification for one
of the seller's products gets an ITEM_AVAILABLE notification.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .dynamodb import query_index, tables
from .ids import new_id
from .logging import get_logger

logger = get_logger(__name__)


class NotificationType:
    PURCHASE_BLOCKED = "PURCHASE_BLOCKED"
    ITEM_AVAILABLE = "ITEM_AVAILABLE"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    ORDER_SHIPPED = "ORDER_SHIPPED"

    ALL = (PURCHASE_BLOCKED, ITEM_AVAILABLE, ORDER_CONFIRMED, ORDER_SHIPPED)


def create_notification(
    user_email: str,
    notification_type: str,
    title: str,
    message: str,
    related_product_id: Optional[str] = None,
    related_order_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Store an unread notification for user_email and return it."""
    notification: Dict[str, Any] = {
        "notificationId": new_id("NOTIFICATION"),
        "userEmail": user_email.strip().lower(),
        "type": notification_type,
        "title": title,
        "message": message,
        "isRead": False,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    if related_product_id:
        notification["relatedProductId"] = related_product_id
    if related_order_id:
        notification["relatedOrderId"] = related_order_id
    tables.notifications.put_item(Item=notification)
    return notification


def notifications_for(user_email: str) -> List[Dict[str, Any]]:
    """All of a user's notifications, newest first."""
    items = query_index(tables.notifications, "userEmail-index", "userEmail", user_email.strip().lower())
    return sorted(items, key=lambda n: n.get("createdAt", ""), reverse=True)


def interested_buyer_emails(product_id: str) -> List[str]:
    """Distinct emails with an unread PURCHASE_BLOCKED notification for the product."""
    emails: List[str] = []
    for item in query_index(tables.notifications, "relatedProductId-index", "relatedProductId", product_id):
        if item.get("type") != NotificationType.PURCHASE_BLOCKED or item.get("isRead"):
            continue
        if item["userEmail"] not in emails:
            emails.append(item["userEmail"])
    return emails


def record_purchase_blocked(buyer_email: str, product: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Tell a buyer the product is temporarily unavailable.

    Returns None without writing when the buyer is already waiting on the
    product. Failures are logged, never raised.
    """
    product_id = product["productId"]
    try:
        if buyer_email.strip().lower() in interested_buyer_emails(product_id):
            return None
        return create_notification(
            buyer_email,
            NotificationType.PURCHASE_BLOCKED,
            "Item Temporarily Unavailable",
            f'"{product.get("name", "")}" is temporarily unavailable. The seller is finalizing '
            "their payout setup. We'll notify you when it becomes available!",
            related_product_id=product_id,
        )
    except Exception as e:
        logger.error("Failed to record blocked purchase", product_id=product_id, error=str(e))
        return None


def notify_interested_buyers(seller_id: str) -> int:
    """
    Send ITEM_AVAILABLE to every buyer waiting on one of the seller's products.

    Returns:
        Number of notifications created. Failures are logged, never raised.
    """
    created = 0
    try:
        products = query_index(tables.products, "sellerId-index", "sellerId", seller_id)
        for product in products:
            for email in interested_buyer_emails(product["productId"]):
                create_notification(
                    email,
                    NotificationType.ITEM_AVAILABLE,
                    "Item Now Available!",
                    f'"{product.get("name", "")}" is now available for purchase! '
                    "The seller has completed their payment setup.",
                    related_product_id=product["productId"],
                )
                created += 1
    except Exception as e:
        logger.error("Failed to notify interested buyers", seller_id=seller_id, error=str(e))
    if created:
        logger.info("Notified interested buyers", seller_id=seller_id, count=created)
    return created
