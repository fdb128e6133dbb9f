"""
Lambda resolvers for the signed-in user's notifications.

Notifications are addressed by email, so a buyer who checked out before
signing up sees them once they register with the same address.

Implements:
- listMyNotifications / getUnreadNotificationCount
- markNotificationRead / markAllNotificationsRead
- deleteNotification
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_argument, get_argument_required  # type: ignore[import-not-found]
    from utils.auth import Caller, authenticate  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, tables, update_fields  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.notifications import notifications_for  # type: ignore[import-not-found]
    from utils.responses import normalize_item  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_argument, get_argument_required
    from ..utils.auth import Caller, authenticate
    from ..utils.dynamodb import get_item, tables, update_fields
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.notifications import notifications_for
    from ..utils.responses import normalize_item

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _inbox(caller: Caller) -> List[Dict[str, Any]]:
    if not caller["email"]:
        return []
    return notifications_for(caller["email"])


def _own_notification(caller: Caller, notification_id: str) -> Dict[str, Any]:
    """Notifications of other users are reported as missing."""
    item = get_item(tables.notifications, {"notificationId": notification_id})
    if not item or not caller["email"] or item.get("userEmail") != caller["email"].strip().lower():
        raise AppError(ErrorCode.NOT_FOUND, f"Notification {notification_id} not found")
    return item


def list_my_notifications(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """
    GraphQL query: listMyNotifications(limit: Int)

    Newest first; limit defaults to 50 and is capped at 200.
    """
    caller = authenticate(event)
    limit = get_argument(event, "limit", DEFAULT_LIMIT)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise AppError(ErrorCode.INVALID_INPUT, "limit must be a positive integer", {"field": "limit"})
    return [normalize_item(n) for n in _inbox(caller)[: min(limit, MAX_LIMIT)]]


def get_unread_notification_count(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getUnreadNotificationCount -> {count}."""
    caller = authenticate(event)
    return {"count": sum(1 for n in _inbox(caller) if not n.get("isRead"))}


def mark_notification_read(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: markNotificationRead(notificationId: ID!)."""
    caller = authenticate(event)
    notification_id = get_argument_required(event, "notificationId")
    item = _own_notification(caller, notification_id)
    if item.get("isRead"):
        return normalize_item(item)
    updated = update_fields(
        tables.notifications,
        {"notificationId": notification_id},
        {"isRead": True, "readAt": datetime.now(timezone.utc).isoformat()},
    )
    return normalize_item(updated)


def mark_all_notifications_read(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: markAllNotificationsRead -> {updated}."""
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    now = datetime.now(timezone.utc).isoformat()
    unread = [n for n in _inbox(caller) if not n.get("isRead")]
    for item in unread:
        update_fields(
            tables.notifications,
            {"notificationId": item["notificationId"]},
            {"isRead": True, "readAt": now},
        )
    logger.info("Marked notifications read", user_id=caller["userId"], count=len(unread))
    return {"updated": len(unread)}


def delete_notification(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: deleteNotification(notificationId: ID!) -> {deleted}."""
    caller = authenticate(event)
    notification_id = get_argument_required(event, "notificationId")
    _own_notification(caller, notification_id)
    tables.notifications.delete_item(Key={"notificationId": notification_id})
    return {"deleted": True}
