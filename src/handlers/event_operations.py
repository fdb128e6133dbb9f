"""
Lambda resolvers for promoter events.

Implements:
- createEvent: approved promoters publish an event
- listEvents: upcoming events of approved promoters (or every event)
- getEvent: one event with add-to-calendar links
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import authenticate  # type: ignore[import-not-found]
    from utils.catalog import build_calendar_links  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, scan_all, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus  # type: ignore[import-not-found]
    from utils.responses import build_event_response  # type: ignore[import-not-found]
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import (  # type: ignore[import-not-found]
        optional_text,
        parse_iso_datetime,
        require_text,
        validate_cents,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import authenticate
    from ..utils.catalog import build_calendar_links
    from ..utils.dynamodb import get_item, scan_all, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus
    from ..utils.responses import build_event_response
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import (
        optional_text,
        parse_iso_datetime,
        require_text,
        validate_cents,
    )


def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise AppError(ErrorCode.INVALID_INPUT, f"{field} must be a positive integer", {"field": field})
    return value


def create_event(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Publish an event for the calling promoter.

    GraphQL mutation: createEvent(input: CreateEventInput!)

    Raises:
        AppError: FORBIDDEN without an approved promoter profile,
            NOT_FOUND when the linked promoter record is gone,
            INVALID_INPUT on bad input
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    args = event.get("arguments", {}).get("input") or {}

    if not caller["promoterId"]:
        raise AppError(ErrorCode.FORBIDDEN, "Promoter profile required")
    promoter = get_item(tables.promoters, {"promoterId": caller["promoterId"]})
    if not promoter:
        raise AppError(ErrorCode.NOT_FOUND, "Promoter not found")
    if promoter.get("status") != ApplicationStatus.APPROVED:
        raise AppError(ErrorCode.FORBIDDEN, "Promoter must be approved to create events")

    event_date = parse_iso_datetime(args.get("eventDate"), "eventDate")
    now = datetime.now(timezone.utc).isoformat()
    item: Dict[str, Any] = {
        "eventId": new_id("EVENT"),
        "promoterId": promoter["promoterId"],
        "title": require_text(args.get("title"), "title", "Title"),
        "location": require_text(args.get("location"), "location", "Location"),
        "eventDate": event_date.isoformat(),
        "ticketPriceCents": validate_cents(args.get("ticketPriceCents", 0), "ticketPriceCents"),
        "createdAt": now,
        "updatedAt": now,
    }
    for field in ("description", "city", "state", "sponsoredChapterId"):
        value = optional_text(args.get(field))
        if value:
            item[field] = value
    if args.get("maxAttendees") is not None:
        item["maxAttendees"] = _positive_int(args["maxAttendees"], "maxAttendees")
    if args.get("durationMinutes") is not None:
        item["durationMinutes"] = _positive_int(args["durationMinutes"], "durationMinutes")
    if args.get("imageKey"):
        item["imageUrl"] = resolve_upload_key(args["imageKey"], caller["cognitoSub"], "events")

    tables.events.put_item(Item=item)
    logger.info("Event created", event_id=item["eventId"], promoter_id=promoter["promoterId"])
    return dict(build_event_response(item, promoter))


def list_events(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """
    GraphQL query: listEvents(all: Boolean)

    By default only upcoming events (eventDate >= now) of APPROVED promoters,
    soonest first. With all=true every event is returned, also soonest first.
    """
    include_all = bool(event.get("arguments", {}).get("all", False))
    promoters = {p["promoterId"]: p for p in scan_all(tables.promoters)}
    now = datetime.now(timezone.utc)

    events = []
    for item in scan_all(tables.events):
        promoter = promoters.get(item.get("promoterId", ""))
        if not include_all:
            if not promoter or promoter.get("status") != ApplicationStatus.APPROVED:
                continue
            if parse_iso_datetime(item["eventDate"], "eventDate") < now:
                continue
        events.append(dict(build_event_response(item, promoter or {})))

    events.sort(key=lambda e: parse_iso_datetime(e["eventDate"], "eventDate"))
    return events


def get_event(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getEvent(eventId: ID!). Includes calendarLinks."""
    event_id = event.get("arguments", {}).get("eventId")
    item = get_item(tables.events, {"eventId": event_id}) if event_id else None
    if not item:
        raise AppError(ErrorCode.NOT_FOUND, f"Event {event_id} not found")
    promoter = get_item(tables.promoters, {"promoterId": item["promoterId"]}) or {}
    response: Dict[str, Any] = dict(build_event_response(item, promoter))
    response["calendarLinks"] = build_calendar_links(response)
    return response
