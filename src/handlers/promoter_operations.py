"""Lambda resolvers for promoter applications."""

from datetime import datetime, timezone
from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_caller_id  # type: ignore[import-not-found]
    from utils.auth import authenticate_optional  # type: ignore[import-not-found]
    from utils.dynamodb import tables  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import ApplicationStatus  # type: ignore[import-not-found]
    from utils.responses import normalize_item  # type: ignore[import-not-found]
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import (  # type: ignore[import-not-found]
        optional_text,
        require_text,
        validate_email,
        validate_social_links,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_caller_id
    from ..utils.auth import authenticate_optional
    from ..utils.dynamodb import tables
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import ApplicationStatus
    from ..utils.responses import normalize_item
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import (
        optional_text,
        require_text,
        validate_email,
        validate_social_links,
    )


def apply_as_promoter(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Submit a promoter application (status PENDING).

    GraphQL mutation: applyAsPromoter(input: PromoterApplicationInput!)
    """
    logger = get_logger(__name__, get_correlation_id(event))
    args = event.get("arguments", {}).get("input") or {}
    caller = authenticate_optional(event)

    now = datetime.now(timezone.utc).isoformat()
    promoter: Dict[str, Any] = {
        "promoterId": new_id("PROMOTER"),
        "name": require_text(args.get("name"), "name", "Name"),
        "email": validate_email(args.get("email")),
        "membershipNumber": require_text(args.get("membershipNumber"), "membershipNumber", "Membership number"),
        "initiatedChapterId": require_text(
            args.get("initiatedChapterId"), "initiatedChapterId", "Initiated chapter"
        ),
        "socialLinks": validate_social_links(args.get("socialLinks")),
        "status": ApplicationStatus.PENDING,
        "createdAt": now,
        "updatedAt": now,
    }
    sponsoring_chapter_id = optional_text(args.get("sponsoringChapterId"))
    if sponsoring_chapter_id:
        promoter["sponsoringChapterId"] = sponsoring_chapter_id
    if args.get("headshotKey"):
        promoter["headshotUrl"] = resolve_upload_key(
            args["headshotKey"], get_caller_id(event) or "", "headshots"
        )
    if caller and caller["memberId"]:
        promoter["memberId"] = caller["memberId"]

    tables.promoters.put_item(Item=promoter)
    logger.info("Promoter application submitted", promoter_id=promoter["promoterId"])
    result: Dict[str, Any] = normalize_item(promoter)
    return result
