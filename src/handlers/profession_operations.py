"""
Lambda resolvers for the professions lookup used by member profiles.

Reads are public. Create, update and delete require an admin caller.

Implements:
- listProfessions(includeInactive) / getProfession
- adminCreateProfession / adminUpdateProfession / adminDeleteProfession
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_argument, get_argument_required, get_input  # type: ignore[import-not-found]
    from utils.auth import authenticate, require_admin  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, scan_all, tables, update_fields  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.responses import normalize_item  # type: ignore[import-not-found]
    from utils.validation import require_text  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_argument, get_argument_required, get_input
    from ..utils.auth import authenticate, require_admin
    from ..utils.dynamodb import get_item, scan_all, tables, update_fields
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.responses import normalize_item
    from ..utils.validation import require_text


def _sorted(professions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(professions, key=lambda p: (int(p.get("displayOrder", 0)), p.get("name", "").lower()))


def _display_order(value: Any) -> int:
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int):
        raise AppError(ErrorCode.INVALID_INPUT, "displayOrder must be a number", {"field": "displayOrder"})
    return value


def _is_active(value: Any) -> bool:
    if not isinstance(value, bool):
        raise AppError(ErrorCode.INVALID_INPUT, "isActive must be a boolean", {"field": "isActive"})
    return value


def _check_unique_name(name: str, exclude_id: Optional[str] = None) -> None:
    """Names are unique regardless of case."""
    wanted = name.lower()
    for profession in scan_all(tables.professions):
        if profession["professionId"] != exclude_id and profession.get("name", "").lower() == wanted:
            raise AppError(ErrorCode.ALREADY_EXISTS, f"Profession {name} already exists", {"field": "name"})


def _get_profession(profession_id: str) -> Dict[str, Any]:
    profession = get_item(tables.professions, {"professionId": profession_id})
    if not profession:
        raise AppError(ErrorCode.NOT_FOUND, f"Profession {profession_id} not found")
    return profession


def list_professions(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listProfessions(includeInactive: Boolean) ordered by displayOrder, then name."""
    include_inactive = bool(get_argument(event, "includeInactive", False))
    professions = [
        p for p in scan_all(tables.professions) if include_inactive or p.get("isActive", True)
    ]
    return [normalize_item(p) for p in _sorted(professions)]


def get_profession(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getProfession(professionId: ID!)."""
    return normalize_item(_get_profession(get_argument_required(event, "professionId")))


def create_profession(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: adminCreateProfession(input: {name, displayOrder, isActive})

    Raises:
        AppError: INVALID_INPUT without a name, ALREADY_EXISTS for a taken name
    """
    logger = get_logger(__name__, get_correlation_id(event))
    require_admin(authenticate(event))
    args = get_input(event)

    name = require_text(args.get("name"), "name", "Name").strip()
    _check_unique_name(name)

    now = datetime.now(timezone.utc).isoformat()
    profession = {
        "professionId": new_id("PROFESSION"),
        "name": name,
        "displayOrder": _display_order(args["displayOrder"]) if args.get("displayOrder") is not None else 0,
        "isActive": _is_active(args["isActive"]) if args.get("isActive") is not None else True,
        "createdAt": now,
        "updatedAt": now,
    }
    tables.professions.put_item(Item=profession)
    logger.info("Profession created", profession_id=profession["professionId"], name=name)
    return normalize_item(profession)


def update_profession(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: adminUpdateProfession(professionId: ID!, input: {name, displayOrder, isActive})

    Raises:
        AppError: NOT_FOUND, INVALID_INPUT when no field is given or a field
            is malformed, ALREADY_EXISTS for a taken name
    """
    logger = get_logger(__name__, get_correlation_id(event))
    require_admin(authenticate(event))
    profession_id = get_argument_required(event, "professionId")
    args = get_input(event)

    updates: Dict[str, Any] = {}
    if args.get("name") is not None:
        updates["name"] = require_text(args["name"], "name", "Name").strip()
    if args.get("displayOrder") is not None:
        updates["displayOrder"] = _display_order(args["displayOrder"])
    if args.get("isActive") is not None:
        updates["isActive"] = _is_active(args["isActive"])
    if not updates:
        raise AppError(ErrorCode.INVALID_INPUT, "No fields to update")

    _get_profession(profession_id)
    if "name" in updates:
        _check_unique_name(updates["name"], exclude_id=profession_id)

    updates["updatedAt"] = datetime.now(timezone.utc).isoformat()
    updated = update_fields(tables.professions, {"professionId": profession_id}, updates)
    logger.info("Profession updated", profession_id=profession_id, fields=sorted(updates))
    return normalize_item(updated)


def delete_profession(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL mutation: adminDeleteProfession(professionId: ID!) -> {deleted}."""
    logger = get_logger(__name__, get_correlation_id(event))
    require_admin(authenticate(event))
    profession_id = get_argument_required(event, "professionId")
    _get_profession(profession_id)
    tables.professions.delete_item(Key={"professionId": profession_id})
    logger.info("Profession deleted", profession_id=profession_id)
    return {"deleted": True}
