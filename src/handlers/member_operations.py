"""
Lambda resolvers for fraternity member profiles.

Implements:
- registerMember: create the caller's member profile (verification PENDING)
- saveMemberDraft / getMyMemberDraft: partial registration saved between visits
- getMyMemberProfile / updateMyMemberProfile
- listMembers: directory of verified brothers with privacy flags applied
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_input  # type: ignore[import-not-found]
    from utils.auth import Caller, authenticate  # type: ignore[import-not-found]
    from utils.dynamodb import get_item, query_index, scan_all, tables, update_fields  # type: ignore[import-not-found]
    from utils.email import send_welcome_email  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import new_id  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import (  # type: ignore[import-not-found]
        OnboardingStatus,
        RegistrationStatus,
        VerificationStatus,
        is_registration_draft,
    )
    from utils.responses import normalize_item  # type: ignore[import-not-found]
    from utils.uploads import resolve_upload_key  # type: ignore[import-not-found]
    from utils.validation import (  # type: ignore[import-not-found]
        normalize_phone,
        optional_text,
        require_text,
        validate_social_links,
        validate_year,
    )
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_input
    from ..utils.auth import Caller, authenticate
    from ..utils.dynamodb import get_item, query_index, scan_all, tables, update_fields
    from ..utils.email import send_welcome_email
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import new_id
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import (
        OnboardingStatus,
        RegistrationStatus,
        VerificationStatus,
        is_registration_draft,
    )
    from ..utils.responses import normalize_item
    from ..utils.uploads import resolve_upload_key
    from ..utils.validation import (
        normalize_phone,
        optional_text,
        require_text,
        validate_social_links,
        validate_year,
    )

# Free-text profile fields a member may edit
EDITABLE_TEXT_FIELDS = (
    "name",
    "initiatedSeason",
    "shipName",
    "lineName",
    "location",
    "address",
    "industry",
    "jobTitle",
    "bio",
)
EDITABLE_FLAG_FIELDS = ("addressIsPrivate", "phoneIsPrivate")


def _chapter(chapter_id: Any) -> Any:
    return get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None


def _with_chapter(member: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = normalize_item(member)
    chapter = _chapter(member.get("initiatedChapterId"))
    result["initiatedChapter"] = normalize_item(chapter) if chapter else None
    return result


# Fields carried from a registration draft into the completed profile
PROFILE_FIELDS = (
    "membershipNumber",
    "initiatedChapterId",
    "initiatedYear",
    "phoneNumber",
    "socialLinks",
    "headshotUrl",
    *EDITABLE_TEXT_FIELDS,
    *EDITABLE_FLAG_FIELDS,
)


def _profile_fields(args: Dict[str, Any], caller: Caller) -> Dict[str, Any]:
    """Validated profile fields present in args; blank text counts as absent."""
    fields: Dict[str, Any] = {}
    for field in ("membershipNumber", "initiatedChapterId", *EDITABLE_TEXT_FIELDS):
        value = optional_text(args.get(field))
        if value:
            fields[field] = value
    if fields.get("initiatedChapterId") and not _chapter(fields["initiatedChapterId"]):
        raise AppError(ErrorCode.NOT_FOUND, f"Chapter {fields['initiatedChapterId']} not found")
    if args.get("initiatedYear") is not None:
        fields["initiatedYear"] = validate_year(args["initiatedYear"], "initiatedYear")
    if optional_text(args.get("phoneNumber")):
        fields["phoneNumber"] = normalize_phone(args["phoneNumber"])
    for field in EDITABLE_FLAG_FIELDS:
        if args.get(field) is not None:
            fields[field] = bool(args[field])
    if args.get("socialLinks") is not None:
        fields["socialLinks"] = validate_social_links(args["socialLinks"])
    if args.get("headshotKey"):
        fields["headshotUrl"] = resolve_upload_key(args["headshotKey"], caller["cognitoSub"], "headshots")
    return fields


def _find_draft(caller: Caller) -> Optional[Dict[str, Any]]:
    """
    The caller's unfinished registration, if any.

    Raises:
        AppError: ALREADY_EXISTS when the caller already has a completed profile
    """
    if caller["memberId"]:
        raise AppError(ErrorCode.ALREADY_EXISTS, "Member profile already exists")
    existing = query_index(tables.members, "cognitoSub-index", "cognitoSub", caller["cognitoSub"])
    if any(not is_registration_draft(m) for m in existing):
        raise AppError(ErrorCode.ALREADY_EXISTS, "Member profile already exists")
    return existing[0] if existing else None


def register_member(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create the caller's fraternity member profile.

    GraphQL mutation: registerMember(input: RegisterMemberInput!)

    A saved registration draft is completed in place: its fields fill in
    whatever the input leaves out and it keeps its memberId.

    Raises:
        AppError: ALREADY_EXISTS if the caller already has a member profile,
            INVALID_INPUT / INVALID_PHONE on bad input, NOT_FOUND for an
            unknown initiated chapter
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    args = get_input(event)

    draft = _find_draft(caller)
    if not caller["email"]:
        raise AppError(ErrorCode.INVALID_INPUT, "Your account has no email address; sign in again to refresh it")

    saved = normalize_item({k: v for k, v in (draft or {}).items() if k in PROFILE_FIELDS})
    fields: Dict[str, Any] = {**saved, **_profile_fields(args, caller)}

    name = require_text(fields.get("name"), "name", "Name")
    membership_number = require_text(fields.get("membershipNumber"), "membershipNumber", "Membership number")
    initiated_chapter_id = require_text(fields.get("initiatedChapterId"), "initiatedChapterId", "Initiated chapter")
    if not _chapter(initiated_chapter_id):
        raise AppError(ErrorCode.NOT_FOUND, f"Chapter {initiated_chapter_id} not found")

    now = datetime.now(timezone.utc).isoformat()
    member: Dict[str, Any] = {
        **fields,
        "memberId": draft["memberId"] if draft else new_id("MEMBER"),
        "cognitoSub": caller["cognitoSub"],
        "email": caller["email"],
        "name": name,
        "membershipNumber": membership_number,
        "initiatedChapterId": initiated_chapter_id,
        "addressIsPrivate": bool(fields.get("addressIsPrivate", False)),
        "phoneIsPrivate": bool(fields.get("phoneIsPrivate", False)),
        "socialLinks": fields.get("socialLinks", {}),
        "registrationStatus": RegistrationStatus.COMPLETE,
        "verificationStatus": VerificationStatus.PENDING,
        "createdAt": draft["createdAt"] if draft else now,
        "updatedAt": now,
    }

    tables.members.put_item(Item=member)
    update_fields(
        tables.users,
        {"userId": caller["userId"]},
        {
            "memberId": member["memberId"],
            "onboardingStatus": OnboardingStatus.ONBOARDING_FINISHED,
            "updatedAt": now,
        },
    )

    send_welcome_email(member["email"], name)
    logger.info(
        "Member registered",
        member_id=member["memberId"],
        user_id=caller["userId"],
        from_draft=draft is not None,
    )
    return _with_chapter(member)


def save_member_draft(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Save a partial registration so the caller can finish it later.

    GraphQL mutation: saveMemberDraft(input: MemberDraftInput!)

    Every field is optional. Fields that are present are validated and
    overwrite the draft; absent ones are kept. Drafts have no
    verificationStatus, are not linked to the user and never appear in the
    directory or the verification queue.

    Raises:
        AppError: ALREADY_EXISTS once registration is complete, plus the
            field errors registerMember raises
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    draft = _find_draft(caller)
    if not caller["email"]:
        raise AppError(ErrorCode.INVALID_INPUT, "Your account has no email address; sign in again to refresh it")

    fields = _profile_fields(get_input(event), caller)
    now = datetime.now(timezone.utc).isoformat()

    if draft:
        if not fields:
            return _with_chapter(draft)
        fields["updatedAt"] = now
        saved = update_fields(
            tables.members,
            {"memberId": draft["memberId"]},
            fields,
            condition="#registrationStatus = :draft",
            condition_values={":draft": RegistrationStatus.DRAFT},
        )
    else:
        saved = {
            **fields,
            "memberId": new_id("MEMBER"),
            "cognitoSub": caller["cognitoSub"],
            "email": caller["email"],
            "registrationStatus": RegistrationStatus.DRAFT,
            "createdAt": now,
            "updatedAt": now,
        }
        tables.members.put_item(Item=saved)

    logger.info("Registration draft saved", member_id=saved["memberId"], fields=sorted(fields))
    return _with_chapter(saved)


def get_my_member_draft(event: Dict[str, Any], context: Any) -> Optional[Dict[str, Any]]:
    """GraphQL query: getMyMemberDraft. None when the caller has no unfinished registration."""
    caller = authenticate(event)
    for member in query_index(tables.members, "cognitoSub-index", "cognitoSub", caller["cognitoSub"]):
        if is_registration_draft(member):
            return _with_chapter(member)
    return None


def get_my_member_profile(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getMyMemberProfile."""
    caller = authenticate(event)
    member = get_item(tables.members, {"memberId": caller["memberId"]}) if caller["memberId"] else None
    if not member:
        raise AppError(ErrorCode.MEMBER_NOT_FOUND, "Member profile not found")
    return _with_chapter(member)


def update_my_member_profile(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Partially update the caller's member profile.

    Verification fields and the membership number cannot be changed here.
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller = authenticate(event)
    if not caller["memberId"]:
        raise AppError(ErrorCode.MEMBER_NOT_FOUND, "Member profile not found")
    args = event.get("arguments", {}).get("input") or {}

    updates: Dict[str, Any] = {}
    for field in EDITABLE_TEXT_FIELDS:
        if field in args and args[field] is not None:
            updates[field] = require_text(args[field], field) if field == "name" else str(args[field]).strip()
    for field in EDITABLE_FLAG_FIELDS:
        if field in args and args[field] is not None:
            updates[field] = bool(args[field])
    if args.get("phoneNumber") is not None:
        updates["phoneNumber"] = normalize_phone(args["phoneNumber"])
    if args.get("socialLinks") is not None:
        updates["socialLinks"] = validate_social_links(args["socialLinks"])
    if args.get("headshotKey"):
        updates["headshotUrl"] = resolve_upload_key(args["headshotKey"], caller["cognitoSub"], "headshots")

    if not updates:
        raise AppError(ErrorCode.INVALID_INPUT, "At least one field must be provided")

    updates["updatedAt"] = datetime.now(timezone.utc).isoformat()
    updated = update_fields(
        tables.members,
        {"memberId": caller["memberId"]},
        updates,
        condition="attribute_exists(memberId)",
    )
    logger.info("Member profile updated", member_id=caller["memberId"], fields=sorted(updates))
    return _with_chapter(updated)


def _public_profile(member: Dict[str, Any]) -> Dict[str, Any]:
    profile: Dict[str, Any] = normalize_item(member)
    for private_field in ("cognitoSub", "verificationNotes"):
        profile.pop(private_field, None)
    if member.get("addressIsPrivate"):
        profile.pop("address", None)
    if member.get("phoneIsPrivate"):
        profile.pop("phoneNumber", None)
    return profile


def list_members(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listMembers. Verified brothers only, ordered by name."""
    authenticate(event)
    members = [
        m for m in scan_all(tables.members) if m.get("verificationStatus") == VerificationStatus.VERIFIED
    ]
    members.sort(key=lambda m: str(m.get("name") or "").casefold())
    return [_public_profile(m) for m in members]
