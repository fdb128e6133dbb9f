"""
Role and verification resolution for marketplace users.

A user reaches their fraternity member record through whichever role record
their role points at (seller, promoter, steward). Guests are matched to a
member directly by email or Cognito sub. A user counts as a verified member
only when that member record exists and carries ``verificationStatus ==
"VERIFIED"``.
"""

from typing import Any, Dict, Optional, TypedDict

from .dynamodb import get_item, query_index, tables
from .ids import user_key
from .logging import get_logger

logger = get_logger(__name__)


class Role:
    ADMIN = "ADMIN"
    SELLER = "SELLER"
    PROMOTER = "PROMOTER"
    STEWARD = "STEWARD"
    GUEST = "GUEST"

    ALL = (ADMIN, SELLER, PROMOTER, STEWARD, GUEST)


class OnboardingStatus:
    PRE_COGNITO = "PRE_COGNITO"
    COGNITO_CONFIRMED = "COGNITO_CONFIRMED"
    ONBOARDING_STARTED = "ONBOARDING_STARTED"
    ONBOARDING_FINISHED = "ONBOARDING_FINISHED"


class VerificationStatus:
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    MANUAL_REVIEW = "MANUAL_REVIEW"

    ALL = (PENDING, VERIFIED, FAILED, MANUAL_REVIEW)


class ApplicationStatus:
    """Lifecycle of seller, promoter and steward applications."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    DECISIONS = (APPROVED, REJECTED)


class RegistrationStatus:
    """Member rows saved part-way through registration are DRAFTs until registerMember completes them."""

    DRAFT = "DRAFT"
    COMPLETE = "COMPLETE"


def is_registration_draft(member: Optional[Dict[str, Any]]) -> bool:
    """Rows without registrationStatus predate drafts and count as complete."""
    return member is not None and member.get("registrationStatus") == RegistrationStatus.DRAFT


class RoleFlags(TypedDict):
    name: Optional[str]
    fraternityMemberId: Optional[str]
    isFraternityMember: bool
    isSeller: bool
    isPromoter: bool
    isSteward: bool


# role -> (user attribute holding the link, table accessor name, key attribute)
_ROLE_LINKS: Dict[str, tuple[str, str, str]] = {
    Role.SELLER: ("sellerId", "sellers", "sellerId"),
    Role.PROMOTER: ("promoterId", "promoters", "promoterId"),
    Role.STEWARD: ("stewardId", "stewards", "stewardId"),
}


def get_user_by_sub(cognito_sub: str) -> Optional[Dict[str, Any]]:
    """Fetch a user record by Cognito sub."""
    return get_item(tables.users, {"userId": user_key(cognito_sub)})


def get_member(member_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not member_id:
        return None
    return get_item(tables.members, {"memberId": member_id})


def _get_role_record(user: Dict[str, Any], role: str) -> Optional[Dict[str, Any]]:
    link_attr, table_name, key_attr = _ROLE_LINKS[role]
    link_id = user.get(link_attr)
    if not link_id:
        return None
    return get_item(getattr(tables, table_name), {key_attr: link_id})


def find_registered_member(email: Optional[str], cognito_sub: Optional[str]) -> Optional[Dict[str, Any]]:
    """Member matched by email, falling back to Cognito sub; registration drafts never match."""
    lookups = (("email-index", "email", email), ("cognitoSub-index", "cognitoSub", cognito_sub))
    for index_name, attribute, value in lookups:
        if not value:
            continue
        for member in query_index(tables.members, index_name, attribute, value):
            if not is_registration_draft(member):
                return member
    return None


def _find_guest_member(user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return find_registered_member(user.get("email"), user.get("cognitoSub"))


def get_fraternity_member_id(user: Dict[str, Any]) -> Optional[str]:
    """
    Resolve the fraternity member ID for a user based on their role.

    - SELLER / PROMOTER / STEWARD: memberId of the linked role record
    - GUEST: member matched by email, falling back to Cognito sub
    - anything else (including ADMIN): None

    Args:
        user: User item from the users table

    Returns:
        Member ID or None if no member can be resolved
    """
    role = user.get("role")

    if role in _ROLE_LINKS:
        record = _get_role_record(user, role)
        member_id: Optional[str] = record.get("memberId") if record else None
        return member_id or None

    if role == Role.GUEST:
        member = _find_guest_member(user)
        return member.get("memberId") if member else None

    return None


def get_fraternity_member_id_for_caller(cognito_sub: str) -> Optional[str]:
    """Resolve the member ID for a Cognito sub; None when the user is not registered."""
    user = get_user_by_sub(cognito_sub)
    if not user:
        return None
    return get_fraternity_member_id(user)


def is_verified_member(user: Dict[str, Any]) -> bool:
    """True only when a member resolves, exists and is VERIFIED."""
    member = get_member(get_fraternity_member_id(user))
    return member is not None and member.get("verificationStatus") == VerificationStatus.VERIFIED


def has_approved_steward(member_id: Optional[str]) -> bool:
    """Whether any APPROVED steward exists for a member."""
    if not member_id:
        return False
    stewards = query_index(tables.stewards, "memberId-index", "memberId", member_id)
    return any(s.get("status") == ApplicationStatus.APPROVED for s in stewards)


def resolve_role_flags(user: Dict[str, Any]) -> RoleFlags:
    """
    Compute the derived identity fields returned by getMe.

    The primary role decides which record supplies the display name; the
    verified-member and steward flags are evaluated for every role.
    """
    role = user.get("role")
    flags = RoleFlags(
        name=None,
        fraternityMemberId=None,
        isFraternityMember=False,
        isSeller=False,
        isPromoter=False,
        isSteward=False,
    )

    if role in _ROLE_LINKS:
        record = _get_role_record(user, role)
        if record:
            flags["name"] = record.get("name")
            approved = record.get("status") == ApplicationStatus.APPROVED
            if role == Role.SELLER:
                flags["isSeller"] = approved
            elif role == Role.PROMOTER:
                flags["isPromoter"] = approved
            else:
                flags["isSteward"] = approved

    member_id = get_fraternity_member_id(user)
    flags["fraternityMemberId"] = member_id
    member = get_member(member_id)
    if member:
        flags["isFraternityMember"] = member.get("verificationStatus") == VerificationStatus.VERIFIED
        if not flags["name"]:
            flags["name"] = member.get("name")

    if not flags["isSteward"] and has_approved_steward(member_id):
        flags["isSteward"] = True

    logger.debug(
        "Resolved role flags",
        user_id=user.get("userId"),
        role=role,
        fraternity_member_id=member_id,
    )
    return flags
