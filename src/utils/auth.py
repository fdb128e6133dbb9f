"""
Authentication and authorization utilities for marketplace resolvers.

Every resolver that acts on behalf of a signed-in user starts with
``authenticate(event)``, which turns the AppSync Cognito identity into a
``Caller`` built from the users table, then applies one of the ``require_*``
guards.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TypedDict

from .dynamodb import get_item, update_fields, tables
from .errors import AppError, ErrorCode
from .ids import user_key
from .logging import get_logger
from .membership import OnboardingStatus, Role, VerificationStatus

logger = get_logger(__name__)


class Caller(TypedDict):
    """Authenticated caller context derived from the users table."""

    userId: str
    cognitoSub: str
    email: str
    role: str
    memberId: Optional[str]
    sellerId: Optional[str]
    promoterId: Optional[str]
    stewardId: Optional[str]
    features: Dict[str, Any]
    isAdmin: bool


def is_admin(event: Dict[str, Any]) -> bool:
    """
    Check if caller has admin privileges from JWT cognito:groups claim.

    Args:
        event: Lambda event with identity.claims from AppSync

    Returns:
        True if caller is in ADMIN Cognito group, False otherwise
    """
    identity = event.get("identity") or {}
    claims = identity.get("claims") or {}
    groups = claims.get("cognito:groups", [])
    # cognito:groups can be a string or list in JWT
    if isinstance(groups, str):
        groups = [groups]
    return "ADMIN" in (groups or [])


def _clear_orphaned_member(user: Dict[str, Any]) -> Dict[str, Any]:
    """Drop a memberId that points at a deleted member and restart onboarding."""
    logger.warning(
        "User references a member that does not exist, clearing link",
        user_id=user["userId"],
        member_id=user.get("memberId"),
    )
    try:
        return update_fields(
            tables.users,
            {"userId": user["userId"]},
            {
                "onboardingStatus": OnboardingStatus.ONBOARDING_STARTED,
                "updatedAt": datetime.now(timezone.utc).isoformat(),
            },
            remove=["memberId"],
        )
    except Exception as e:
        logger.error("Failed to clear orphaned member link", user_id=user["userId"], error=str(e))
        cleaned = dict(user)
        cleaned.pop("memberId", None)
        return cleaned


def authenticate(event: Dict[str, Any]) -> Caller:
    """
    Build the caller context for an AppSync event.

    Raises:
        AppError: UNAUTHORIZED without a Cognito identity,
            USER_NOT_REGISTERED when no user record exists
    """
    cognito_sub = (event.get("identity") or {}).get("sub")
    if not cognito_sub:
        raise AppError(ErrorCode.UNAUTHORIZED, "Authentication required")

    user = get_item(tables.users, {"userId": user_key(cognito_sub)})
    if not user:
        raise AppError(ErrorCode.USER_NOT_REGISTERED, "User not registered")

    member_id = user.get("memberId")
    if member_id and not get_item(tables.members, {"memberId": member_id}):
        user = _clear_orphaned_member(user)

    return Caller(
        userId=user["userId"],
        cognitoSub=cognito_sub,
        email=user.get("email", ""),
        role=user.get("role", Role.GUEST),
        memberId=user.get("memberId"),
        sellerId=user.get("sellerId"),
        promoterId=user.get("promoterId"),
        stewardId=user.get("stewardId"),
        features=user.get("features") or {},
        isAdmin=user.get("role") == Role.ADMIN or is_admin(event),
    )


def authenticate_optional(event: Dict[str, Any]) -> Optional[Caller]:
    """Like authenticate(), but anonymous or unregistered callers yield None."""
    try:
        return authenticate(event)
    except AppError as e:
        if e.error_code in (ErrorCode.UNAUTHORIZED, ErrorCode.USER_NOT_REGISTERED):
            return None
        raise


def require_role(caller: Caller, *roles: str) -> None:
    """Raise FORBIDDEN unless the caller's role is one of roles."""
    if caller["role"] not in roles:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Insufficient permissions",
            {"requiredRoles": list(roles)},
        )


def require_admin(caller: Caller) -> None:
    if not caller["isAdmin"]:
        raise AppError(ErrorCode.FORBIDDEN, "Admin access required")


def require_steward(caller: Caller) -> None:
    """Stewards (with a steward record) and admins pass."""
    if caller["isAdmin"]:
        return
    require_role(caller, Role.STEWARD, Role.ADMIN)
    if not caller["stewardId"]:
        raise AppError(ErrorCode.FORBIDDEN, "Steward profile not found")


def require_verified_member(caller: Caller) -> Dict[str, Any]:
    """
    Require the caller's own member profile to be VERIFIED.

    Returns:
        The member item

    Raises:
        AppError: FORBIDDEN without a member profile, MEMBER_NOT_FOUND when the
            profile is gone, VERIFICATION_REQUIRED while unverified
    """
    member_id = caller["memberId"]
    if not member_id:
        raise AppError(ErrorCode.FORBIDDEN, "Member profile required")

    member = get_item(tables.members, {"memberId": member_id})
    if not member:
        raise AppError(ErrorCode.MEMBER_NOT_FOUND, "Member not found")

    if member.get("verificationStatus") != VerificationStatus.VERIFIED:
        raise AppError(
            ErrorCode.VERIFICATION_REQUIRED,
            "Member verification required",
            {"verificationStatus": member.get("verificationStatus")},
        )
    return member
