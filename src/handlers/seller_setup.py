"""
Seller account setup via invitation token.

When an admin approves a seller whose email has no user yet, the seller gets
an emailed invitation token. These resolvers are called anonymously from the
seller-setup page: one checks the token, the other creates the Cognito user
with the chosen password and the matching SELLER user record.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict

import boto3

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.dynamodb import get_required_env, query_first, tables, update_fields  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.ids import user_key  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.membership import OnboardingStatus, Role  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.dynamodb import get_required_env, query_first, tables, update_fields
    from ..utils.errors import AppError, ErrorCode
    from ..utils.ids import user_key
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.membership import OnboardingStatus, Role

MIN_PASSWORD_LENGTH = 8


def _get_cognito_client() -> Any:
    return boto3.client("cognito-idp", endpoint_url=os.getenv("COGNITO_ENDPOINT"))


def _find_seller_by_token(token: Any) -> Dict[str, Any]:
    if not isinstance(token, str) or not token.strip():
        raise AppError(ErrorCode.INVALID_TOKEN, "Invitation token is required")
    seller = query_first(tables.sellers, "invitationToken-index", "invitationToken", token.strip())
    if not seller:
        raise AppError(ErrorCode.INVALID_TOKEN, "Invalid or expired invitation token")
    return seller


def validate_seller_invitation(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Check an invitation token.

    GraphQL query: validateSellerInvitation(token: String!)

    Returns:
        {"valid": True, "seller": {"email", "name"}}
    """
    seller = _find_seller_by_token(event.get("arguments", {}).get("token"))
    return {"valid": True, "seller": {"email": seller["email"], "name": seller.get("name")}}


def complete_seller_setup(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Create the seller's login and user record, then burn the token.

    GraphQL mutation: completeSellerSetup(input: {token, password})

    Raises:
        AppError: INVALID_INPUT for short passwords, INVALID_TOKEN for unknown
            tokens, ALREADY_EXISTS when the email already has an account
    """
    logger = get_logger(__name__, get_correlation_id(event))
    args = event.get("arguments", {}).get("input") or {}
    password = args.get("password")

    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )

    seller = _find_seller_by_token(args.get("token"))
    email = seller["email"]

    if query_first(tables.users, "email-index", "email", email):
        raise AppError(ErrorCode.ALREADY_EXISTS, "An account with this email already exists")

    user_pool_id = get_required_env("COGNITO_USER_POOL_ID")
    cognito = _get_cognito_client()
    try:
        cognito.admin_create_user(
            UserPoolId=user_pool_id,
            Username=email,
            UserAttributes=[
                {"Name": "email", "Value": email},
                {"Name": "email_verified", "Value": "true"},
            ],
            MessageAction="SUPPRESS",
        )
    except cognito.exceptions.UsernameExistsException:
        raise AppError(ErrorCode.ALREADY_EXISTS, "An account with this email already exists")

    cognito.admin_set_user_password(
        UserPoolId=user_pool_id,
        Username=email,
        Password=password,
        Permanent=True,
    )
    cognito_user = cognito.admin_get_user(UserPoolId=user_pool_id, Username=email)
    attributes = {a["Name"]: a["Value"] for a in cognito_user.get("UserAttributes", [])}
    cognito_sub = attributes.get("sub") or cognito_user["Username"]

    now = datetime.now(timezone.utc).isoformat()
    user_item: Dict[str, Any] = {
        "userId": user_key(cognito_sub),
        "cognitoSub": cognito_sub,
        "email": email,
        "role": Role.SELLER,
        "onboardingStatus": OnboardingStatus.ONBOARDING_FINISHED,
        "sellerId": seller["sellerId"],
        "features": {},
        "createdAt": now,
        "updatedAt": now,
    }
    if seller.get("memberId"):
        user_item["memberId"] = seller["memberId"]
    tables.users.put_item(Item=user_item)

    update_fields(
        tables.sellers,
        {"sellerId": seller["sellerId"]},
        {"updatedAt": now},
        remove=["invitationToken"],
    )

    logger.info("Seller setup completed", seller_id=seller["sellerId"], user_id=user_item["userId"])
    return {"success": True, "email": email, "sellerId": seller["sellerId"]}
