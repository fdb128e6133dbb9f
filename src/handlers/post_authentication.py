"""
Cognito Post-Authentication Lambda Trigger

Creates or refreshes the marketplace User record after every sign-in so
getMe always has data to return.

New users start as GUEST with onboardingStatus COGNITO_CONFIRMED and are
linked to an existing fraternity member record when one matches their email
or Cognito sub.

Trigger: Post Authentication
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.dynamodb import tables  # type: ignore[import-not-found]
    from utils.ids import user_key  # type: ignore[import-not-found]
    from utils.membership import OnboardingStatus, Role, find_registered_member  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.dynamodb import tables
    from ..utils.ids import user_key
    from ..utils.membership import OnboardingStatus, Role, find_registered_member

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)


def _find_member_id(email: str, cognito_sub: str) -> Optional[str]:
    member = find_registered_member(email, cognito_sub)
    return member.get("memberId") if member else None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Post-Authentication Lambda Trigger Handler

    Event structure:
    {
        "triggerSource": "PostAuthentication_Authentication",
        "userPoolId": "us-east-1_EXAMPLE",
        "userName": "google_123456789",
        "request": {
            "userAttributes": {
                "sub": "a1b2c3d4-...",
                "email": "brother@example.com",
                "email_verified": "true"
            }
        },
        "response": {}
    }

    Returns:
        event: Must return the event unmodified for Cognito to continue
    """
    try:
        table = tables.users

        user_attributes = event.get("request", {}).get("userAttributes", {})
        cognito_sub = user_attributes.get("sub")
        email = user_attributes.get("email", "").strip().lower()

        if not cognito_sub:
            logger.error("Missing sub in user attributes")
            return event

        key = {"userId": user_key(cognito_sub)}
        existing_user = table.get_item(Key=key).get("Item")
        timestamp = datetime.now(timezone.utc).isoformat()

        if existing_user:
            logger.info(f"Updating existing user: {cognito_sub}")
            update_expression = "SET lastLogin = :now, updatedAt = :now"
            values: Dict[str, Any] = {":now": timestamp}
            if email:
                update_expression += ", email = :email"
                values[":email"] = email
            table.update_item(
                Key=key,
                UpdateExpression=update_expression,
                ExpressionAttributeValues=values,
            )
        else:
            logger.info(f"Creating new user: {cognito_sub}")
            user_item: Dict[str, Any] = {
                "userId": key["userId"],
                "cognitoSub": cognito_sub,
                "role": Role.GUEST,
                "onboardingStatus": OnboardingStatus.COGNITO_CONFIRMED,
                "features": {},
                "lastLogin": timestamp,
                "createdAt": timestamp,
                "updatedAt": timestamp,
            }
            if email:
                user_item["email"] = email
            member_id = _find_member_id(email, cognito_sub)
            if member_id:
                user_item["memberId"] = member_id
            table.put_item(Item=user_item)
            logger.info(f"User created successfully: {cognito_sub}, email={email}, memberId={member_id}")

        return event

    except Exception as e:
        # Never fail authentication because of DynamoDB issues
        logger.exception(f"Error in post-authentication trigger: {str(e)}")
        return event
