"""
Cognito Pre-Sign-Up Lambda Trigger

Keeps one Cognito user per email address:
1. Federated sign-ups (Google, Facebook, ...) whose email already belongs to a
   user are linked to that user, then rejected so Cognito signs the person in
   with the existing account.
2. Federated sign-ups with a new email are auto-confirmed (the provider has
   verified the address).
3. Native sign-ups for an email that already has a confirmed account are
   rejected. UNCONFIRMED duplicates pass so Cognito can resend the code.

Trigger: Pre Sign Up
"""

import logging
from typing import Any, Dict, Optional

import boto3

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

NATIVE_SIGN_UP = "PreSignUp_SignUp"
FEDERATED_SIGN_UP = "PreSignUp_ExternalProvider"


class SignUpRejected(Exception):
    """Raised to make Cognito refuse the sign-up with a user-facing message."""


def _find_user_by_email(cognito: Any, user_pool_id: str, email: str) -> Optional[Dict[str, Any]]:
    response = cognito.list_users(
        UserPoolId=user_pool_id,
        Filter=f'email = "{email}"',
        Limit=1,
    )
    users = response.get("Users", [])
    return users[0] if users else None


def _handle_native_sign_up(cognito: Any, event: Dict[str, Any], email: str) -> Dict[str, Any]:
    existing_user = _find_user_by_email(cognito, event.get("userPoolId", ""), email)
    if existing_user and existing_user.get("UserStatus") != "UNCONFIRMED":
        raise SignUpRejected(f"An account with email {email} already exists. Please sign in.")
    return event


def _handle_federated_sign_up(cognito: Any, event: Dict[str, Any], email: str) -> Dict[str, Any]:
    user_pool_id = event.get("userPoolId", "")
    username = event.get("userName", "")

    existing_user = _find_user_by_email(cognito, user_pool_id, email)
    if not existing_user:
        event["response"]["autoConfirmUser"] = True
        event["response"]["autoVerifyEmail"] = True
        logger.info(f"No existing user for {email}, allowing federated sign-up")
        return event

    existing_username = existing_user["Username"]

    # Federated usernames look like "Google_123456789"
    if "_" not in username:
        logger.error(f"Unexpected federated username format: {username}")
        return event

    provider_name, provider_user_id = username.split("_", 1)

    try:
        cognito.admin_link_provider_for_user(
            UserPoolId=user_pool_id,
            DestinationUser={
                "ProviderName": "Cognito",
                "ProviderAttributeValue": existing_username,
            },
            SourceUser={
                "ProviderName": provider_name,
                "ProviderAttributeName": "Cognito_Subject",
                "ProviderAttributeValue": provider_user_id,
            },
        )
    except cognito.exceptions.InvalidParameterException as e:
        # Link already exists
        logger.warning(f"Link may already exist: {e}")
        raise SignUpRejected(f"Account with email {email} already exists. Please sign in again.")

    logger.info(f"Linked {provider_name} identity to user {existing_username}")
    raise SignUpRejected(
        f"Account with email {email} already exists. "
        f"Your {provider_name} account has been linked. Please sign in again."
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Pre-Sign-Up Lambda Trigger Handler

    Event structure:
    {
        "triggerSource": "PreSignUp_ExternalProvider",
        "userPoolId": "us-east-1_EXAMPLE",
        "userName": "Google_123456789",
        "request": {"userAttributes": {"email": "brother@example.com"}},
        "response": {"autoConfirmUser": false, "autoVerifyEmail": false}
    }

    Returns:
        event, possibly with autoConfirmUser/autoVerifyEmail set

    Raises:
        SignUpRejected: When the sign-up would duplicate an existing account
    """
    trigger_source = event.get("triggerSource", "")
    email = event.get("request", {}).get("userAttributes", {}).get("email", "")

    logger.info(
        f"Pre-signup trigger: source={trigger_source}, username={event.get('userName')}, email={email}"
    )

    if trigger_source not in (NATIVE_SIGN_UP, FEDERATED_SIGN_UP):
        return event

    if not email:
        logger.warning("No email in sign-up, cannot check for duplicates")
        return event

    try:
        cognito = boto3.client("cognito-idp")
        if trigger_source == NATIVE_SIGN_UP:
            return _handle_native_sign_up(cognito, event, email)
        return _handle_federated_sign_up(cognito, event, email)
    except SignUpRejected:
        raise
    except Exception as e:
        # Never block sign-up on lookup failures
        logger.exception(f"Error in pre-signup trigger: {str(e)}")
        return event
