"""
ID normalization utilities for DynamoDB prefixed IDs.

Provides consistent handling of entity ID prefixes (USER#, MEMBER#, SELLER#, etc.)
across all Lambda handlers and utilities.
"""

import uuid
from typing import Optional


def ensure_prefix(prefix: str, id_value: Optional[str]) -> Optional[str]:
    """
    Ensure an ID has the specified prefix.

    Args:
        prefix: Prefix without '#' (e.g., 'MEMBER', 'SELLER')
        id_value: ID to normalize, may be None

    Returns:
        ID with prefix, or None if input was None

    Examples:
        >>> ensure_prefix('MEMBER', 'abc-123')
        'MEMBER#abc-123'
        >>> ensure_prefix('MEMBER', 'MEMBER#abc-123')
        'MEMBER#abc-123'
        >>> ensure_prefix('SELLER', None)
        None
    """
    if not id_value:
        return None
    wanted = f"{prefix}#"
    return id_value if id_value.startswith(wanted) else f"{wanted}{id_value}"


def strip_prefix(id_value: Optional[str]) -> str:
    """
    Remove prefix from an ID to get the raw value.

    Examples:
        >>> strip_prefix('USER#abc-123')
        'abc-123'
        >>> strip_prefix('abc-123')
        'abc-123'
        >>> strip_prefix(None)
        ''
    """
    if not id_value:
        return ""
    hash_index = id_value.find("#")
    return id_value[hash_index + 1 :] if hash_index >= 0 else id_value


def new_id(prefix: str) -> str:
    """Generate a fresh prefixed ID (e.g. 'PRODUCT#<uuid4>')."""
    return f"{prefix}#{uuid.uuid4()}"


# Entity-specific helpers
def user_key(cognito_sub: str) -> str:
    """Users are keyed by their Cognito sub."""
    return f"USER#{strip_prefix(cognito_sub)}"


def ensure_member_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("MEMBER", id_value)


def ensure_chapter_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("CHAPTER", id_value)


def ensure_seller_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("SELLER", id_value)


def ensure_promoter_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("PROMOTER", id_value)


def ensure_steward_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("STEWARD", id_value)


def ensure_product_id(id_value: Optional[str]) -> Optional[str]:
    """Normalize product ID with PRODUCT# prefix."""
    return ensure_prefix("PRODUCT", id_value)


def ensure_event_id(id_value: Optional[str]) -> Optional[str]:
    return ensure_prefix("EVENT", id_value)


def ensure_listing_id(id_value: Optional[str]) -> Optional[str]:
    """Normalize steward listing ID with LISTING# prefix."""
    return ensure_prefix("LISTING", id_value)
