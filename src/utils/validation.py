"""
Input validation utilities.

Validates emails, phone numbers, money amounts, enums and free-form maps.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from .errors import AppError, ErrorCode

# US phone number pattern: 10 digits with optional formatting
PHONE_PATTERN = re.compile(r"^(?:\+?1[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})$")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(phone: str) -> str:
    """
    Normalize US phone number to E.164 format (+1XXXXXXXXXX).

    Raises:
        AppError: If phone number is invalid
    """
    match = PHONE_PATTERN.match(phone.strip())

    if not match:
        raise AppError(
            ErrorCode.INVALID_PHONE,
            "Phone number must be a valid 10-digit US number",
            {"phone": phone},
        )

    area_code, prefix, line = match.groups()
    return f"+1{area_code}{prefix}{line}"


def validate_email(email: Any, field: str = "email") -> str:
    """Return the trimmed, lower-cased email or raise INVALID_EMAIL."""
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise AppError(ErrorCode.INVALID_EMAIL, f"A valid {field} is required", {"field": field})
    return email.strip().lower()


def require_text(value: Any, field: str, label: Optional[str] = None) -> str:
    """Return the stripped string, raising INVALID_INPUT when blank or missing."""
    if not isinstance(value, str) or not value.strip():
        raise AppError(ErrorCode.INVALID_INPUT, f"{label or field} is required", {"field": field})
    return value.strip()


def optional_text(value: Any) -> Optional[str]:
    """Strip a string; blank or non-string values become None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def validate_cents(value: Any, field: str, minimum: int = 0) -> int:
    """
    Validate an integer amount of cents.

    bool is rejected even though it is an int subclass.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        qualifier = "a positive" if minimum > 0 else "a non-negative"
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"{field} must be {qualifier} integer number of cents",
            {"field": field},
        )
    return value


def validate_choice(value: Any, choices: Iterable[str], field: str) -> str:
    """Raise INVALID_INPUT unless value is one of choices."""
    allowed = list(choices)
    if value not in allowed:
        raise AppError(
            ErrorCode.INVALID_INPUT,
            f"{field} must be one of: {', '.join(allowed)}",
            {"field": field, "value": value},
        )
    return str(value)


def validate_social_links(links: Any) -> Dict[str, str]:
    """Social links are an optional string -> string map (e.g. {"instagram": "https://..."})."""
    if links is None:
        return {}
    if not isinstance(links, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in links.items()
    ):
        raise AppError(ErrorCode.INVALID_INPUT, "socialLinks must map names to URLs")
    return {k: v.strip() for k, v in links.items() if v.strip()}


def parse_iso_datetime(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if not isinstance(value, str):
        raise AppError(ErrorCode.INVALID_INPUT, f"{field} must be an ISO-8601 date", {"field": field})
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_INPUT, f"{field} must be an ISO-8601 date", {"field": field}
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_year(value: Any, field: str) -> int:
    """Accept an int or digit string for a four-digit year (e.g. initiatedYear)."""
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or not 1800 <= value <= 2100:
        raise AppError(ErrorCode.INVALID_INPUT, f"{field} must be a four-digit year", {"field": field})
    return value
