"""
Accessors for Lambda events.

Covers AppSync resolver events (every marketplace resolver) and the API
Gateway proxy event used by the Stripe webhook.
"""

import base64
from typing import Any, Dict, Optional

from .errors import AppError, ErrorCode


def get_caller_id(event: Dict[str, Any]) -> Optional[str]:
    """Extract caller's Cognito sub from event, or None for anonymous calls."""
    identity: Dict[str, Any] = event.get("identity") or {}
    result: Optional[str] = identity.get("sub")
    return result


def get_argument(event: Dict[str, Any], name: str, default: Any = None) -> Any:
    """
    Extract an argument from the event.

    Args:
        event: AppSync event
        name: Argument name
        default: Default value if not present

    Returns:
        Argument value or default
    """
    return (event.get("arguments") or {}).get(name, default)


def get_argument_required(event: Dict[str, Any], name: str) -> Any:
    """
    Extract a required argument from the event.

    Blank strings count as missing.

    Raises:
        AppError: INVALID_INPUT if the argument is not present
    """
    value = get_argument(event, name)
    if isinstance(value, str):
        value = value.strip()
    if value is None or value == "":
        raise AppError(ErrorCode.INVALID_INPUT, f"{name} is required", {"field": name})
    return value


def get_input(event: Dict[str, Any]) -> Dict[str, Any]:
    """Return arguments.input (mutations) or an empty dict."""
    value = get_argument(event, "input")
    return value if isinstance(value, dict) else {}


def get_header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup for API Gateway events."""
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def get_raw_body(event: Dict[str, Any]) -> bytes:
    """Return the request body exactly as sent, decoding base64 payloads."""
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body.encode("utf-8")
