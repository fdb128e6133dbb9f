"""
Image upload helpers.

Clients upload images straight to S3 with a pre-signed POST and then pass the
returned object key to a mutation. Keys are namespaced by category and by the
uploader's Cognito sub so a caller can only attach files they uploaded:

    uploads/{category}/{cognito_sub}/{uuid}.{ext}
"""

import os
import uuid
from typing import TYPE_CHECKING, Any, Dict

import boto3

from .dynamodb import get_required_env
from .errors import AppError, ErrorCode

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client

UPLOAD_PREFIX = "uploads"

UPLOAD_CATEGORIES = ("products", "headshots", "store-logos", "events", "steward-listings")

CONTENT_TYPE_EXTENSIONS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
UPLOAD_URL_EXPIRY_SECONDS = 900

# Module-level S3 client proxy for testing
s3_client: "S3Client | None" = None


def _get_s3_client() -> "S3Client":
    """Return the S3 client (module-level override for tests, otherwise a fresh boto3 client)."""
    if s3_client is not None:
        return s3_client
    return boto3.client("s3", endpoint_url=os.getenv("S3_ENDPOINT"))


def generate_upload_key(category: str, owner_sub: str, content_type: str) -> str:
    """Generate a fresh UUID-based key for an upload."""
    extension = CONTENT_TYPE_EXTENSIONS[content_type]
    return f"{UPLOAD_PREFIX}/{category}/{owner_sub}/{uuid.uuid4()}.{extension}"


def is_owned_upload_key(key: str, owner_sub: str, category: str) -> bool:
    """Check a key has the uploads/{category}/{owner}/{file}.{ext} shape for this owner."""
    parts = key.split("/")
    if len(parts) != 4:
        return False
    prefix, key_category, key_owner, filename = parts
    if prefix != UPLOAD_PREFIX or key_category != category or key_owner != owner_sub:
        return False
    return filename.rsplit(".", 1)[-1] in CONTENT_TYPE_EXTENSIONS.values()


def public_url(key: str) -> str:
    """Public URL for an uploaded object (CDN base when configured)."""
    base_url = os.getenv("ASSETS_BASE_URL")
    if base_url:
        return f"{base_url.rstrip('/')}/{key}"
    bucket = get_required_env("UPLOADS_BUCKET")
    return f"https://{bucket}.s3.amazonaws.com/{key}"


def resolve_upload_key(key: Any, owner_sub: str, category: str) -> str:
    """
    Validate an uploaded key belongs to the caller and return its public URL.

    Raises:
        AppError: FORBIDDEN when the key was not issued to this caller
    """
    if not isinstance(key, str) or not is_owned_upload_key(key.strip(), owner_sub, category):
        raise AppError(ErrorCode.FORBIDDEN, "Invalid upload key - access denied", {"category": category})
    return public_url(key.strip())


def create_presigned_upload(category: str, owner_sub: str, content_type: str) -> Dict[str, Any]:
    """
    Create a pre-signed POST for one image.

    Returns:
        {"uploadUrl", "fields", "key"}
    """
    key = generate_upload_key(category, owner_sub, content_type)
    presigned_post = _get_s3_client().generate_presigned_post(
        Bucket=get_required_env("UPLOADS_BUCKET"),
        Key=key,
        Fields={"Content-Type": content_type},
        Conditions=[
            {"Content-Type": content_type},
            ["content-length-range", 1, MAX_UPLOAD_BYTES],
        ],
        ExpiresIn=UPLOAD_URL_EXPIRY_SECONDS,
    )
    return {"uploadUrl": presigned_post["url"], "fields": presigned_post["fields"], "key": key}
