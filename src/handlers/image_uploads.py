"""
Image upload Lambda resolver.

Implements:
- requestImageUpload: issue a pre-signed S3 POST for one image
"""

from typing import Any, Dict

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.appsync_types import get_caller_id  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.uploads import CONTENT_TYPE_EXTENSIONS, UPLOAD_CATEGORIES, create_presigned_upload  # type: ignore[import-not-found]
    from utils.validation import validate_choice  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.appsync_types import get_caller_id
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.uploads import CONTENT_TYPE_EXTENSIONS, UPLOAD_CATEGORIES, create_presigned_upload
    from ..utils.validation import validate_choice


def request_image_upload(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    GraphQL mutation: requestImageUpload(category: UploadCategory!, contentType: String!)

    Any signed-in Cognito identity may upload, registered or not, so seller
    and promoter applicants can attach images before their records exist.

    Returns:
        {"uploadUrl", "fields", "key"}
    """
    logger = get_logger(__name__, get_correlation_id(event))
    caller_sub = get_caller_id(event)
    if not caller_sub:
        raise AppError(ErrorCode.UNAUTHORIZED, "Authentication required")

    args = event.get("arguments", {})
    category = validate_choice(args.get("category"), UPLOAD_CATEGORIES, "category")
    content_type = validate_choice(args.get("contentType"), tuple(CONTENT_TYPE_EXTENSIONS), "contentType")

    upload = create_presigned_upload(category, caller_sub, content_type)
    logger.info("Issued image upload", category=category, key=upload["key"])
    return upload
