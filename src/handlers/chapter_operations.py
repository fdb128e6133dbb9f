"""Lambda resolvers for chapter lookups."""

from typing import Any, Dict, List

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.dynamodb import get_item, scan_all, tables  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.responses import normalize_item  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.dynamodb import get_item, scan_all, tables
    from ..utils.errors import AppError, ErrorCode
    from ..utils.responses import normalize_item

COLLEGIATE = "Collegiate"
ACTIVE = "Active"


def _sorted_by_name(chapters: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(
        (normalize_item(c) for c in chapters),
        key=lambda c: str(c.get("name") or "").casefold(),
    )


def list_chapters(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listChapters. All chapters ordered by name."""
    return _sorted_by_name(scan_all(tables.chapters))


def list_active_collegiate_chapters(event: Dict[str, Any], context: Any) -> List[Dict[str, Any]]:
    """GraphQL query: listActiveCollegiateChapters. Used as sponsoring-chapter choices."""
    chapters = [
        c
        for c in scan_all(tables.chapters)
        if c.get("type") == COLLEGIATE and c.get("status") == ACTIVE
    ]
    return _sorted_by_name(chapters)


def get_chapter(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """GraphQL query: getChapter(chapterId: ID!)."""
    chapter_id = event.get("arguments", {}).get("chapterId")
    chapter = get_item(tables.chapters, {"chapterId": chapter_id}) if chapter_id else None
    if not chapter:
        raise AppError(ErrorCode.NOT_FOUND, f"Chapter {chapter_id} not found")
    result: Dict[str, Any] = normalize_item(chapter)
    return result
