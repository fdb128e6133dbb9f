"""
Report generation Lambda handler.

Implements:
- requestAdminReport: Generate an Excel/CSV export of orders or chapter donations
"""

import csv
import os
from datetime import datetime, timedelta, timezone
from io import BytesIO, StringIO
from typing import Any, Callable, Dict, List, Tuple

import boto3
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

# Handle both Lambda (absolute) and unit test (relative) imports
try:  # pragma: no cover
    from utils.auth import authenticate, require_admin  # type: ignore[import-not-found]
    from utils.errors import AppError, ErrorCode  # type: ignore[import-not-found]
    from utils.logging import get_correlation_id, get_logger  # type: ignore[import-not-found]
    from utils.sales import build_chapter_donation_rows, build_order_rows  # type: ignore[import-not-found]
except ModuleNotFoundError:  # pragma: no cover
    from ..utils.auth import authenticate, require_admin
    from ..utils.errors import AppError, ErrorCode
    from ..utils.logging import get_correlation_id, get_logger
    from ..utils.sales import build_chapter_donation_rows, build_order_rows

# Module-level proxy that tests can monkeypatch
s3_client: object | None = None


def _get_s3_client():
    """Return the S3 client (module-level override for tests, otherwise a fresh boto3 client)."""
    global s3_client
    if s3_client is not None:
        return s3_client
    return boto3.client("s3", endpoint_url=os.getenv("S3_ENDPOINT"))


def _cents(value: Any) -> float:
    return round(int(value or 0) / 100, 2)


# (header, row -> cell value) per report kind
ORDER_COLUMNS: List[Tuple[str, Callable[[Dict[str, Any]], Any]]] = [
    ("Order ID", lambda r: r.get("orderId", "")),
    ("Date", lambda r: r.get("createdAt", "")),
    ("Product", lambda r: r.get("productName") or ""),
    ("Seller", lambda r: r.get("sellerName") or ""),
    ("Chapter", lambda r: r.get("chapterName") or ""),
    ("Buyer Email", lambda r: r.get("buyerEmail", "")),
    ("Status", lambda r: r.get("status", "")),
    ("Amount", lambda r: _cents(r.get("amountCents"))),
]

DONATION_COLUMNS: List[Tuple[str, Callable[[Dict[str, Any]], Any]]] = [
    ("Chapter ID", lambda r: r.get("chapterId", "")),
    ("Chapter", lambda r: r.get("chapterName") or ""),
    ("Total Donations", lambda r: _cents(r.get("totalDonationsCents"))),
]

REPORTS: Dict[str, Tuple[str, Callable[[], List[Dict[str, Any]]], List[Tuple[str, Callable[[Dict[str, Any]], Any]]]]] = {
    "orders": ("Orders", build_order_rows, ORDER_COLUMNS),
    "donations": ("Chapter Donations", build_chapter_donation_rows, DONATION_COLUMNS),
}


def request_admin_report(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Generate an admin report and upload to S3.

    GraphQL mutation: requestAdminReport(kind: ReportKind!, format: String)

    Returns:
        {
          reportId: String!
          kind: String!
          reportUrl: String
          status: String!
          createdAt: String!
          expiresAt: String
        }
    """
    logger = get_logger(__name__, get_correlation_id(event))

    try:
        require_admin(authenticate(event))

        args = event.get("arguments", {})
        kind = args.get("kind")
        report_format = (args.get("format") or "xlsx").lower()  # xlsx or csv
        if kind not in REPORTS:
            raise AppError(ErrorCode.INVALID_INPUT, f"Unknown report kind: {kind}")

        logger.info("Generating admin report", kind=kind, format=report_format)

        title, build_rows, columns = REPORTS[kind]
        rows = build_rows()

        if report_format == "csv":
            report_content = _generate_csv_report(rows, columns)
            content_type = "text/csv"
            file_extension = "csv"
        else:
            report_content = _generate_excel_report(title, rows, columns)
            content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            file_extension = "xlsx"

        report_id = f"REPORT#{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}"
        exports_bucket = os.getenv("EXPORTS_BUCKET", "brotherhood-exports-dev")
        s3_key = f"reports/{kind}/{report_id}.{file_extension}"

        s3 = _get_s3_client()
        s3.put_object(
            Bucket=exports_bucket,
            Key=s3_key,
            Body=report_content,
            ContentType=content_type,
        )

        # Pre-signed URL valid for 7 days
        expiration = 7 * 24 * 60 * 60
        report_url = s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": exports_bucket, "Key": s3_key},
            ExpiresIn=expiration,
        )

        now = datetime.now(timezone.utc)
        result = {
            "reportId": report_id,
            "kind": kind,
            "reportUrl": report_url,
            "status": "COMPLETED",
            "createdAt": now.isoformat(),
            "expiresAt": (now + timedelta(days=7)).isoformat(),
        }

        logger.info("Report generated successfully", report_id=report_id, s3_key=s3_key, rows=len(rows))
        return result

    except AppError as e:
        return e.to_dict()  # type: ignore[no-any-return]
    except Exception as e:
        logger.error("Unexpected error generating report", error=str(e))
        error = AppError(ErrorCode.INTERNAL_ERROR, f"Failed to generate report: {str(e)}")
        return error.to_dict()  # type: ignore[no-any-return]


def _generate_csv_report(
    rows: List[Dict[str, Any]], columns: List[Tuple[str, Callable[[Dict[str, Any]], Any]]]
) -> bytes:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow([header for header, _ in columns])
    for row in rows:
        writer.writerow([value(row) for _, value in columns])
    return output.getvalue().encode("utf-8")


def _generate_excel_report(
    title: str,
    rows: List[Dict[str, Any]],
    columns: List[Tuple[str, Callable[[Dict[str, Any]], Any]]],
) -> bytes:
    """Single-sheet workbook with a styled header row and auto-sized columns."""
    wb = Workbook()
    ws = wb.active
    assert ws is not None, "Workbook must have an active worksheet"
    ws.title = title

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")

    for col, (header, _) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = header_fill
        cell.font = header_font

    for row_idx, row in enumerate(rows, start=2):
        for col, (_, value) in enumerate(columns, start=1):
            ws.cell(row=row_idx, column=col, value=value(row))

    # Auto-size columns
    for column in ws.columns:
        first_cell = column[0]
        # MergedCell has no column_letter
        column_letter = getattr(first_cell, "column_letter", None)
        if column_letter is None:  # pragma: no cover
            continue
        max_length = max(len(str(cell.value)) for cell in column if cell.value is not None)
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.getvalue()
