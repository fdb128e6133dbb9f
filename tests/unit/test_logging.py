"""Tests for logging utilities."""

import json
from typing import Any

from src.utils.logging import StructuredLogger, get_correlation_id, get_logger


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    def test_logger_generates_correlation_id(self) -> None:
        logger = StructuredLogger("test")

        assert logger.correlation_id

    def test_info_logs_json(self, capsys: Any) -> None:
        logger = get_logger("checkout", "req-1")

        logger.info("Checkout session created", order_id="ORDER#1")

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["level"] == "INFO"
        assert log_entry["logger"] == "checkout"
        assert log_entry["message"] == "Checkout session created"
        assert log_entry["correlationId"] == "req-1"
        assert log_entry["order_id"] == "ORDER#1"
        assert "timestamp" in log_entry

    def test_none_values_filtered(self, capsys: Any) -> None:
        StructuredLogger("test", "id").warning("Missing", member_id=None, code=3)

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert "member_id" not in log_entry
        assert log_entry["code"] == 3

    def test_non_json_values_stringified(self, capsys: Any) -> None:
        from decimal import Decimal

        StructuredLogger("test", "id").error("Boom", amount=Decimal("12.50"))

        log_entry = json.loads(capsys.readouterr().out.strip())
        assert log_entry["amount"] == "12.50"

    def test_debug_suppressed_at_info_level(self, capsys: Any, monkeypatch: Any) -> None:
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        StructuredLogger("quiet", "id").debug("Not shown")

        assert capsys.readouterr().out == ""

    def test_debug_emitted_at_debug_level(self, capsys: Any, monkeypatch: Any) -> None:
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        StructuredLogger("chatty", "id").debug("Shown")

        assert json.loads(capsys.readouterr().out.strip())["level"] == "DEBUG"


class TestGetCorrelationId:
    """Tests for get_correlation_id function."""

    def test_from_request_context(self) -> None:
        assert get_correlation_id({"requestContext": {"requestId": "abc"}}) == "abc"

    def test_from_appsync_request_headers(self) -> None:
        event = {"request": {"headers": {"x-correlation-id": "hdr-1"}}}

        assert get_correlation_id(event) == "hdr-1"

    def test_from_proxy_headers(self) -> None:
        assert get_correlation_id({"headers": {"x-correlation-id": "hdr-2"}}) == "hdr-2"

    def test_generates_uuid(self) -> None:
        first = get_correlation_id({})
        second = get_correlation_id({})

        assert first and second and first != second
