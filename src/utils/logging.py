"""
Logging utilities for Lambda functions.

Provides structured JSON logging with correlation IDs for tracing requests.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredLogger:
    """
    JSON logger for Lambda functions with correlation ID support.

    Example:
        logger = StructuredLogger(__name__)
        logger.info("Creating checkout session", product_id="PRODUCT#123", seller_id="SELLER#456")
    """

    def __init__(self, name: str, correlation_id: Optional[str] = None) -> None:
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Emit one JSON line if the level is enabled."""
        if not self.logger.isEnabledFor(logging.getLevelName(level)):
            return

        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
            "correlationId": self.correlation_id,
            **kwargs,
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        print(json.dumps(log_entry, default=str))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info level message."""
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning level message."""
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error level message."""
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug level message."""
        self._log("DEBUG", message, **kwargs)


def get_logger(name: str, correlation_id: Optional[str] = None) -> StructuredLogger:
    """Return a StructuredLogger bound to an optional correlation ID."""
    return StructuredLogger(name, correlation_id)


def get_correlation_id(event: Dict[str, Any]) -> str:
    """
    Extract or generate correlation ID from Lambda event.

    Checks for correlation ID in:
    1. event['requestContext']['requestId'] (AppSync / API Gateway)
    2. event['request']['headers']['x-correlation-id']
    3. event['headers']['x-correlation-id'] (API Gateway proxy)
    4. Generates new UUID if not found
    """
    request_context = event.get("requestContext") or {}
    if "requestId" in request_context:
        return str(request_context["requestId"])

    for headers in (event.get("request", {}).get("headers") or {}, event.get("headers") or {}):
        if "x-correlation-id" in headers:
            return str(headers["x-correlation-id"])

    return str(uuid.uuid4())
