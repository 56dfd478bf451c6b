"""
logging_config.py - Centralized JSON Logging Configuration

PURPOSE:
    Provides structured JSON logging for the inventory service with UTC
    timestamps, correlation tracking, and service-specific context injection.

JSON LOG FIELDS:
    - timestamp: ISO 8601 format in UTC (e.g., "2026-10-19T08:48:51.001014+00:00")
    - level: Log level (INFO, ERROR, WARNING, DEBUG, CRITICAL)
    - logger: Module name where the log originated
    - message: The actual log message
    - service_name: Name of the service (injected automatically)
    - correlation_id: Optional tracing ID across service boundaries
    - event_type: Optional Kafka event type being published
    - operation: Optional coordinator operation ("create", "add_stock")
    - transaction_state: Optional last state a transaction reached
    - exception: Full stack trace (only when exc_info is attached)

USAGE:
    from shared.logging_config import setup_logging
    setup_logging("inventory-service", level="INFO")

    logger = logging.getLogger(__name__)
    logger.error(
        "Transaction aborted",
        extra={"operation": "create", "transaction_state": "SELLER_VALIDATED"},
    )

EXAMPLE JSON OUTPUT:
    {
        "timestamp": "2026-10-19T08:48:51.001014+00:00",
        "level": "ERROR",
        "logger": "services.inventory_service.coordinator",
        "message": "create aborted after STARTED: Invalid seller ID provided: S9",
        "service_name": "inventory-service",
        "correlation_id": "9a63a606-fbef-4a4b-a5a4-ef1f127bc304",
        "operation": "create",
        "transaction_state": "STARTED"
    }
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Optional LogRecord attributes copied into the JSON payload
CONTEXT_FIELDS = ("service_name", "correlation_id", "event_type", "operation", "transaction_state")


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON logs with correlation context."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceFilter(logging.Filter):
    """Adds service name to every record passing through a handler."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


def setup_logging(service_name: str, level: str = "INFO") -> logging.Handler:
    """Setup JSON logging for a service."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Calling twice (reloads, tests) must not duplicate output
    for existing in list(logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(ServiceFilter(service_name))
    logger.addHandler(handler)
    return handler
