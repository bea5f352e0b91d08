"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from obligations_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # One INFO line per data-service call otherwise
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_mutation(
    request_id: str,
    user_id: str,
    operation: str,
    scope: str,
    affected: int,
    duration_ms: float,
) -> None:
    """Log structured mutation outcome for auditing"""
    logging.info(
        "Obligation mutation completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": f"{operation}_complete",
            "scope": scope,
            "affected": affected,
            "duration_ms": duration_ms,
        },
    )


def log_partial_failure(request_id: str, user_id: str, operation: str, succeeded: int, requested: int) -> None:
    """Partial writes are never rolled back; make them visible"""
    logging.error(
        "Obligation batch stopped partway",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": f"{operation}_partial",
            "succeeded": succeeded,
            "requested": requested,
        },
    )
