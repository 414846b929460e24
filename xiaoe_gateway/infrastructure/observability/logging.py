"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "xiaoe-gateway"


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


def log_generation(
    request_id: str,
    username: str,
    kind: str,
    model: str,
    item_count: int,
    outcome: str,
    duration_ms: float,
) -> None:
    """Log structured generation outcome for analysis"""
    logging.info(
        "Generation completed",
        extra={
            "request_id": request_id,
            "username": username,
            "step": f"{kind}_complete",
            "model": model,
            "item_count": item_count,
            "outcome": outcome,
            "duration_ms": duration_ms,
        },
    )


def log_payment_event(
    request_id: str,
    event: str,
    order_id: Optional[str],
    username: Optional[str] = None,
    **fields: Any,
) -> None:
    """Log a payment lifecycle event (order created, notification applied, ...)"""
    logging.info(
        f"Payment {event}",
        extra={
            "request_id": request_id,
            "step": f"payment_{event}",
            "order_id": order_id,
            "username": username,
            **fields,
        },
    )
