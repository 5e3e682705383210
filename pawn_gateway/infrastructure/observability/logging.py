"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from pawn_gateway.config import settings
from pawn_gateway.utils.date_utils import utcnow

logger = logging.getLogger("pawn_gateway.ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_ledger_event(
    event: str,
    entity: str,
    entity_id: str,
    actor_id: Optional[str] = None,
    **amounts: Any,
) -> None:
    """Log one committed ledger mutation for audit and debugging"""
    logger.info(
        "Ledger event",
        extra={
            "event": event,
            "entity": entity,
            "entity_id": entity_id,
            "actor_id": actor_id,
            **amounts,
        },
    )
