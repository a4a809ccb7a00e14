"""Logging setup and the clinical audit trail."""

import logging
import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from intake_triage.core.config import settings
from intake_triage.utils.time import format_datetime, utc_now

# Extra record attributes copied into structured output
CONTEXT_FIELDS = ("session_id", "alert_id", "action")


class StructuredFormatter(logging.Formatter):
    """key=value formatter used outside development."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                fields[name] = value

        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return " ".join(f"{k}={v}" for k, v in fields.items())


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger.

    Development gets a readable line format; every other environment
    gets ``StructuredFormatter``.

    Args:
        level: Level name overriding ``settings.log_level``
    """
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if settings.is_dev:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    else:
        console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@dataclass(frozen=True)
class AuditEvent:
    """One entry of the audit trail."""
    timestamp: datetime
    action: str
    actor_type: str
    actor_id: str
    entity_type: str
    entity_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Append-only audit trail for clinical decisions and alert transitions.

    Every event goes to the ``audit`` logger. The most recent events are
    also kept in memory so they can be inspected without a log pipeline.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self.logger = logging.getLogger("audit")
        self._events: deque[AuditEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def log(
        self,
        action: str,
        actor_type: str,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Record an audit event."""
        event = AuditEvent(
            timestamp=utc_now(),
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._events.append(event)

        self.logger.info(
            f"AUDIT: at={format_datetime(event.timestamp)} action={action} "
            f"actor={actor_type}:{actor_id} entity={entity_type}:{entity_id} "
            f"metadata={event.metadata}",
            extra={"action": action},
        )
        return event

    def recent(
        self,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Buffered events, oldest first, optionally filtered."""
        with self._lock:
            events = list(self._events)
        return [
            e for e in events
            if (entity_id is None or e.entity_id == entity_id)
            and (action is None or e.action == action)
        ]


audit_logger = AuditLogger(capacity=settings.audit_buffer_size)
