"""Notification collaborator port for crisis alerts.

The escalation service hands each alert to a NotificationCollaborator
and moves on. Delivery retries and backoff are the collaborator's
job. Recipients acknowledge later through the callback passed with the
payload, which drives ``active -> acknowledged``.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence
from uuid import uuid4

from intake_triage.utils.time import format_datetime

logger = logging.getLogger(__name__)

# on_acknowledge(group_id, actor)
AcknowledgeCallback = Callable[[str, str], None]


class DeliveryError(Exception):
    """Raised when the collaborator cannot reach one or more groups."""

    def __init__(self, message: str, failed_groups: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.failed_groups = tuple(failed_groups)


@dataclass(frozen=True)
class NotificationPayload:
    """Alert details sent to notification groups."""

    alert_id: str
    patient_ref: str
    alert_type: str
    severity: str
    triggered_at: datetime
    recommended_actions: tuple[str, ...]
    notification_group_ids: tuple[str, ...]
    emergency_services_authorized: bool
    reason: str = "alert_raised"

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "patient_ref": self.patient_ref,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "triggered_at": format_datetime(self.triggered_at),
            "recommended_actions": list(self.recommended_actions),
            "notification_group_ids": list(self.notification_group_ids),
            "emergency_services_authorized": self.emergency_services_authorized,
            "reason": self.reason,
        }


@dataclass
class DeliveryReceipt:
    """Per-group outcome of a notification attempt."""

    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    provider_reference: str = ""

    @property
    def success(self) -> bool:
        return not self.failed


class NotificationCollaborator(ABC):
    """Abstract base class for alert delivery providers."""

    @abstractmethod
    def notify(
        self,
        payload: NotificationPayload,
        on_acknowledge: AcknowledgeCallback,
    ) -> DeliveryReceipt:
        """Deliver an alert to its groups.

        Raises DeliveryError when no group could be reached.
        """
        pass


class LoggingNotifier(NotificationCollaborator):
    """Collaborator that records alerts in the application log.

    Used until a paging or messaging provider is wired in.
    Acknowledgments arrive through the alerts API instead of the
    callback.
    """

    def __init__(self, capacity: int = 100) -> None:
        # Most recent payloads only; the instance lives for the process
        self.sent: deque[NotificationPayload] = deque(maxlen=capacity)

    def notify(
        self,
        payload: NotificationPayload,
        on_acknowledge: AcknowledgeCallback,
    ) -> DeliveryReceipt:
        logger.warning(
            f"CRISIS ALERT {payload.reason}: alert={payload.alert_id} "
            f"type={payload.alert_type} severity={payload.severity} "
            f"groups={','.join(payload.notification_group_ids)} "
            f"emergency_services={payload.emergency_services_authorized}",
            extra={"alert_id": payload.alert_id, "action": payload.reason},
        )
        self.sent.append(payload)

        return DeliveryReceipt(
            delivered=list(payload.notification_group_ids),
            provider_reference=f"log_{uuid4().hex[:16]}",
        )
