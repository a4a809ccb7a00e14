"""Crisis protocol records and versioned snapshots."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

ProtocolKey = tuple[str, str]  # (alert_type, severity)


class ConfigurationError(Exception):
    """Raised when no protocol record exists for an (alert_type, severity) pair."""

    def __init__(self, alert_type: str, severity: str) -> None:
        self.alert_type = alert_type
        self.severity = severity
        super().__init__(
            f"No crisis protocol configured for alert_type={alert_type} "
            f"severity={severity}"
        )


@dataclass(frozen=True)
class ProtocolRecord:
    """Escalation policy bound to one (alert_type, severity) pair."""

    alert_type: str
    severity: str
    name: str
    auto_escalation_enabled: bool
    escalation_timeout_minutes: int
    required_actions: tuple[str, ...]
    notification_groups: tuple[str, ...]
    emergency_services_authorized: bool
    human_in_loop: bool = True
    description: str = ""
    is_active: bool = True
    is_default: bool = False

    @property
    def key(self) -> ProtocolKey:
        return (self.alert_type, self.severity)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProtocolRecord":
        """Build a record from its YAML representation."""
        timeout = int(data.get("escalation_timeout_minutes", 0))
        if timeout < 0:
            raise ValueError(
                f"escalation_timeout_minutes must be >= 0 for {data.get('name')}"
            )
        return cls(
            alert_type=data["alert_type"],
            severity=data["severity"],
            name=data["name"],
            auto_escalation_enabled=bool(data.get("auto_escalation_enabled", False)),
            escalation_timeout_minutes=timeout,
            required_actions=tuple(data.get("required_actions", [])),
            notification_groups=tuple(data.get("notification_groups", [])),
            emergency_services_authorized=bool(
                data.get("emergency_services_authorized", False)
            ),
            human_in_loop=bool(data.get("human_in_loop", True)),
            description=data.get("description", ""),
            is_active=bool(data.get("is_active", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "alert_type": self.alert_type,
            "severity": self.severity,
            "name": self.name,
            "auto_escalation_enabled": self.auto_escalation_enabled,
            "escalation_timeout_minutes": self.escalation_timeout_minutes,
            "required_actions": list(self.required_actions),
            "notification_groups": list(self.notification_groups),
            "emergency_services_authorized": self.emergency_services_authorized,
            "human_in_loop": self.human_in_loop,
            "description": self.description,
            "is_active": self.is_active,
            "is_default": self.is_default,
        }


def conservative_default(
    alert_type: str,
    severity: str,
    fallback_groups: tuple[str, ...],
) -> ProtocolRecord:
    """Most conservative policy, used when configuration is missing.

    A human must handle the alert, nothing escalates automatically and
    emergency services are authorised.
    """
    return ProtocolRecord(
        alert_type=alert_type,
        severity=severity,
        name="Unconfigured Alert Default Protocol",
        auto_escalation_enabled=False,
        escalation_timeout_minutes=0,
        required_actions=(
            "Immediate clinician review",
            "Manual safety assessment",
            "Configure a protocol for this alert type",
        ),
        notification_groups=fallback_groups,
        emergency_services_authorized=True,
        human_in_loop=True,
        description=(
            f"Fallback applied because no protocol exists for "
            f"{alert_type}/{severity}."
        ),
        is_default=True,
    )


@dataclass(frozen=True)
class ProtocolSnapshot:
    """Immutable view of the protocol table at one version.

    Reloads build a new snapshot and swap the reference, so any
    evaluation in flight keeps reading the one it started with.
    """

    version: str
    content_hash: str
    loaded_at: datetime
    records: Mapping[ProtocolKey, ProtocolRecord] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source: Optional[str] = None

    def lookup(self, alert_type: str, severity: str) -> ProtocolRecord:
        """Active record for a pair, or ConfigurationError."""
        record = self.records.get((alert_type, severity))
        if record is None or not record.is_active:
            raise ConfigurationError(alert_type, severity)
        return record
