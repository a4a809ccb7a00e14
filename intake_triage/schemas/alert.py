"""Pydantic schemas for crisis alerts and protocols."""

from datetime import datetime

from pydantic import BaseModel, Field

from intake_triage.models.alert import AlertState, TargetStatus


class NotificationTargetRead(BaseModel):
    """Delivery state for one notification group."""

    group_id: str
    status: TargetStatus
    attempts: int
    last_error: str | None = None
    acknowledged_at: datetime | None = None

    model_config = {"from_attributes": True}


class EscalationEntryRead(BaseModel):
    """One entry of an alert's escalation history."""

    timestamp: datetime
    action: str
    actor: str
    from_state: AlertState
    to_state: AlertState
    note: str | None = None

    model_config = {"from_attributes": True}


class ProtocolRead(BaseModel):
    """Escalation protocol bound to an (alert_type, severity) pair."""

    alert_type: str
    severity: str
    name: str
    auto_escalation_enabled: bool
    escalation_timeout_minutes: int
    required_actions: list[str]
    notification_groups: list[str]
    emergency_services_authorized: bool
    human_in_loop: bool
    description: str = ""
    is_active: bool = True
    is_default: bool = False

    model_config = {"from_attributes": True}


class CrisisAlertRead(BaseModel):
    """Schema for reading a crisis alert."""

    id: str
    alert_type: str
    severity: str
    patient_ref: str
    session_id: str | None = None
    triggering_flag: str | None = None
    state: AlertState
    protocol: ProtocolRead
    protocol_version: str | None = None
    triggered_at: datetime
    activated_at: datetime | None = None
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    escalated_at: datetime | None = None
    closed_at: datetime | None = None
    targets: list[NotificationTargetRead] = Field(default_factory=list)
    history: list[EscalationEntryRead] = Field(default_factory=list)


class AlertActionRequest(BaseModel):
    """Staff action on an alert."""

    actor: str = Field(..., min_length=1, max_length=128)
    note: str | None = None


class AcknowledgeRequest(AlertActionRequest):
    """Acknowledgment, optionally on behalf of a notification group."""

    group_id: str | None = None


class ProtocolSnapshotRead(BaseModel):
    """Currently loaded protocol table."""

    version: str
    content_hash: str
    loaded_at: datetime
    source: str | None = None
    protocols: list[ProtocolRead]
