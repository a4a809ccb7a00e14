"""Crisis alert endpoints for clinical staff."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from intake_triage.api.deps import Escalation
from intake_triage.models.alert import AlertState, AlertTransitionError, CrisisAlert
from intake_triage.schemas.alert import (
    AcknowledgeRequest,
    AlertActionRequest,
    CrisisAlertRead,
    EscalationEntryRead,
    NotificationTargetRead,
    ProtocolRead,
)
from intake_triage.services.escalation import AlertNotFoundError

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _alert_read(alert: CrisisAlert) -> CrisisAlertRead:
    with alert.lock:
        return CrisisAlertRead(
            id=alert.id,
            alert_type=alert.alert_type,
            severity=alert.severity,
            patient_ref=alert.patient_ref,
            session_id=alert.session_id,
            triggering_flag=alert.triggering_flag,
            state=alert.state,
            protocol=ProtocolRead.model_validate(alert.protocol),
            protocol_version=alert.protocol_version,
            triggered_at=alert.triggered_at,
            activated_at=alert.activated_at,
            acknowledged_at=alert.acknowledged_at,
            acknowledged_by=alert.acknowledged_by,
            escalated_at=alert.escalated_at,
            closed_at=alert.closed_at,
            targets=[NotificationTargetRead.model_validate(t) for t in alert.targets.values()],
            history=[EscalationEntryRead.model_validate(e) for e in alert.history],
        )


@router.get("", response_model=list[CrisisAlertRead])
def list_alerts(
    escalation: Escalation,
    state: Optional[list[AlertState]] = Query(default=None),
    session_id: Optional[str] = None,
) -> list[CrisisAlertRead]:
    """List crisis alerts, oldest first."""
    alerts = escalation.list_alerts(states=state, session_id=session_id)
    return [_alert_read(a) for a in alerts]


@router.get("/{alert_id}", response_model=CrisisAlertRead)
def get_alert(alert_id: str, escalation: Escalation) -> CrisisAlertRead:
    """Get an alert with its escalation history."""
    try:
        return _alert_read(escalation.get_alert(alert_id))
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{alert_id}/acknowledge", response_model=CrisisAlertRead)
def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeRequest,
    escalation: Escalation,
) -> CrisisAlertRead:
    """Acknowledge an active alert and stop its escalation timer."""
    try:
        alert = escalation.acknowledge(
            alert_id,
            actor=request.actor,
            note=request.note,
            group_id=request.group_id,
        )
        return _alert_read(alert)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlertTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{alert_id}/escalate", response_model=CrisisAlertRead)
def escalate_alert(
    alert_id: str,
    request: AlertActionRequest,
    escalation: Escalation,
) -> CrisisAlertRead:
    """Manually escalate an alert."""
    try:
        return _alert_read(escalation.escalate(alert_id, actor=request.actor, note=request.note))
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlertTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{alert_id}/resolve", response_model=CrisisAlertRead)
def resolve_alert(
    alert_id: str,
    request: AlertActionRequest,
    escalation: Escalation,
) -> CrisisAlertRead:
    """Resolve an acknowledged or escalated alert."""
    try:
        return _alert_read(escalation.resolve(alert_id, actor=request.actor, note=request.note))
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlertTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{alert_id}/false-positive", response_model=CrisisAlertRead)
def mark_false_positive(
    alert_id: str,
    request: AlertActionRequest,
    escalation: Escalation,
) -> CrisisAlertRead:
    """Close an acknowledged alert as a false positive."""
    try:
        alert = escalation.mark_false_positive(alert_id, actor=request.actor, note=request.note)
        return _alert_read(alert)
    except AlertNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlertTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
