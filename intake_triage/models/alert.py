"""Crisis alert model and its escalation state machine."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

from intake_triage.utils.time import utc_now

if TYPE_CHECKING:
    from intake_triage.protocols.models import ProtocolRecord


class AlertState(str, Enum):
    """Escalation states for a crisis alert."""

    NONE = "none"
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


ALLOWED_TRANSITIONS: dict[AlertState, frozenset[AlertState]] = {
    AlertState.NONE: frozenset({AlertState.ACTIVE}),
    AlertState.ACTIVE: frozenset({AlertState.ACKNOWLEDGED, AlertState.ESCALATED}),
    AlertState.ACKNOWLEDGED: frozenset({
        AlertState.ESCALATED,
        AlertState.RESOLVED,
        AlertState.FALSE_POSITIVE,
    }),
    AlertState.ESCALATED: frozenset({AlertState.RESOLVED}),
    AlertState.RESOLVED: frozenset(),
    AlertState.FALSE_POSITIVE: frozenset(),
}

TERMINAL_STATES = frozenset({AlertState.RESOLVED, AlertState.FALSE_POSITIVE})

# Only a human may move an alert into these states
HUMAN_ONLY_STATES = frozenset({AlertState.RESOLVED, AlertState.FALSE_POSITIVE})


class AlertTransitionError(Exception):
    """Raised when a transition is not permitted from the current state."""

    def __init__(self, alert_id: str, current: AlertState, target: AlertState) -> None:
        self.alert_id = alert_id
        self.current = current
        self.target = target
        super().__init__(
            f"Alert {alert_id} cannot move from {current.value} to {target.value}"
        )


class TargetStatus(str, Enum):
    """Delivery and acknowledgment state of one notification group."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"


@dataclass
class NotificationTarget:
    """A notification group bound to an alert."""

    group_id: str
    status: TargetStatus = TargetStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


@dataclass(frozen=True)
class EscalationEntry:
    """One immutable line of alert history."""

    timestamp: datetime
    action: str
    actor: str
    from_state: AlertState
    to_state: AlertState
    note: Optional[str] = None


@dataclass
class CrisisAlert:
    """Stateful record of a critical finding and its escalation.

    All mutation goes through the escalation service while holding
    ``lock``; history only ever grows.
    """

    alert_type: str
    severity: str
    patient_ref: str
    protocol: "ProtocolRecord"
    answers: Mapping[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    session_id: Optional[str] = None
    triggering_flag: Optional[str] = None
    protocol_version: Optional[str] = None
    triggered_at: datetime = field(default_factory=utc_now)
    state: AlertState = AlertState.NONE
    targets: dict[str, NotificationTarget] = field(default_factory=dict)
    activated_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    escalated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )
    _history: list[EscalationEntry] = field(default_factory=list, repr=False)

    @property
    def history(self) -> tuple[EscalationEntry, ...]:
        """Append-only transition log."""
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition(self, target: AlertState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(
        self,
        target: AlertState,
        action: str,
        actor: str,
        at: datetime,
        note: Optional[str] = None,
    ) -> EscalationEntry:
        """Move to ``target`` and append the history entry.

        Raises:
            AlertTransitionError: If the move is not allowed.
        """
        if not self.can_transition(target):
            raise AlertTransitionError(self.id, self.state, target)

        entry = EscalationEntry(
            timestamp=at,
            action=action,
            actor=actor,
            from_state=self.state,
            to_state=target,
            note=note,
        )
        self.state = target
        self._history.append(entry)

        if target == AlertState.ACTIVE:
            self.activated_at = at
        elif target == AlertState.ACKNOWLEDGED:
            self.acknowledged_at = at
            self.acknowledged_by = actor
        elif target == AlertState.ESCALATED:
            self.escalated_at = at
        elif target in TERMINAL_STATES:
            self.closed_at = at

        return entry
