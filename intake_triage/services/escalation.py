"""Crisis alert escalation service.

Owns every CrisisAlert and drives its state machine:

    none -> active -> acknowledged -> {escalated | resolved | false_positive}
            active -> escalated (timeout or manual override)
            escalated -> resolved

Each alert has its own re-entrant lock. Activation and timer start
happen together under that lock, acknowledgment records the
transition and cancels the timer under it, and the timer callback
re-checks the state under it before escalating. So an alert can never
be escalated twice, or be both acknowledged and auto-escalated.

Notifications are dispatched outside the lock and are fire-and-forget.
A delivery failure is logged and recorded on the target but never
changes alert state; an undelivered alert is not a handled alert.
"""

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

from intake_triage.core.config import settings
from intake_triage.core.logging import audit_logger
from intake_triage.models.alert import (
    HUMAN_ONLY_STATES,
    AlertState,
    AlertTransitionError,
    CrisisAlert,
    NotificationTarget,
    TargetStatus,
)
from intake_triage.protocols.models import (
    ConfigurationError,
    ProtocolSnapshot,
    conservative_default,
)
from intake_triage.protocols.registry import ProtocolRegistry
from intake_triage.services.notifications import (
    DeliveryError,
    DeliveryReceipt,
    NotificationCollaborator,
    NotificationPayload,
)
from intake_triage.services.timers import (
    ThreadingTimerScheduler,
    TimerHandle,
    TimerScheduler,
)
from intake_triage.utils.time import minutes_between, utc_now

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
# Version recorded when the protocol table could not be loaded
PROTOCOLS_UNAVAILABLE = "unavailable"


class AlertNotFoundError(Exception):
    """Raised when alert not found."""
    pass


class ConcurrencyError(Exception):
    """Raised internally when a transition lost a race on one alert."""
    pass


class HumanActionRequiredError(AlertTransitionError):
    """Raised when the system attempts a human-only transition."""
    pass


class EscalationService:
    """Creates crisis alerts and runs their escalation protocol."""

    def __init__(
        self,
        registry: ProtocolRegistry,
        notifier: NotificationCollaborator,
        scheduler: Optional[TimerScheduler] = None,
        clock: Callable[[], Any] = utc_now,
    ) -> None:
        self.registry = registry
        self.notifier = notifier
        self.scheduler = scheduler or ThreadingTimerScheduler()
        self.clock = clock
        self._alerts: dict[str, CrisisAlert] = {}
        self._timers: dict[str, TimerHandle] = {}
        self._store_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_alert(self, alert_id: str) -> CrisisAlert:
        """Look up an alert.

        Raises:
            AlertNotFoundError: If no alert has this id
        """
        with self._store_lock:
            alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert {alert_id} not found")
        return alert

    def list_alerts(
        self,
        states: Optional[Iterable[AlertState]] = None,
        session_id: Optional[str] = None,
    ) -> list[CrisisAlert]:
        """Alerts, oldest first, optionally filtered."""
        wanted = frozenset(states) if states else None
        with self._store_lock:
            alerts = list(self._alerts.values())
        return sorted(
            (
                a for a in alerts
                if (wanted is None or a.state in wanted)
                and (session_id is None or a.session_id == session_id)
            ),
            key=lambda a: a.triggered_at,
        )

    def has_pending_timer(self, alert_id: str) -> bool:
        with self._store_lock:
            return alert_id in self._timers

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def raise_alert(
        self,
        alert_type: str,
        severity: str,
        patient_ref: str,
        answers: Mapping[str, Any],
        session_id: Optional[str] = None,
        triggering_flag: Optional[str] = None,
    ) -> CrisisAlert:
        """Create a crisis alert and activate it immediately.

        A missing protocol never blocks the alert: the most conservative
        default is bound instead and the gap is reported to operations.
        The same applies when the protocol table itself cannot be loaded.
        """
        snapshot: Optional[ProtocolSnapshot] = None
        missing: Optional[Exception] = None
        try:
            snapshot = self.registry.snapshot
            protocol = snapshot.lookup(alert_type, severity)
        except Exception as exc:
            missing = exc
            protocol = conservative_default(
                alert_type,
                severity,
                tuple(settings.fallback_notification_groups),
            )
        protocol_version = snapshot.version if snapshot is not None else PROTOCOLS_UNAVAILABLE

        now = self.clock()
        alert = CrisisAlert(
            alert_type=alert_type,
            severity=severity,
            patient_ref=patient_ref,
            protocol=protocol,
            answers=MappingProxyType(dict(answers)),
            session_id=session_id,
            triggering_flag=triggering_flag,
            protocol_version=protocol_version,
            triggered_at=now,
            targets={
                group: NotificationTarget(group_id=group)
                for group in protocol.notification_groups
            },
        )

        with self._store_lock:
            self._alerts[alert.id] = alert

        with alert.lock:
            note = f"protocol={protocol.name} version={protocol_version}"
            if missing is not None:
                note = f"{note} (default applied: {missing})"
            alert.transition(AlertState.ACTIVE, "alert_raised", SYSTEM_ACTOR, now, note)
            if protocol.auto_escalation_enabled:
                self._start_timer(alert)

        logger.warning(
            f"Crisis alert raised type={alert_type} severity={severity} "
            f"protocol={protocol.name} auto_escalation={protocol.auto_escalation_enabled}",
            extra={"alert_id": alert.id, "session_id": session_id, "action": "alert_raised"},
        )
        audit_logger.log(
            action="alert.raised",
            actor_type="system",
            actor_id=SYSTEM_ACTOR,
            entity_type="crisis_alert",
            entity_id=alert.id,
            metadata={
                "alert_type": alert_type,
                "severity": severity,
                "session_id": session_id,
                "triggering_flag": triggering_flag,
                "protocol": protocol.name,
                "protocol_version": protocol_version,
                "default_protocol": protocol.is_default,
            },
        )

        if missing is not None:
            self._report_missing_configuration(alert, missing)

        self._dispatch(alert, protocol.notification_groups, reason="alert_raised")
        return alert

    # ------------------------------------------------------------------
    # Human actions
    # ------------------------------------------------------------------

    def acknowledge(
        self,
        alert_id: str,
        actor: str,
        note: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> CrisisAlert:
        """Acknowledge an active alert and cancel its escalation timer.

        An acknowledgment that lost a race (the alert was already
        acknowledged or auto-escalated) is logged and leaves the alert
        unchanged.

        Raises:
            AlertNotFoundError: If no alert has this id
            AlertTransitionError: If the alert is closed
        """
        alert = self.get_alert(alert_id)
        with alert.lock:
            try:
                self._require_state(alert, AlertState.ACKNOWLEDGED, "acknowledge")
            except ConcurrencyError as exc:
                self._record_anomaly(alert, "acknowledge", exc)
                self._mark_group_acknowledged(alert, group_id)
                return alert

            alert.transition(AlertState.ACKNOWLEDGED, "acknowledged", actor, self.clock(), note)
            self._cancel_timer(alert.id)
            self._mark_group_acknowledged(alert, group_id)

        self._audit(alert, "alert.acknowledged", actor, note)
        return alert

    def escalate(self, alert_id: str, actor: str, note: Optional[str] = None) -> CrisisAlert:
        """Manually escalate an active or acknowledged alert.

        Raises:
            AlertNotFoundError: If no alert has this id
            AlertTransitionError: If escalation is not allowed from the current state
        """
        alert = self.get_alert(alert_id)
        with alert.lock:
            alert.transition(AlertState.ESCALATED, "manually_escalated", actor, self.clock(), note)
            self._cancel_timer(alert.id)
            groups = self._escalation_groups(alert)

        self._audit(alert, "alert.escalated", actor, note)
        self._dispatch(alert, groups, reason="manually_escalated")
        return alert

    def resolve(self, alert_id: str, actor: str, note: Optional[str] = None) -> CrisisAlert:
        """Resolve an acknowledged or escalated alert.

        Raises:
            AlertNotFoundError: If no alert has this id
            AlertTransitionError: If the alert cannot be resolved from its state
        """
        return self._close(alert_id, AlertState.RESOLVED, "resolved", actor, note)

    def mark_false_positive(
        self,
        alert_id: str,
        actor: str,
        note: Optional[str] = None,
    ) -> CrisisAlert:
        """Close an acknowledged alert as a false positive.

        Raises:
            AlertNotFoundError: If no alert has this id
            AlertTransitionError: If the alert is not acknowledged
        """
        return self._close(alert_id, AlertState.FALSE_POSITIVE, "false_positive", actor, note)

    def _close(
        self,
        alert_id: str,
        target: AlertState,
        action: str,
        actor: str,
        note: Optional[str],
    ) -> CrisisAlert:
        alert = self.get_alert(alert_id)
        with alert.lock:
            if target in HUMAN_ONLY_STATES and actor == SYSTEM_ACTOR and alert.protocol.human_in_loop:
                raise HumanActionRequiredError(alert.id, alert.state, target)
            alert.transition(target, action, actor, self.clock(), note)
            self._cancel_timer(alert.id)

        self._audit(alert, f"alert.{action}", actor, note)
        return alert

    # ------------------------------------------------------------------
    # Automatic transitions
    # ------------------------------------------------------------------

    def _start_timer(self, alert: CrisisAlert) -> None:
        """Schedule auto-escalation. Caller holds ``alert.lock``."""
        delay = alert.protocol.escalation_timeout_minutes * 60
        handle = self.scheduler.schedule(delay, lambda: self._on_timeout(alert.id))
        with self._store_lock:
            self._timers[alert.id] = handle

    def _cancel_timer(self, alert_id: str) -> None:
        with self._store_lock:
            handle = self._timers.pop(alert_id, None)
        if handle is not None:
            handle.cancel()

    def _on_timeout(self, alert_id: str) -> None:
        """Timer callback: escalate if still unacknowledged."""
        alert = self.get_alert(alert_id)
        with alert.lock:
            with self._store_lock:
                self._timers.pop(alert_id, None)
            try:
                self._require_state(alert, AlertState.ESCALATED, "auto_escalate")
            except (ConcurrencyError, AlertTransitionError) as exc:
                self._record_anomaly(alert, "auto_escalate", exc)
                return

            minutes = alert.protocol.escalation_timeout_minutes
            now = self.clock()
            elapsed = minutes_between(alert.activated_at or alert.triggered_at, now)
            alert.transition(
                AlertState.ESCALATED,
                "auto_escalated",
                SYSTEM_ACTOR,
                now,
                f"not acknowledged within {minutes} minutes",
            )
            groups = self._escalation_groups(alert)

        logger.critical(
            f"Crisis alert auto-escalated after {elapsed:.1f} minutes without acknowledgment",
            extra={"alert_id": alert.id, "session_id": alert.session_id, "action": "auto_escalated"},
        )
        self._audit(alert, "alert.auto_escalated", SYSTEM_ACTOR, None)
        self._dispatch(alert, groups, reason="auto_escalated")

    def _on_recipient_acknowledge(self, alert_id: str, group_id: str, actor: str) -> None:
        """Acknowledgment callback handed to the notifier."""
        try:
            self.acknowledge(alert_id, actor, note=f"acknowledged via {group_id}", group_id=group_id)
        except AlertTransitionError as exc:
            alert = self.get_alert(alert_id)
            self._record_anomaly(alert, "recipient_acknowledge", exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_state(self, alert: CrisisAlert, target: AlertState, action: str) -> None:
        """Check the alert is still active before moving to ``target``.

        Caller holds the lock.

        Raises:
            ConcurrencyError: If another transition already moved it on
            AlertTransitionError: If the alert is closed
        """
        if alert.state == AlertState.ACTIVE:
            return
        if alert.is_terminal:
            raise AlertTransitionError(alert.id, alert.state, target)
        raise ConcurrencyError(
            f"{action} on alert {alert.id} expected active "
            f"but found {alert.state.value}"
        )

    def _record_anomaly(self, alert: CrisisAlert, action: str, exc: Exception) -> None:
        logger.warning(
            f"Operational anomaly: conflicting transition ignored: {exc}",
            extra={"alert_id": alert.id, "action": action},
        )
        audit_logger.log(
            action="alert.transition_conflict",
            actor_type="system",
            actor_id=SYSTEM_ACTOR,
            entity_type="crisis_alert",
            entity_id=alert.id,
            metadata={"attempted": action, "state": alert.state.value, "detail": str(exc)},
        )

    def _escalation_groups(self, alert: CrisisAlert) -> tuple[str, ...]:
        """Bound groups, plus emergency services when authorised."""
        groups = list(alert.protocol.notification_groups)
        if alert.protocol.emergency_services_authorized:
            emergency = settings.emergency_services_group_id
            if emergency not in groups:
                groups.append(emergency)
        for group in groups:
            alert.targets.setdefault(group, NotificationTarget(group_id=group))
        return tuple(groups)

    def _mark_group_acknowledged(self, alert: CrisisAlert, group_id: Optional[str]) -> None:
        target = alert.targets.get(group_id) if group_id else None
        if target is not None and target.status != TargetStatus.ACKNOWLEDGED:
            target.status = TargetStatus.ACKNOWLEDGED
            target.acknowledged_at = self.clock()

    def _dispatch(self, alert: CrisisAlert, groups: Iterable[str], reason: str) -> None:
        """Send the alert to groups. Never called with the alert lock held."""
        groups = tuple(groups)
        if not groups:
            logger.critical(
                "Crisis alert has no notification groups",
                extra={"alert_id": alert.id, "action": reason},
            )
            return

        payload = NotificationPayload(
            alert_id=alert.id,
            patient_ref=alert.patient_ref,
            alert_type=alert.alert_type,
            severity=alert.severity,
            triggered_at=alert.triggered_at,
            recommended_actions=alert.protocol.required_actions,
            notification_group_ids=groups,
            emergency_services_authorized=alert.protocol.emergency_services_authorized,
            reason=reason,
        )

        def on_acknowledge(group_id: str, actor: str) -> None:
            self._on_recipient_acknowledge(alert.id, group_id, actor)

        try:
            receipt = self.notifier.notify(payload, on_acknowledge)
        except DeliveryError as exc:
            failed = exc.failed_groups or groups
            logger.error(
                f"Alert delivery failed for groups={','.join(failed)}: {exc}",
                extra={"alert_id": alert.id, "action": reason},
            )
            receipt = DeliveryReceipt(failed={group: str(exc) for group in failed})
        except Exception as exc:
            # Any provider fault counts as a failed delivery to every group
            logger.exception(
                f"Notifier raised during alert delivery: {exc!r}",
                extra={"alert_id": alert.id, "action": reason},
            )
            receipt = DeliveryReceipt(
                failed={group: f"{type(exc).__name__}: {exc}" for group in groups}
            )

        with alert.lock:
            for group in groups:
                target = alert.targets.setdefault(group, NotificationTarget(group_id=group))
                target.attempts += 1
                if target.status == TargetStatus.ACKNOWLEDGED:
                    continue
                if group in receipt.failed:
                    target.status = TargetStatus.FAILED
                    target.last_error = receipt.failed[group]
                elif group in receipt.delivered:
                    target.status = TargetStatus.DELIVERED
                    target.last_error = None

    def _report_missing_configuration(
        self,
        alert: CrisisAlert,
        error: Exception,
    ) -> None:
        """Raise the missing protocol as an operational alert.

        ``error`` is either a ConfigurationError for the alert's pair or
        whatever stopped the protocol table from loading.
        """
        logger.critical(
            f"Missing crisis protocol configuration: {error}; conservative default applied",
            extra={"alert_id": alert.id, "action": "configuration_missing"},
        )
        audit_logger.log(
            action="alert.configuration_missing",
            actor_type="system",
            actor_id=SYSTEM_ACTOR,
            entity_type="crisis_alert",
            entity_id=alert.id,
            metadata={
                "alert_type": alert.alert_type,
                "severity": alert.severity,
                "error": str(error),
            },
        )

        pair = f"{alert.alert_type}/{alert.severity}"
        if isinstance(error, ConfigurationError):
            fix = f"Add a crisis protocol for {pair}"
        else:
            fix = f"Restore the crisis protocol table ({pair} alert raised on defaults)"

        payload = NotificationPayload(
            alert_id=alert.id,
            patient_ref=alert.patient_ref,
            alert_type="configuration_missing",
            severity="critical",
            triggered_at=alert.triggered_at,
            recommended_actions=(
                fix,
                "Confirm the live alert has been picked up by a clinician",
            ),
            notification_group_ids=(settings.operations_group_id,),
            emergency_services_authorized=False,
            reason="configuration_missing",
        )
        try:
            self.notifier.notify(payload, lambda group_id, actor: None)
        except Exception as exc:
            logger.error(
                f"Operational alert delivery failed: {exc!r}",
                extra={"alert_id": alert.id, "action": "configuration_missing"},
            )

    def _audit(self, alert: CrisisAlert, action: str, actor: str, note: Optional[str]) -> None:
        audit_logger.log(
            action=action,
            actor_type="system" if actor == SYSTEM_ACTOR else "staff",
            actor_id=actor,
            entity_type="crisis_alert",
            entity_id=alert.id,
            metadata={"state": alert.state.value, "note": note},
        )

    def shutdown(self) -> None:
        """Cancel every pending timer."""
        with self._store_lock:
            handles = list(self._timers.values())
            self._timers.clear()
        for handle in handles:
            handle.cancel()
