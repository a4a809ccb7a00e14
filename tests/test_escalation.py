"""Tests for the crisis alert escalation protocol."""

import threading

import pytest

from intake_triage.core.config import settings
from intake_triage.models.alert import AlertState, AlertTransitionError, TargetStatus
from intake_triage.protocols.registry import ProtocolRegistry
from intake_triage.services.escalation import (
    PROTOCOLS_UNAVAILABLE,
    SYSTEM_ACTOR,
    AlertNotFoundError,
    EscalationService,
    HumanActionRequiredError,
)


def raise_suicide_alert(escalation: EscalationService, **kwargs):
    return escalation.raise_alert(
        alert_type="suicide_ideation",
        severity="critical",
        patient_ref="patient-1",
        answers={"suicide_q9_active_thoughts": 3},
        **kwargs,
    )


class TestAlertCreation:
    """none -> active on creation."""

    def test_alert_is_active_immediately(self, escalation) -> None:
        """Test that a new alert is active with its protocol bound."""
        alert = raise_suicide_alert(escalation)

        assert alert.state == AlertState.ACTIVE
        assert alert.protocol.name == "Critical Suicide Risk Protocol"
        assert alert.protocol_version == "1.0.0"
        assert alert.history[0].from_state == AlertState.NONE
        assert alert.history[0].to_state == AlertState.ACTIVE

    def test_bound_groups_notified(self, escalation, notifier) -> None:
        """Test the payload sent on creation."""
        alert = raise_suicide_alert(escalation)

        [payload] = notifier.sent
        assert payload.alert_id == alert.id
        assert payload.notification_group_ids == ("crisis_team", "senior_staff")
        assert payload.emergency_services_authorized is True
        assert payload.recommended_actions[0] == "Immediate safety assessment"
        assert alert.targets["crisis_team"].status == TargetStatus.DELIVERED

    def test_answers_are_read_only(self, escalation) -> None:
        """Test the alert keeps an immutable copy of the triggering answers."""
        alert = raise_suicide_alert(escalation)

        with pytest.raises(TypeError):
            alert.answers["suicide_q9_active_thoughts"] = 0  # type: ignore[index]

    def test_unknown_alert(self, escalation) -> None:
        """Test lookup of a missing alert."""
        with pytest.raises(AlertNotFoundError):
            escalation.get_alert("missing")


class TestEscalationTiming:
    """Auto-escalation after the protocol timeout."""

    def test_escalates_at_timeout_not_before(self, escalation, scheduler, notifier) -> None:
        """Test timeout of five minutes escalates at t=5 and not earlier."""
        alert = raise_suicide_alert(escalation)

        scheduler.advance(4.9)
        assert alert.state == AlertState.ACTIVE

        scheduler.advance(0.1)
        assert alert.state == AlertState.ESCALATED
        assert alert.history[-1].actor == SYSTEM_ACTOR
        assert alert.history[-1].action == "auto_escalated"

        [payload] = notifier.sent_for("auto_escalated")
        assert settings.emergency_services_group_id in payload.notification_group_ids
        assert "crisis_team" in payload.notification_group_ids

    def test_acknowledge_before_timeout_prevents_escalation(self, escalation, scheduler) -> None:
        """Test acknowledgment at t=3 cancels the timer."""
        alert = raise_suicide_alert(escalation)

        scheduler.advance(3)
        escalation.acknowledge(alert.id, actor="dr_jones")
        scheduler.advance(10)

        assert alert.state == AlertState.ACKNOWLEDGED
        assert alert.acknowledged_by == "dr_jones"
        assert not escalation.has_pending_timer(alert.id)
        assert scheduler.pending == []

    def test_auto_escalation_disabled_stays_active(self, escalation, scheduler) -> None:
        """Test an alert without auto-escalation waits for a human indefinitely."""
        alert = escalation.raise_alert(
            alert_type="severe_depression",
            severity="moderate",
            patient_ref="patient-2",
            answers={},
        )

        scheduler.advance(60 * 24 * 7)

        assert alert.state == AlertState.ACTIVE
        assert not escalation.has_pending_timer(alert.id)

        escalation.acknowledge(alert.id, actor="dr_jones")
        assert alert.state == AlertState.ACKNOWLEDGED

    def test_reload_does_not_change_bound_protocol(self, escalation, registry, protocols_path, scheduler) -> None:
        """Test an alert keeps the protocol it was raised under."""
        alert = raise_suicide_alert(escalation)
        protocols_path.write_text(
            protocols_path.read_text()
            .replace('version: "1.0.0"', 'version: "1.1.0"')
            .replace("escalation_timeout_minutes: 5", "escalation_timeout_minutes: 30")
        )
        registry.reload()

        scheduler.advance(5)

        assert alert.state == AlertState.ESCALATED
        assert alert.protocol_version == "1.0.0"


class TestHumanTransitions:
    """Staff-driven transitions."""

    def test_full_lifecycle(self, escalation) -> None:
        """Test active -> acknowledged -> escalated -> resolved."""
        alert = raise_suicide_alert(escalation)

        escalation.acknowledge(alert.id, actor="nurse_a", note="calling patient")
        escalation.escalate(alert.id, actor="nurse_a", note="no answer")
        escalation.resolve(alert.id, actor="dr_b", note="patient safe")

        assert [entry.to_state for entry in alert.history] == [
            AlertState.ACTIVE,
            AlertState.ACKNOWLEDGED,
            AlertState.ESCALATED,
            AlertState.RESOLVED,
        ]
        assert alert.history[1].note == "calling patient"
        assert alert.is_terminal
        assert alert.closed_at is not None

    def test_manual_escalation_from_active(self, escalation, scheduler, notifier) -> None:
        """Test manual override escalates and stops the timer."""
        alert = raise_suicide_alert(escalation)

        escalation.escalate(alert.id, actor="dr_b")
        scheduler.advance(10)

        assert alert.state == AlertState.ESCALATED
        assert [e.action for e in alert.history].count("auto_escalated") == 0
        assert len(notifier.sent_for("manually_escalated")) == 1

    def test_false_positive_only_from_acknowledged(self, escalation) -> None:
        """Test false_positive requires acknowledgment first."""
        alert = raise_suicide_alert(escalation)

        with pytest.raises(AlertTransitionError):
            escalation.mark_false_positive(alert.id, actor="dr_b")

        escalation.acknowledge(alert.id, actor="dr_b")
        escalation.mark_false_positive(alert.id, actor="dr_b")
        assert alert.state == AlertState.FALSE_POSITIVE

    def test_resolve_requires_acknowledged_or_escalated(self, escalation) -> None:
        """Test an active alert cannot be resolved directly."""
        alert = raise_suicide_alert(escalation)

        with pytest.raises(AlertTransitionError):
            escalation.resolve(alert.id, actor="dr_b")

    def test_terminal_states_are_final(self, escalation) -> None:
        """Test no transition leaves a closed alert."""
        alert = raise_suicide_alert(escalation)
        escalation.acknowledge(alert.id, actor="dr_b")
        escalation.resolve(alert.id, actor="dr_b")

        with pytest.raises(AlertTransitionError):
            escalation.escalate(alert.id, actor="dr_b")
        with pytest.raises(AlertTransitionError):
            escalation.acknowledge(alert.id, actor="dr_b")

    def test_system_cannot_close_human_in_loop_alert(self, escalation) -> None:
        """Test human-in-loop forbids automatic resolution."""
        alert = raise_suicide_alert(escalation)
        escalation.acknowledge(alert.id, actor="dr_b")

        with pytest.raises(HumanActionRequiredError):
            escalation.resolve(alert.id, actor=SYSTEM_ACTOR)
        assert alert.state == AlertState.ACKNOWLEDGED

    def test_recipient_acknowledgment_callback(self, escalation, notifier, scheduler) -> None:
        """Test acknowledgment arriving through the notifier callback."""
        alert = raise_suicide_alert(escalation)

        notifier.callbacks[alert.id]("crisis_team", "counsellor_c")
        scheduler.advance(10)

        assert alert.state == AlertState.ACKNOWLEDGED
        assert alert.acknowledged_by == "counsellor_c"
        assert alert.targets["crisis_team"].status == TargetStatus.ACKNOWLEDGED
        assert alert.targets["senior_staff"].status == TargetStatus.DELIVERED


class TestRaces:
    """Conflicting transitions on one alert."""

    def test_second_acknowledgment_is_ignored(self, escalation) -> None:
        """Test a duplicate acknowledgment leaves the alert unchanged."""
        alert = raise_suicide_alert(escalation)

        escalation.acknowledge(alert.id, actor="first")
        escalation.acknowledge(alert.id, actor="second")

        assert alert.acknowledged_by == "first"
        assert len(alert.history) == 2

    def test_acknowledgment_after_auto_escalation_is_ignored(self, escalation, scheduler) -> None:
        """Test a late acknowledgment never rewinds an escalated alert."""
        alert = raise_suicide_alert(escalation)
        scheduler.advance(5)

        returned = escalation.acknowledge(alert.id, actor="late")

        assert returned.state == AlertState.ESCALATED
        assert alert.acknowledged_by is None

    def test_timer_firing_after_acknowledgment_is_ignored(self, escalation, scheduler) -> None:
        """Test a timer that fires despite cancellation does not escalate."""
        alert = raise_suicide_alert(escalation)
        [handle] = scheduler.handles
        escalation.acknowledge(alert.id, actor="dr_b")

        handle.callback()

        assert alert.state == AlertState.ACKNOWLEDGED
        assert [e.to_state for e in alert.history].count(AlertState.ESCALATED) == 0

    def test_concurrent_acknowledgments_transition_once(self, escalation) -> None:
        """Test many simultaneous acknowledgments record a single transition."""
        alert = raise_suicide_alert(escalation)
        barrier = threading.Barrier(8)

        def worker(n: int) -> None:
            barrier.wait()
            escalation.acknowledge(alert.id, actor=f"staff_{n}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        acknowledgments = [e for e in alert.history if e.to_state == AlertState.ACKNOWLEDGED]
        assert len(acknowledgments) == 1
        assert alert.state == AlertState.ACKNOWLEDGED

    def test_concurrent_ack_and_timeout(self, escalation, scheduler) -> None:
        """Test acknowledgment racing the timer ends in exactly one outcome."""
        alert = raise_suicide_alert(escalation)
        [handle] = scheduler.handles
        barrier = threading.Barrier(2)

        def fire_timer() -> None:
            barrier.wait()
            handle.callback()

        def acknowledge() -> None:
            barrier.wait()
            escalation.acknowledge(alert.id, actor="dr_b")

        threads = [threading.Thread(target=fire_timer), threading.Thread(target=acknowledge)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert alert.state in (AlertState.ACKNOWLEDGED, AlertState.ESCALATED)
        assert len(alert.history) == 2


class TestMissingConfiguration:
    """No protocol for an (alert_type, severity) pair."""

    def test_conservative_default_applied(self, escalation, scheduler) -> None:
        """Test the alert is still raised with the most conservative policy."""
        alert = escalation.raise_alert(
            alert_type="self_harm",
            severity="critical",
            patient_ref="patient-3",
            answers={},
        )

        assert alert.state == AlertState.ACTIVE
        assert alert.protocol.is_default is True
        assert alert.protocol.human_in_loop is True
        assert alert.protocol.auto_escalation_enabled is False
        assert alert.protocol.emergency_services_authorized is True
        assert alert.protocol.notification_groups == tuple(settings.fallback_notification_groups)
        assert not escalation.has_pending_timer(alert.id)

    def test_operations_notified(self, escalation, notifier) -> None:
        """Test the gap is raised as an operational alert."""
        escalation.raise_alert(
            alert_type="eating_disorder",
            severity="high",
            patient_ref="patient-3",
            answers={},
        )

        [operational] = notifier.sent_for("configuration_missing")
        assert operational.notification_group_ids == (settings.operations_group_id,)
        assert "eating_disorder/high" in operational.recommended_actions[0]
        assert len(notifier.sent_for("alert_raised")) == 1

    def test_missing_configuration_logged_critical(self, escalation, caplog) -> None:
        """Test the gap is logged at CRITICAL."""
        with caplog.at_level("CRITICAL"):
            escalation.raise_alert(
                alert_type="unknown",
                severity="high",
                patient_ref="patient-3",
                answers={},
            )

        assert any("Missing crisis protocol" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("content", [None, "protocols: [broken"])
    def test_unloadable_table_applies_default(
        self, notifier, scheduler, clock, tmp_path, content
    ) -> None:
        """Test a missing or invalid protocol file still raises the alert."""
        path = tmp_path / "protocols.yaml"
        if content is not None:
            path.write_text(content)
        service = EscalationService(ProtocolRegistry(path), notifier, scheduler=scheduler, clock=clock)

        alert = raise_suicide_alert(service)

        assert alert.state == AlertState.ACTIVE
        assert alert.protocol.is_default is True
        assert alert.protocol_version == PROTOCOLS_UNAVAILABLE
        [operational] = notifier.sent_for("configuration_missing")
        assert operational.recommended_actions[0].startswith("Restore the crisis protocol table")
        assert len(notifier.sent_for("alert_raised")) == 1
        service.shutdown()


class TestDeliveryFailures:
    """Notification failures never change protocol state."""

    def test_delivery_error_keeps_alert_active(self, escalation, notifier, scheduler) -> None:
        """Test total delivery failure: still active, timer still running."""
        notifier.raise_error = True

        alert = raise_suicide_alert(escalation)

        assert alert.state == AlertState.ACTIVE
        assert escalation.has_pending_timer(alert.id)
        assert alert.targets["crisis_team"].status == TargetStatus.FAILED
        assert alert.targets["crisis_team"].last_error == "provider unavailable"

        scheduler.advance(5)
        assert alert.state == AlertState.ESCALATED

    def test_partial_failure_marks_only_failed_groups(self, escalation, notifier) -> None:
        """Test per-group delivery outcomes."""
        notifier.fail_groups = {"senior_staff"}

        alert = raise_suicide_alert(escalation)

        assert alert.targets["crisis_team"].status == TargetStatus.DELIVERED
        assert alert.targets["senior_staff"].status == TargetStatus.FAILED
        assert alert.targets["senior_staff"].attempts == 1

    def test_unexpected_notifier_error_is_a_failed_delivery(self, escalation, notifier, scheduler) -> None:
        """Test a non-delivery exception marks targets failed and keeps the timer."""
        notifier.raise_exception = ConnectionError("connection reset")

        alert = raise_suicide_alert(escalation)

        assert alert.state == AlertState.ACTIVE
        assert escalation.has_pending_timer(alert.id)
        assert alert.targets["crisis_team"].status == TargetStatus.FAILED
        assert alert.targets["crisis_team"].last_error == "ConnectionError: connection reset"

        scheduler.advance(5)
        assert alert.state == AlertState.ESCALATED

    def test_operational_alert_fault_does_not_block(self, escalation, notifier) -> None:
        """Test a provider fault while reporting missing configuration."""
        notifier.raise_exception = TimeoutError("gateway timeout")

        alert = escalation.raise_alert(
            alert_type="self_harm",
            severity="critical",
            patient_ref="patient-3",
            answers={},
        )

        assert alert.state == AlertState.ACTIVE
        assert alert.protocol.is_default is True
        assert [p.reason for p in notifier.sent] == ["configuration_missing", "alert_raised"]


class TestListing:
    """Alert queries."""

    def test_filter_by_state_and_session(self, escalation) -> None:
        """Test list filters."""
        first = raise_suicide_alert(escalation, session_id="s1")
        second = raise_suicide_alert(escalation, session_id="s2")
        escalation.acknowledge(second.id, actor="dr_b")

        active = escalation.list_alerts(states=[AlertState.ACTIVE])
        assert [a.id for a in active] == [first.id]
        assert [a.id for a in escalation.list_alerts(session_id="s2")] == [second.id]
