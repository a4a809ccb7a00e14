"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("ENV", "test")

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from intake_triage.api.deps import (
    get_escalation_service,
    get_orchestrator,
    get_protocol_registry,
)
from intake_triage.core.config import RULESETS_DIR
from intake_triage.main import app
from intake_triage.protocols.registry import ProtocolRegistry
from intake_triage.services.escalation import EscalationService
from intake_triage.services.intake import IntakeOrchestrator
from intake_triage.services.notifications import (
    AcknowledgeCallback,
    DeliveryError,
    DeliveryReceipt,
    NotificationCollaborator,
    NotificationPayload,
)
from intake_triage.services.timers import TimerHandle, TimerScheduler

PROTOCOLS_FILE = RULESETS_DIR / "crisis-protocols-v1.0.0.yaml"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now = self.now + timedelta(minutes=minutes)


class FakeTimerHandle(TimerHandle):
    def __init__(self, due: datetime, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler(TimerScheduler):
    """Timer scheduler driven by a FakeClock.

    Callbacks run synchronously from ``advance`` once their due time
    has been reached.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.handles: list[FakeTimerHandle] = []

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        handle = FakeTimerHandle(self.clock.now + timedelta(seconds=delay_seconds), callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, minutes: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.clock.now + timedelta(minutes=minutes)
        while True:
            due = sorted(
                (h for h in self.pending if h.due <= target),
                key=lambda h: h.due,
            )
            if not due:
                break
            handle = due[0]
            self.clock.now = handle.due
            handle.fired = True
            handle.callback()
        self.clock.now = target


class RecordingNotifier(NotificationCollaborator):
    """Notifier that records payloads and can simulate failures."""

    def __init__(self) -> None:
        self.sent: list[NotificationPayload] = []
        self.callbacks: dict[str, AcknowledgeCallback] = {}
        self.fail_groups: set[str] = set()
        self.raise_error = False
        # Raised as-is, for provider faults that are not DeliveryError
        self.raise_exception: Exception | None = None

    def notify(
        self,
        payload: NotificationPayload,
        on_acknowledge: AcknowledgeCallback,
    ) -> DeliveryReceipt:
        self.sent.append(payload)
        self.callbacks[payload.alert_id] = on_acknowledge
        if self.raise_exception is not None:
            raise self.raise_exception
        if self.raise_error:
            raise DeliveryError("provider unavailable")
        failed = {g: "unreachable" for g in payload.notification_group_ids if g in self.fail_groups}
        delivered = [g for g in payload.notification_group_ids if g not in failed]
        return DeliveryReceipt(delivered=delivered, failed=failed, provider_reference="test")

    def sent_for(self, reason: str) -> list[NotificationPayload]:
        return [p for p in self.sent if p.reason == reason]


def build_history_answers(**overrides: Any) -> dict[str, Any]:
    answers: dict[str, Any] = {
        "name": "Sam",
        "age": 29,
        "gender": "prefer_not_to_say",
        "occupation": "working",
        "ongoing_medication": "no",
        "past_psychiatric_history": "no",
        "past_medical_history": "no",
        "family_psychiatric_history": "no",
        "trauma_history": "no",
    }
    answers.update(overrides)
    return answers


SHORT_IDS = (
    "q1_sadness",
    "q2_anxiety",
    "q3_concentration",
    "q4_lost_interest",
    "q5_sleep",
    "q6_fatigue",
    "q7_social_anxiety",
    "q8_irritability",
    "q9_digital_escape",
    "q10_suicidal_thoughts",
)

DEEP_IDS = (
    "depression_q1_sadness",
    "depression_q2_anhedonia",
    "depression_q3_sleep_energy",
    "depression_q4_suicidal_thoughts",
    "anxiety_q5_nervousness",
    "anxiety_q6_excessive_worry",
    "anxiety_q7_restlessness",
    "suicide_q8_passive_thoughts",
    "suicide_q9_active_thoughts",
    "mania_q10_elevated_mood",
    "mania_q11_decreased_sleep",
    "psychosis_q12_hallucinations",
    "psychosis_q13_paranoia",
    "substance_q14_alcohol_tobacco",
    "substance_q15_drugs",
    "functioning_q16_impairment",
    "sleep_q17_hours",
)

SUICIDE_FOLLOW_UP_ANSWERS = {
    "fu_suicide_plan": "no",
    "fu_suicide_intent": 0,
    "fu_suicide_means": "no",
}


def build_short_answers(default: int = 0, **overrides: Any) -> dict[str, Any]:
    answers: dict[str, Any] = {qid: default for qid in SHORT_IDS}
    answers.update(overrides)
    return answers


def build_deep_answers(default: int = 0, **overrides: Any) -> dict[str, Any]:
    answers: dict[str, Any] = {qid: default for qid in DEEP_IDS}
    answers.update(overrides)
    return answers


@pytest.fixture
def history_answers() -> Callable[..., dict[str, Any]]:
    return build_history_answers


@pytest.fixture
def short_answers() -> Callable[..., dict[str, Any]]:
    return build_short_answers


@pytest.fixture
def deep_answers() -> Callable[..., dict[str, Any]]:
    return build_deep_answers


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> FakeScheduler:
    return FakeScheduler(clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def protocols_path(tmp_path: Path) -> Path:
    """Writable copy of the shipped protocol table."""
    path = tmp_path / "crisis-protocols.yaml"
    path.write_text(PROTOCOLS_FILE.read_text())
    return path


@pytest.fixture
def registry(protocols_path: Path) -> ProtocolRegistry:
    return ProtocolRegistry(protocols_path)


@pytest.fixture
def escalation(
    registry: ProtocolRegistry,
    notifier: RecordingNotifier,
    scheduler: FakeScheduler,
    clock: FakeClock,
) -> Generator[EscalationService, None, None]:
    service = EscalationService(registry, notifier, scheduler=scheduler, clock=clock)
    yield service
    service.shutdown()


@pytest.fixture
def orchestrator(escalation: EscalationService) -> IntakeOrchestrator:
    return IntakeOrchestrator(escalation_service=escalation)


@pytest.fixture(scope="function")
def client(
    registry: ProtocolRegistry,
    escalation: EscalationService,
    orchestrator: IntakeOrchestrator,
) -> Generator[TestClient, None, None]:
    """Create FastAPI test client with overridden dependencies."""
    app.dependency_overrides[get_protocol_registry] = lambda: registry
    app.dependency_overrides[get_escalation_service] = lambda: escalation
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
