"""Business logic services."""

from intake_triage.services.adaptive import AdaptiveQuestionSelector
from intake_triage.services.escalation import (
    AlertNotFoundError,
    ConcurrencyError,
    EscalationService,
    HumanActionRequiredError,
)
from intake_triage.services.intake import (
    AnswerOutcome,
    AnswerValidationError,
    IntakeOrchestrator,
    SessionNotFoundError,
    StageOrderError,
)
from intake_triage.services.notifications import (
    DeliveryError,
    DeliveryReceipt,
    LoggingNotifier,
    NotificationCollaborator,
    NotificationPayload,
)
from intake_triage.services.reporting import (
    ClinicianReport,
    FinalReport,
    PatientReport,
    generate_final_report,
)
from intake_triage.services.timers import (
    ThreadingTimerScheduler,
    TimerHandle,
    TimerScheduler,
)

__all__ = [
    "AdaptiveQuestionSelector",
    "AlertNotFoundError",
    "ConcurrencyError",
    "EscalationService",
    "HumanActionRequiredError",
    "AnswerOutcome",
    "AnswerValidationError",
    "IntakeOrchestrator",
    "SessionNotFoundError",
    "StageOrderError",
    "DeliveryError",
    "DeliveryReceipt",
    "LoggingNotifier",
    "NotificationCollaborator",
    "NotificationPayload",
    "ClinicianReport",
    "FinalReport",
    "PatientReport",
    "generate_final_report",
    "ThreadingTimerScheduler",
    "TimerHandle",
    "TimerScheduler",
]
