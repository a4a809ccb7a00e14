"""Domain models."""

from intake_triage.models.alert import (
    AlertState,
    AlertTransitionError,
    CrisisAlert,
    EscalationEntry,
    NotificationTarget,
    TargetStatus,
)
from intake_triage.models.question import (
    AdaptiveLogic,
    AnswerOption,
    AnswerType,
    Domain,
    Question,
    Stage,
)
from intake_triage.models.score import (
    CRISIS_ALERT_TRIGGERS,
    CRISIS_OVERRIDE_FLAGS,
    RiskFlag,
    Severity,
    TriageLevel,
    max_triage_level,
)
from intake_triage.models.session import (
    AnswerSet,
    AnswerSetClosedError,
    AssessmentSession,
    SessionStatus,
)

__all__ = [
    "AdaptiveLogic",
    "AlertState",
    "AlertTransitionError",
    "AnswerOption",
    "AnswerSet",
    "AnswerSetClosedError",
    "AnswerType",
    "AssessmentSession",
    "CRISIS_ALERT_TRIGGERS",
    "CRISIS_OVERRIDE_FLAGS",
    "CrisisAlert",
    "Domain",
    "EscalationEntry",
    "NotificationTarget",
    "Question",
    "RiskFlag",
    "SessionStatus",
    "Severity",
    "Stage",
    "TargetStatus",
    "TriageLevel",
    "max_triage_level",
]
