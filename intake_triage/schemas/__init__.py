"""Pydantic schemas for request/response validation."""

from intake_triage.schemas.alert import (
    AcknowledgeRequest,
    AlertActionRequest,
    CrisisAlertRead,
    EscalationEntryRead,
    NotificationTargetRead,
    ProtocolRead,
    ProtocolSnapshotRead,
)
from intake_triage.schemas.intake import (
    AnswerOptionRead,
    AnswerRecorded,
    AnswerSubmit,
    DeepResultResponse,
    QuestionRead,
    SafetyBannerResponse,
    SessionCreate,
    SessionRead,
    ShortResultResponse,
    StageQuestionsResponse,
    StageSubmit,
)
from intake_triage.schemas.report import (
    BookingActionRead,
    ClinicianReportRead,
    FinalReportRead,
    PatientReportRead,
    RiskIndexRead,
)

__all__ = [
    "AcknowledgeRequest",
    "AlertActionRequest",
    "CrisisAlertRead",
    "EscalationEntryRead",
    "NotificationTargetRead",
    "ProtocolRead",
    "ProtocolSnapshotRead",
    "AnswerOptionRead",
    "AnswerRecorded",
    "AnswerSubmit",
    "DeepResultResponse",
    "QuestionRead",
    "SafetyBannerResponse",
    "SessionCreate",
    "SessionRead",
    "ShortResultResponse",
    "StageQuestionsResponse",
    "StageSubmit",
    "BookingActionRead",
    "ClinicianReportRead",
    "FinalReportRead",
    "PatientReportRead",
    "RiskIndexRead",
]
