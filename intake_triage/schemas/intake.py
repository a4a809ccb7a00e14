"""Pydantic schemas for intake operations."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from intake_triage.models.question import AnswerType, Domain, Stage
from intake_triage.models.score import Severity, TriageLevel
from intake_triage.models.session import SessionStatus


class SafetyBannerResponse(BaseModel):
    """Schema for safety banner configuration."""

    enabled: bool
    text: str


class AnswerOptionRead(BaseModel):
    """A selectable answer."""

    value: Any
    label: str

    model_config = {"from_attributes": True}


class QuestionRead(BaseModel):
    """Schema for reading a catalog question."""

    id: str
    stage: Stage
    domain: Domain
    text: str
    answer_type: AnswerType
    options: list[AnswerOptionRead] = Field(default_factory=list)
    required: bool
    is_follow_up: bool = False
    min_value: int | None = None
    max_value: int | None = None


class StageQuestionsResponse(BaseModel):
    """Question sequence for a stage."""

    stage: Stage
    questions: list[QuestionRead]


class SessionCreate(BaseModel):
    """Schema for opening an assessment session."""

    patient_ref: str = Field(..., min_length=1, max_length=128)


class SessionRead(BaseModel):
    """Schema for reading an assessment session."""

    id: str
    patient_ref: str
    status: SessionStatus
    created_at: datetime
    completed_at: datetime | None = None
    current_stage: Stage | None = None
    question_sequence: list[str] = Field(default_factory=list)
    answered: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    deep_skipped: bool = False
    triage_level: TriageLevel | None = None
    crisis_alert_ids: list[str] = Field(default_factory=list)


class AnswerSubmit(BaseModel):
    """Schema for recording a single answer."""

    question_id: str
    value: Any = Field(..., description="Answer value (scale int, yes/no, choice or text)")


class AnswerRecorded(BaseModel):
    """Outcome of recording one answer."""

    question_id: str
    follow_ups_added: list[str]
    question_sequence: list[str]
    missing: list[str]


class StageSubmit(BaseModel):
    """Schema for completing a stage."""

    answers: dict[str, Any] = Field(
        default_factory=dict,
        description="Question id to answer; merged over answers already recorded",
    )


class ShortResultResponse(BaseModel):
    """Short questionnaire outcome."""

    session_id: str
    total: int
    severity: Severity
    needs_deep_screening: bool
    auto_flags: list[str]
    status: SessionStatus


class DeepResultResponse(BaseModel):
    """Deep screening outcome."""

    session_id: str
    total: int
    severity: Severity
    domain_scores: dict[str, int]
    risk_flags: list[str]
    status: SessionStatus
