"""Pydantic schemas for final reports."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from intake_triage.models.score import TriageLevel


class BookingActionRead(BaseModel):
    """Scheduling action offered to the patient."""

    label: str
    provider_type: str
    urgent: bool

    model_config = {"from_attributes": True}


class RiskIndexRead(BaseModel):
    """Weighted 0-100 risk index."""

    overall: float
    domains: dict[str, float]
    trend: str
    questions_counted: int

    model_config = {"from_attributes": True}


class PatientReportRead(BaseModel):
    """Patient-facing report. Carries no diagnosis."""

    triage_level: TriageLevel
    recommendations: list[str]
    urgent_flags: list[str]
    message: str
    activities: list[str]
    next_steps: str
    booking_action: BookingActionRead | None = None

    model_config = {"from_attributes": True}


class ClinicianReportRead(BaseModel):
    """Clinician-facing report."""

    patient_info: dict[str, Any]
    symptoms: list[str]
    interpretation: str
    differentials: list[str]
    key_questions: list[str]
    triage_level: TriageLevel
    actions: list[str]
    urgent_flags: list[str]
    scores: dict[str, Any] = Field(default_factory=dict)
    flags: list[str] = Field(default_factory=list)
    follow_up_responses: list[dict[str, Any]] = Field(default_factory=list)
    adaptive_adjustments: list[str] = Field(default_factory=list)
    risk_index: RiskIndexRead | None = None
    crisis_alert_ids: list[str] = Field(default_factory=list)
    deep_screening_skipped: bool = False

    model_config = {"from_attributes": True}


class FinalReportRead(BaseModel):
    """Both reports for a completed session."""

    session_id: str
    patient: PatientReportRead
    clinician: ClinicianReportRead
    generated_at: datetime
    degraded: bool

    model_config = {"from_attributes": True}
