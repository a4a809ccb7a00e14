"""Patient and clinician report generation.

The patient report carries no diagnosis: only a triage level, plain
language guidance and a booking action. The clinician report adds
the demographic summary, symptom domains, interpretation, candidate
differentials and suggested questions.

A patient always receives a report. If building it fails, the
session degrades to the most conservative triage level with a
clinician review line rather than going without.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from intake_triage.booking.policy import BookingAction, get_booking_action
from intake_triage.fixtures.questions import catalog
from intake_triage.models.question import YES_VALUES, Stage
from intake_triage.models.score import TriageLevel
from intake_triage.models.session import AssessmentSession
from intake_triage.scoring.risk_index import RiskIndex, weighted_risk_index
from intake_triage.triage.resolver import (
    LEVEL_RECOMMENDATIONS,
    TriageDecision,
    resolve_session,
)
from intake_triage.utils.time import utc_now

logger = logging.getLogger(__name__)

CLINICIAN_REVIEW_REQUIRED = "Clinician review required"

PATIENT_GUIDANCE: dict[TriageLevel, tuple[str, tuple[str, ...], str]] = {
    TriageLevel.MONITOR: (
        "You're managing stress pretty well! Here are some simple strategies "
        "to maintain your mental wellness.",
        (
            "5-minute guided breathing exercise at night",
            "Write 3 lines about your day in a journal",
        ),
        "Continue with self-care and monitor how you feel",
    ),
    TriageLevel.THERAPIST: (
        "We noticed signs of stress that may be affecting your daily life. "
        "A mental health professional can guide you better.",
        (
            "5-minute guided breathing at night",
            "Write 3 lines about your day in a journal",
        ),
        "Book a session with a therapist",
    ),
    TriageLevel.THERAPIST_AND_PSYCHIATRIST: (
        "We found patterns that suggest you could benefit from professional "
        "support. Both therapy and medical evaluation may be helpful.",
        (
            "Practice deep breathing exercises",
            "Maintain a daily mood journal",
        ),
        "Book sessions with both a therapist and psychiatrist",
    ),
    TriageLevel.PSYCHIATRIST_CRISIS: (
        "We're concerned about your wellbeing and strongly recommend speaking "
        "with a mental health professional soon.",
        (
            "Reach out to a trusted friend or family member",
            "Practice grounding techniques when feeling overwhelmed",
        ),
        "Schedule an urgent appointment with a psychiatrist",
    ),
}

# (domain, minimum domain score, symptom label)
DEEP_SYMPTOM_THRESHOLDS = [
    ("depression", 4, "low mood"),
    ("anxiety", 4, "anxiety"),
    ("suicidality", 1, "suicidal ideation"),
    ("mania", 3, "manic symptoms"),
    ("psychosis", 2, "psychotic symptoms"),
    ("substance", 3, "substance use"),
    ("functioning", 3, "functional impairment"),
]

SYMPTOM_DIFFERENTIALS = [
    ("low mood", "Major Depressive Disorder"),
    ("anxiety", "Generalized Anxiety Disorder"),
    ("manic symptoms", "Bipolar Disorder"),
    ("psychotic symptoms", "Psychotic Disorder"),
    ("substance use", "Substance Use Disorder"),
]

KEY_CLINICIAN_QUESTIONS = (
    "Duration and onset of current symptoms",
    "Previous treatment history and response",
    "Current medication effects and side effects",
    "Family psychiatric history details",
    "Specific triggers or stressors",
    "Current support system and resources",
)
SAFETY_QUESTION = "Safety assessment and suicide risk evaluation"


@dataclass
class PatientReport:
    """Patient-facing summary. No diagnosis."""
    triage_level: TriageLevel
    recommendations: list[str]
    urgent_flags: list[str]
    message: str
    activities: list[str]
    next_steps: str
    booking_action: Optional[BookingAction]


@dataclass
class ClinicianReport:
    """Clinician-facing report."""
    patient_info: dict[str, Any]
    symptoms: list[str]
    interpretation: str
    differentials: list[str]
    key_questions: list[str]
    triage_level: TriageLevel
    actions: list[str]
    urgent_flags: list[str]
    scores: dict[str, Any] = field(default_factory=dict)
    flags: list[str] = field(default_factory=list)
    follow_up_responses: list[dict[str, Any]] = field(default_factory=list)
    adaptive_adjustments: list[str] = field(default_factory=list)
    risk_index: Optional[RiskIndex] = None
    crisis_alert_ids: list[str] = field(default_factory=list)
    deep_screening_skipped: bool = False


@dataclass
class FinalReport:
    """Both reports for a completed session."""
    session_id: str
    patient: PatientReport
    clinician: ClinicianReport
    generated_at: datetime = field(default_factory=utc_now)
    degraded: bool = False


def build_patient_report(decision: TriageDecision) -> PatientReport:
    """Patient summary for a triage decision."""
    message, activities, next_steps = PATIENT_GUIDANCE[decision.triage_level]
    return PatientReport(
        triage_level=decision.triage_level,
        recommendations=list(decision.recommendations),
        urgent_flags=list(decision.urgent_flags),
        message=message,
        activities=list(activities),
        next_steps=next_steps,
        booking_action=decision.booking_action,
    )


def summarise_history(session: AssessmentSession) -> dict[str, Any]:
    """Demographic summary from history answers."""
    history = session.history

    def answered_yes(question_id: str) -> bool:
        value = history.get(question_id)
        return isinstance(value, (str, bool)) and value in YES_VALUES

    def detail(question_id: str, detail_id: str, yes_default: str, no_text: str) -> str:
        if not answered_yes(question_id):
            return no_text
        return history.get(detail_id) or yes_default

    return {
        "name": history.get("name") or None,
        "age": history.get("age"),
        "gender": history.get("gender"),
        "occupation": history.get("occupation"),
        "medications": detail(
            "ongoing_medication", "ongoing_medication_details",
            "Reported, no details given", "None reported",
        ),
        "past_history": detail(
            "past_psychiatric_history", "past_psychiatric_history_details",
            "Reported, no details given", "No past psychiatric history",
        ),
        "medical_history": detail(
            "past_medical_history", "past_medical_history_conditions",
            "Reported, no details given", "None reported",
        ),
        "family_history": "Positive" if answered_yes("family_psychiatric_history") else "Negative",
        "trauma": "Reported" if answered_yes("trauma_history") else "None reported",
    }


def identify_symptoms(session: AssessmentSession) -> list[str]:
    """Symptom domain labels, from deep screening when available."""
    symptoms: list[str] = []
    deep = session.deep_result
    if deep is not None:
        for domain, minimum, label in DEEP_SYMPTOM_THRESHOLDS:
            if deep.domain_scores.get(domain, 0) >= minimum:
                symptoms.append(label)
        return symptoms

    short = session.short_result
    if short.total >= 8:
        symptoms.append("mood disturbance")
    if "suicidality_risk" in short.auto_flags:
        symptoms.append("suicidal ideation")
    if "severe_sleep_disturbance" in short.auto_flags:
        symptoms.append("severe sleep disturbance")
    if "compulsive_digital_use" in short.auto_flags:
        symptoms.append("compulsive digital use")
    return symptoms


def interpret(session: AssessmentSession) -> str:
    """Free-text interpretation of the primary stage score."""
    deep = session.deep_result
    if deep is None:
        text = f"Short screening suggests {session.short_result.severity.value} level symptoms"
        if session.deep_skipped:
            text += "; deep screening was triggered but skipped by the patient"
        return text
    if deep.total <= 10:
        return "Pattern suggests mild distress, likely situational"
    if deep.total <= 20:
        return "Pattern suggests moderate depression/anxiety"
    if deep.total <= 35:
        return (
            "Pattern suggests moderate-severe mental health symptoms "
            "requiring professional intervention"
        )
    return "Pattern suggests severe mental health symptoms requiring immediate attention"


def suggest_differentials(symptoms: list[str]) -> list[str]:
    differentials = [dx for symptom, dx in SYMPTOM_DIFFERENTIALS if symptom in symptoms]
    differentials.append("Adjustment Disorder")
    return differentials


def follow_up_responses(session: AssessmentSession) -> list[dict[str, Any]]:
    """Answers given to adaptive follow-up questions, in stage order."""
    responses = []
    for stage in Stage:
        answers = session.answers_for(stage)
        if answers is None:
            continue
        for question_id, value in answers.snapshot().items():
            if not catalog.is_follow_up(question_id):
                continue
            question = catalog.get(question_id)
            responses.append({
                "stage": stage.value,
                "question_id": question_id,
                "question": question.text,  # type: ignore[union-attr]
                "answer": question.label_for(value),  # type: ignore[union-attr]
            })
    return responses


def _score_summary(session: AssessmentSession) -> dict[str, Any]:
    short = session.short_result
    scores: dict[str, Any] = {
        "short_questionnaire": {
            "total": short.total,
            "severity": short.severity.value,
            "needs_deep_screening": short.needs_deep_screening,
            "auto_flags": list(short.auto_flags),
            "ruleset_version": short.ruleset_version,
            "ruleset_hash": short.ruleset_hash,
        },
        "deep_screening": None,
    }
    deep = session.deep_result
    if deep is not None:
        scores["deep_screening"] = {
            "total": deep.total,
            "severity": deep.severity.value,
            "domain_scores": dict(deep.domain_scores),
            "risk_flags": list(deep.risk_flags),
            "ruleset_version": deep.ruleset_version,
            "ruleset_hash": deep.ruleset_hash,
        }
    return scores


def build_clinician_report(
    session: AssessmentSession,
    decision: TriageDecision,
    adaptive_adjustments: Optional[list[str]] = None,
) -> ClinicianReport:
    """Clinician report for a session with scored stages."""
    symptoms = identify_symptoms(session)

    key_questions = list(KEY_CLINICIAN_QUESTIONS)
    if decision.urgent_flags:
        key_questions.insert(0, SAFETY_QUESTION)

    all_answers: dict[str, Any] = dict(session.short.snapshot())
    if session.deep is not None:
        all_answers.update(session.deep.snapshot())

    return ClinicianReport(
        patient_info=summarise_history(session),
        symptoms=symptoms,
        interpretation=interpret(session),
        differentials=suggest_differentials(symptoms),
        key_questions=key_questions,
        triage_level=decision.triage_level,
        actions=list(decision.recommendations),
        urgent_flags=list(decision.urgent_flags),
        scores=_score_summary(session),
        flags=list(decision.flags),
        follow_up_responses=follow_up_responses(session),
        adaptive_adjustments=list(adaptive_adjustments or []),
        risk_index=weighted_risk_index(all_answers),
        crisis_alert_ids=list(session.alert_ids),
        deep_screening_skipped=session.deep_skipped,
    )


def degraded_report(session: AssessmentSession, error: Exception) -> FinalReport:
    """Most conservative report, used when generation fails."""
    level = TriageLevel.PSYCHIATRIST_CRISIS
    message, activities, next_steps = PATIENT_GUIDANCE[level]
    recommendations = [
        f"{CLINICIAN_REVIEW_REQUIRED}: automated assessment could not be completed",
        *LEVEL_RECOMMENDATIONS[level],
    ]
    urgent_flags = [CLINICIAN_REVIEW_REQUIRED]

    patient = PatientReport(
        triage_level=level,
        recommendations=recommendations,
        urgent_flags=urgent_flags,
        message=message,
        activities=list(activities),
        next_steps=next_steps,
        booking_action=get_booking_action(level),
    )
    clinician = ClinicianReport(
        patient_info={},
        symptoms=[],
        interpretation=(
            f"Automated report generation failed ({type(error).__name__}); "
            "review the raw answers directly"
        ),
        differentials=[],
        key_questions=[SAFETY_QUESTION, *KEY_CLINICIAN_QUESTIONS],
        triage_level=level,
        actions=recommendations,
        urgent_flags=urgent_flags,
        crisis_alert_ids=list(session.alert_ids),
        deep_screening_skipped=session.deep_skipped,
    )
    return FinalReport(
        session_id=session.id,
        patient=patient,
        clinician=clinician,
        degraded=True,
    )


def generate_final_report(
    session: AssessmentSession,
    adaptive_adjustments: Optional[list[str]] = None,
) -> tuple[FinalReport, Optional[TriageDecision]]:
    """Resolve triage and build both reports, degrading on any fault.

    Returns:
        (report, decision); decision is None when the report degraded
    """
    try:
        decision = resolve_session(session.short_result, session.deep_result)
        report = FinalReport(
            session_id=session.id,
            patient=build_patient_report(decision),
            clinician=build_clinician_report(session, decision, adaptive_adjustments),
        )
        return report, decision
    except Exception as exc:
        logger.exception(
            "Final report generation failed; degrading to crisis triage",
            extra={"session_id": session.id, "action": "report_degraded"},
        )
        return degraded_report(session, exc), None
