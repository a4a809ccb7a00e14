"""Tests for patient and clinician reports."""

from intake_triage.models.score import Severity, TriageLevel
from intake_triage.services.reporting import (
    KEY_CLINICIAN_QUESTIONS,
    PATIENT_GUIDANCE,
    SAFETY_QUESTION,
    build_patient_report,
    suggest_differentials,
)
from intake_triage.triage.resolver import resolve

NO_SUICIDE_FOLLOW_UPS = {
    "fu_suicide_plan": "no",
    "fu_suicide_intent": 0,
    "fu_suicide_means": "no",
}


def _complete(orchestrator, history, short, deep=None):
    session = orchestrator.start_session("patient-7")
    orchestrator.complete_history(session.id, history)
    orchestrator.complete_short(session.id, short)
    if deep is not None:
        orchestrator.complete_deep(session.id, deep)
    return orchestrator.get_report(session.id)


class TestPatientReport:
    """Patient-facing content."""

    def test_no_diagnosis_language(self) -> None:
        """Test the patient report carries guidance, not differentials."""
        report = build_patient_report(resolve(Severity.MODERATE))

        assert report.triage_level == TriageLevel.THERAPIST
        assert report.message == PATIENT_GUIDANCE[TriageLevel.THERAPIST][0]
        assert report.next_steps == "Book a session with a therapist"
        assert report.booking_action.label == "Find a Therapist"
        assert not hasattr(report, "differentials")

    def test_urgent_lines_lead(self) -> None:
        """Test urgent recommendations come before level guidance."""
        report = build_patient_report(resolve(Severity.NORMAL, ["suicidality_risk"]))

        assert report.recommendations[0] == "Immediate safety assessment required"
        assert report.urgent_flags == ["Suicidality risk detected"]


class TestClinicianReport:
    """Clinician-facing content."""

    def test_history_summary(self, orchestrator, history_answers, short_answers) -> None:
        """Test demographic answers and follow-up details are summarised."""
        history = history_answers(
            ongoing_medication="yes",
            ongoing_medication_details="Sertraline 50mg",
            family_psychiatric_history="yes",
            trauma_history="yes",
        )

        report = _complete(orchestrator, history, short_answers())
        info = report.clinician.patient_info

        assert info["name"] == "Sam"
        assert info["age"] == 29
        assert info["medications"] == "Sertraline 50mg"
        assert info["past_history"] == "No past psychiatric history"
        assert info["family_history"] == "Positive"
        assert info["trauma"] == "Reported"

    def test_yes_without_detail(self, orchestrator, history_answers, short_answers) -> None:
        """Test an optional detail left blank falls back to a placeholder."""
        history = history_answers(past_medical_history="yes")

        report = _complete(orchestrator, history, short_answers())

        assert report.clinician.patient_info["medical_history"] == "Reported, no details given"

    def test_short_only_report(self, orchestrator, history_answers, short_answers) -> None:
        """Test a session without deep screening is interpreted from the short stage."""
        report = _complete(orchestrator, history_answers(), short_answers())
        clinician = report.clinician

        assert clinician.interpretation == "Short screening suggests normal level symptoms"
        assert clinician.symptoms == []
        assert clinician.differentials == ["Adjustment Disorder"]
        assert clinician.key_questions == list(KEY_CLINICIAN_QUESTIONS)
        assert clinician.scores["deep_screening"] is None
        assert clinician.risk_index.overall == 0.0

    def test_deep_report(self, orchestrator, history_answers, short_answers, deep_answers) -> None:
        """Test deep screening drives symptoms, differentials and safety questions."""
        short = short_answers(q1_sadness=2, q2_anxiety=2, q3_concentration=2, q4_lost_interest=2)
        deep = deep_answers(
            depression_q1_sadness=1,
            depression_q2_anhedonia=2,
            depression_q3_sleep_energy=2,
            anxiety_q5_nervousness=1,
            anxiety_q6_excessive_worry=2,
            anxiety_q7_restlessness=1,
            suicide_q8_passive_thoughts=1,
        )

        report = _complete(orchestrator, history_answers(), short, deep)
        clinician = report.clinician

        assert clinician.symptoms == ["low mood", "anxiety", "suicidal ideation"]
        assert clinician.differentials == [
            "Major Depressive Disorder",
            "Generalized Anxiety Disorder",
            "Adjustment Disorder",
        ]
        assert clinician.interpretation == "Pattern suggests mild distress, likely situational"
        assert clinician.key_questions[0] == SAFETY_QUESTION
        assert clinician.triage_level == TriageLevel.PSYCHIATRIST_CRISIS
        assert clinician.scores["deep_screening"]["total"] == 10
        assert clinician.scores["short_questionnaire"]["total"] == 8

    def test_follow_up_responses_listed(self, orchestrator, history_answers, short_answers) -> None:
        """Test adaptive follow-up answers and adjustments are reported."""
        session = orchestrator.start_session("patient-7")
        orchestrator.complete_history(session.id, history_answers())
        answers = short_answers(q10_suicidal_thoughts=2)
        answers.update(NO_SUICIDE_FOLLOW_UPS)
        orchestrator.complete_short(session.id, answers)
        orchestrator.skip_deep(session.id)

        clinician = orchestrator.get_report(session.id).clinician

        assert [r["question_id"] for r in clinician.follow_up_responses] == [
            "fu_suicide_plan",
            "fu_suicide_intent",
            "fu_suicide_means",
        ]
        assert all(r["stage"] == "short" for r in clinician.follow_up_responses)
        assert len(clinician.adaptive_adjustments) == 1
        assert "q10_suicidal_thoughts" in clinician.adaptive_adjustments[0]


class TestDifferentials:
    """Candidate differentials."""

    def test_adjustment_disorder_always_last(self) -> None:
        """Test the fallback differential is always offered."""
        assert suggest_differentials(["psychotic symptoms", "substance use"]) == [
            "Psychotic Disorder",
            "Substance Use Disorder",
            "Adjustment Disorder",
        ]
