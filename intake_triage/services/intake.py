"""Intake orchestration.

Sequences a session through history, the short questionnaire and,
when triggered, deep screening. Each stage is completed by submitting
its answers; completion validates the whole (possibly grown) stage
before anything is scored, so scoring never runs on an invalid set.

Critical flags raised at any stage open a crisis alert immediately.
The final report is generated when the last stage for the session
closes: the short questionnaire when deep screening is not needed,
otherwise deep screening (completed or skipped).
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from intake_triage.core.logging import audit_logger
from intake_triage.fixtures.questions import QuestionCatalog, catalog as default_catalog
from intake_triage.models.question import Stage
from intake_triage.models.score import CRISIS_ALERT_TRIGGERS
from intake_triage.models.session import AssessmentSession, SessionStatus
from intake_triage.rules.engine import FlagDetector
from intake_triage.scoring.deep import DeepScoreResult, score_deep
from intake_triage.scoring.short import ShortScoreResult, score_short
from intake_triage.services.adaptive import AdaptiveQuestionSelector
from intake_triage.services.escalation import EscalationService
from intake_triage.services.reporting import FinalReport, generate_final_report
from intake_triage.utils.time import utc_now

logger = logging.getLogger(__name__)


class AnswerValidationError(ValueError):
    """Raised when a stage's answers are incomplete or out of range."""

    def __init__(self, message: str, question_ids: Sequence[str]) -> None:
        super().__init__(message)
        self.question_ids = list(question_ids)


class SessionNotFoundError(Exception):
    """Raised when session not found."""
    pass


class StageOrderError(Exception):
    """Raised when a stage is submitted out of order."""
    pass


@dataclass
class AnswerOutcome:
    """Result of recording a single answer."""
    question_id: str
    follow_ups_added: list[str]
    sequence: tuple[str, ...]
    missing: list[str] = field(default_factory=list)


class IntakeOrchestrator:
    """Drives assessment sessions through the intake stages."""

    def __init__(
        self,
        escalation_service: EscalationService,
        question_catalog: Optional[QuestionCatalog] = None,
        detector: Optional[FlagDetector] = None,
    ) -> None:
        self.escalation = escalation_service
        self.catalog = question_catalog or default_catalog
        self.detector = detector
        self._sessions: dict[str, AssessmentSession] = {}
        self._selectors: dict[str, dict[Stage, AdaptiveQuestionSelector]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._store_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, patient_ref: str) -> AssessmentSession:
        """Open a new session at the history stage."""
        session = AssessmentSession(patient_ref=patient_ref)
        with self._store_lock:
            self._sessions[session.id] = session
            self._locks[session.id] = threading.RLock()
            self._selectors[session.id] = {
                Stage.HISTORY: AdaptiveQuestionSelector(Stage.HISTORY, self.catalog),
                Stage.SHORT: AdaptiveQuestionSelector(Stage.SHORT, self.catalog),
            }

        logger.info(
            "Assessment session started",
            extra={"session_id": session.id, "action": "session_started"},
        )
        audit_logger.log(
            action="session.started",
            actor_type="patient",
            actor_id=patient_ref,
            entity_type="assessment_session",
            entity_id=session.id,
        )
        return session

    def get_session(self, session_id: str) -> AssessmentSession:
        """Look up a session.

        Raises:
            SessionNotFoundError: If no session has this id
        """
        with self._store_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def selector_for(self, session_id: str, stage: Stage) -> AdaptiveQuestionSelector:
        """Session-local question sequence for a stage.

        Raises:
            SessionNotFoundError: If no session has this id
            StageOrderError: If the stage has not been opened
        """
        self.get_session(session_id)
        with self._store_lock:
            selector = self._selectors[session_id].get(stage)
        if selector is None:
            raise StageOrderError(f"{stage.value} stage is not open for session {session_id}")
        return selector

    def _lock_for(self, session_id: str) -> threading.RLock:
        self.get_session(session_id)
        with self._store_lock:
            return self._locks[session_id]

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def record_answer(self, session_id: str, question_id: str, value: Any) -> AnswerOutcome:
        """Record one answer in the current stage and apply adaptive logic.

        Raises:
            SessionNotFoundError: If no session has this id
            StageOrderError: If the session is not accepting answers
            AnswerValidationError: If the question is not asked or the value is invalid
        """
        with self._lock_for(session_id):
            session = self.get_session(session_id)
            stage = self._current_stage(session)
            selector = self.selector_for(session_id, stage)

            question = self.catalog.get(question_id)
            if question is None or question_id not in selector:
                raise AnswerValidationError(
                    f"Question {question_id} is not part of the {stage.value} stage",
                    [question_id],
                )
            if not question.is_valid(value):
                raise AnswerValidationError(
                    f"Invalid answer for {question_id}: {value!r}",
                    [question_id],
                )

            answer_set = session.answers_for(stage)
            answer_set.record(question_id, value)  # type: ignore[union-attr]
            added = selector.record(question_id, value)

            return AnswerOutcome(
                question_id=question_id,
                follow_ups_added=added,
                sequence=selector.sequence,
                missing=selector.missing(answer_set.snapshot()),  # type: ignore[union-attr]
            )

    # ------------------------------------------------------------------
    # Stage completion
    # ------------------------------------------------------------------

    def complete_history(
        self,
        session_id: str,
        answers: Mapping[str, Any],
    ) -> AssessmentSession:
        """Complete background history and open the short questionnaire."""
        with self._lock_for(session_id):
            session = self.get_session(session_id)
            self._close_stage(session, Stage.HISTORY, answers)
            session.status = SessionStatus.SHORT_QUESTIONNAIRE
            self._audit_stage(session, Stage.HISTORY, {})
            return session

    def complete_short(
        self,
        session_id: str,
        answers: Mapping[str, Any],
    ) -> ShortScoreResult:
        """Complete and score the short questionnaire.

        Opens deep screening when needed; otherwise the session is
        finalised with a report.

        Raises:
            AnswerValidationError: With the offending question ids
            StageOrderError: If the session is not at this stage
        """
        with self._lock_for(session_id):
            session = self.get_session(session_id)
            merged = self._close_stage(session, Stage.SHORT, answers)

            result = score_short(merged, detector=self.detector)
            session.short_result = result
            self._audit_stage(session, Stage.SHORT, {
                "total": result.total,
                "severity": result.severity.value,
                "auto_flags": result.auto_flags,
                "needs_deep_screening": result.needs_deep_screening,
                "ruleset_version": result.ruleset_version,
            })
            self._raise_crisis_alerts(session, result.auto_flags, merged)

            if result.needs_deep_screening:
                session.open_deep_screening()
                with self._store_lock:
                    self._selectors[session.id][Stage.DEEP] = AdaptiveQuestionSelector(
                        Stage.DEEP, self.catalog, answered_elsewhere=merged.keys()
                    )
                logger.info(
                    f"Deep screening triggered (severity={result.severity.value}, "
                    f"flags={result.auto_flags})",
                    extra={"session_id": session.id, "action": "deep_screening_triggered"},
                )
            else:
                self._finalize(session)
            return result

    def complete_deep(
        self,
        session_id: str,
        answers: Mapping[str, Any],
    ) -> DeepScoreResult:
        """Complete and score deep screening, then finalise the session.

        Raises:
            AnswerValidationError: With the offending question ids
            StageOrderError: If deep screening is not open
        """
        with self._lock_for(session_id):
            session = self.get_session(session_id)
            merged = self._close_stage(session, Stage.DEEP, answers)

            result = score_deep(merged, detector=self.detector)
            session.deep_result = result
            self._audit_stage(session, Stage.DEEP, {
                "total": result.total,
                "severity": result.severity.value,
                "risk_flags": result.risk_flags,
                "ruleset_version": result.ruleset_version,
            })
            self._raise_crisis_alerts(session, result.risk_flags, merged)
            self._finalize(session)
            return result

    def skip_deep(self, session_id: str) -> AssessmentSession:
        """Decline a triggered deep screening.

        Short-stage flags and any urgent triage they imply are kept.

        Raises:
            StageOrderError: If deep screening is not open
        """
        with self._lock_for(session_id):
            session = self.get_session(session_id)
            if session.status != SessionStatus.DEEP_SCREENING:
                raise StageOrderError(
                    f"Deep screening is not open for session {session.id} "
                    f"(status={session.status.value})"
                )
            session.deep_skipped = True
            if session.deep is not None:
                session.deep.close(utc_now())

            logger.info(
                "Deep screening skipped by patient",
                extra={"session_id": session.id, "action": "deep_screening_skipped"},
            )
            audit_logger.log(
                action="session.deep_screening_skipped",
                actor_type="patient",
                actor_id=session.patient_ref,
                entity_type="assessment_session",
                entity_id=session.id,
                metadata={"short_flags": list(session.short_result.auto_flags)},
            )
            self._finalize(session)
            return session

    def get_report(self, session_id: str) -> FinalReport:
        """Final report for a completed session.

        Raises:
            StageOrderError: If the session has not completed
        """
        session = self.get_session(session_id)
        if session.report is None:
            raise StageOrderError(
                f"Session {session.id} has not completed "
                f"(status={session.status.value})"
            )
        return session.report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _current_stage(self, session: AssessmentSession) -> Stage:
        stage = session.current_stage
        if stage is None:
            raise StageOrderError(f"Session {session.id} is already completed")
        return stage

    def _close_stage(
        self,
        session: AssessmentSession,
        stage: Stage,
        answers: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Validate a stage submission, record it and close the stage.

        Submitted answers are merged over any recorded one at a time.
        Every submitted id must be asked in the grown sequence with a
        permitted value, and every required question in that sequence
        must be answered.

        Returns:
            The merged answers

        Raises:
            StageOrderError: If the session is not at ``stage``
            AnswerValidationError: With every offending question id
        """
        current = self._current_stage(session)
        if current != stage:
            raise StageOrderError(
                f"Cannot submit {stage.value} answers; session {session.id} "
                f"is at {session.status.value}"
            )

        answer_set = session.answers_for(stage)
        selector = self.selector_for(session.id, stage)

        merged = dict(answer_set.snapshot())  # type: ignore[union-attr]
        merged.update(answers)
        sequence = selector.expand(merged)

        invalid: list[str] = []
        for question_id, value in answers.items():
            question = self.catalog.get(question_id)
            if question is None or question_id not in sequence or not question.is_valid(value):
                invalid.append(question_id)

        for question_id in sequence:
            question = self.catalog.get(question_id)
            if question is not None and question.required and question_id not in merged:
                invalid.append(question_id)

        if invalid:
            logger.info(
                f"Rejected {stage.value} submission: {invalid}",
                extra={"session_id": session.id, "action": "answers_rejected"},
            )
            raise AnswerValidationError(
                f"Invalid or missing {stage.value} answers",
                invalid,
            )

        for question_id in sequence:
            if question_id in answers:
                answer_set.record(question_id, answers[question_id])  # type: ignore[union-attr]
            if question_id in merged:
                selector.record(question_id, merged[question_id])
        answer_set.close(utc_now())  # type: ignore[union-attr]

        return {qid: merged[qid] for qid in sequence if qid in merged}

    def _raise_crisis_alerts(
        self,
        session: AssessmentSession,
        flags: Sequence[str],
        answers: Mapping[str, Any],
    ) -> None:
        """Open a crisis alert for each critical flag not already alerted.

        A failure here is logged at CRITICAL but never stops the stage
        from completing; the patient still gets a report.
        """
        raised = {
            alert.triggering_flag
            for alert in self.escalation.list_alerts(session_id=session.id)
        }
        for flag in flags:
            trigger = CRISIS_ALERT_TRIGGERS.get(flag)
            if trigger is None or flag in raised:
                continue
            alert_type, severity = trigger
            try:
                alert = self.escalation.raise_alert(
                    alert_type=alert_type,
                    severity=severity,
                    patient_ref=session.patient_ref,
                    answers=answers,
                    session_id=session.id,
                    triggering_flag=flag,
                )
            except Exception:
                logger.critical(
                    f"Crisis alert could not be raised for flag={flag}",
                    exc_info=True,
                    extra={"session_id": session.id, "action": "alert_raise_failed"},
                )
                continue
            session.alert_ids.append(alert.id)
            raised.add(flag)

    def _adjustments(self, session_id: str) -> list[str]:
        with self._store_lock:
            selectors = list(self._selectors.get(session_id, {}).values())
        return [note for selector in selectors for note in selector.adjustments]

    def _finalize(self, session: AssessmentSession) -> None:
        """Resolve triage, build the report and complete the session."""
        report, decision = generate_final_report(session, self._adjustments(session.id))
        session.triage = decision
        session.report = report
        session.status = SessionStatus.COMPLETED
        session.completed_at = utc_now()

        level = report.patient.triage_level.value
        logger.info(
            f"Session completed triage_level={level} degraded={report.degraded}",
            extra={"session_id": session.id, "action": "session_completed"},
        )
        audit_logger.log(
            action="session.completed",
            actor_type="system",
            actor_id="system",
            entity_type="assessment_session",
            entity_id=session.id,
            metadata={
                "triage_level": level,
                "urgent_flags": report.patient.urgent_flags,
                "deep_screening_skipped": session.deep_skipped,
                "degraded": report.degraded,
                "crisis_alert_ids": list(session.alert_ids),
            },
        )

    def _audit_stage(
        self,
        session: AssessmentSession,
        stage: Stage,
        metadata: dict[str, Any],
    ) -> None:
        audit_logger.log(
            action=f"session.{stage.value}_completed",
            actor_type="patient",
            actor_id=session.patient_ref,
            entity_type="assessment_session",
            entity_id=session.id,
            metadata=metadata,
        )
