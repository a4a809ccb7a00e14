"""Intake questionnaire endpoints for the patient-facing UI.

Handlers that reach the orchestrator are plain functions. The
orchestrator takes locks and notifies synchronously, so FastAPI runs
them in its threadpool instead of on the event loop.
"""

from fastapi import APIRouter, HTTPException, status

from intake_triage.api.deps import Orchestrator
from intake_triage.core.config import settings
from intake_triage.fixtures.questions import catalog
from intake_triage.models.question import Question, Stage
from intake_triage.models.session import AssessmentSession
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
from intake_triage.schemas.report import FinalReportRead
from intake_triage.services.intake import (
    AnswerValidationError,
    IntakeOrchestrator,
    SessionNotFoundError,
    StageOrderError,
)

router = APIRouter(prefix="/intake", tags=["intake"])


def _question_read(question: Question) -> QuestionRead:
    return QuestionRead(
        id=question.id,
        stage=question.stage,
        domain=question.domain,
        text=question.text,
        answer_type=question.answer_type,
        options=[AnswerOptionRead.model_validate(option) for option in question.options],
        required=question.required,
        is_follow_up=catalog.is_follow_up(question.id),
        min_value=question.min_value,
        max_value=question.max_value,
    )


def _session_read(orchestrator: IntakeOrchestrator, session: AssessmentSession) -> SessionRead:
    sequence: list[str] = []
    answered: list[str] = []
    missing: list[str] = []

    stage = session.current_stage
    if stage is not None:
        selector = orchestrator.selector_for(session.id, stage)
        answers = session.answers_for(stage).snapshot()  # type: ignore[union-attr]
        sequence = list(selector.sequence)
        answered = [qid for qid in sequence if qid in answers]
        missing = selector.missing(answers)

    triage_level = session.report.patient.triage_level if session.report else None

    return SessionRead(
        id=session.id,
        patient_ref=session.patient_ref,
        status=session.status,
        created_at=session.created_at,
        completed_at=session.completed_at,
        current_stage=stage,
        question_sequence=sequence,
        answered=answered,
        missing=missing,
        deep_skipped=session.deep_skipped,
        triage_level=triage_level,
        crisis_alert_ids=list(session.alert_ids),
    )


def _validation_failed(e: AnswerValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": str(e), "question_ids": e.question_ids},
    )


@router.get("/safety-banner", response_model=SafetyBannerResponse)
async def get_safety_banner() -> SafetyBannerResponse:
    """Get safety banner configuration.

    This endpoint is public to ensure safety information is always accessible.
    """
    return SafetyBannerResponse(
        enabled=settings.safety_banner_enabled,
        text=settings.safety_banner_text,
    )


@router.get("/questions/{stage}", response_model=StageQuestionsResponse)
async def get_stage_questions(stage: Stage) -> StageQuestionsResponse:
    """Get the base question sequence for a stage.

    Follow-up questions are not listed; they join a session's sequence
    when an answer triggers them.
    """
    return StageQuestionsResponse(
        stage=stage,
        questions=[_question_read(q) for q in catalog.for_stage(stage)],
    )


@router.post("/sessions", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
def start_session(body: SessionCreate, orchestrator: Orchestrator) -> SessionRead:
    """Open a new assessment session at the history stage."""
    session = orchestrator.start_session(body.patient_ref)
    return _session_read(orchestrator, session)


@router.get("/sessions/{session_id}", response_model=SessionRead)
def get_session(session_id: str, orchestrator: Orchestrator) -> SessionRead:
    """Get session progress, including the current question sequence."""
    try:
        session = orchestrator.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _session_read(orchestrator, session)


@router.get("/sessions/{session_id}/questions", response_model=StageQuestionsResponse)
def get_session_questions(session_id: str, orchestrator: Orchestrator) -> StageQuestionsResponse:
    """Get the session's current, possibly grown, question sequence."""
    try:
        session = orchestrator.get_session(session_id)
        stage = session.current_stage
        if stage is None:
            raise StageOrderError(f"Session {session_id} is already completed")
        selector = orchestrator.selector_for(session_id, stage)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return StageQuestionsResponse(
        stage=stage,
        questions=[_question_read(q) for q in selector.questions()],
    )


@router.post("/sessions/{session_id}/answers", response_model=AnswerRecorded)
def record_answer(
    session_id: str,
    body: AnswerSubmit,
    orchestrator: Orchestrator,
) -> AnswerRecorded:
    """Record one answer in the current stage.

    Returns any follow-up questions the answer added.
    """
    try:
        outcome = orchestrator.record_answer(session_id, body.question_id, body.value)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnswerValidationError as e:
        raise _validation_failed(e)

    return AnswerRecorded(
        question_id=outcome.question_id,
        follow_ups_added=outcome.follow_ups_added,
        question_sequence=list(outcome.sequence),
        missing=outcome.missing,
    )


@router.post("/sessions/{session_id}/history", response_model=SessionRead)
def complete_history(
    session_id: str,
    body: StageSubmit,
    orchestrator: Orchestrator,
) -> SessionRead:
    """Complete background history."""
    try:
        session = orchestrator.complete_history(session_id, body.answers)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnswerValidationError as e:
        raise _validation_failed(e)
    return _session_read(orchestrator, session)


@router.post("/sessions/{session_id}/short", response_model=ShortResultResponse)
def complete_short(
    session_id: str,
    body: StageSubmit,
    orchestrator: Orchestrator,
) -> ShortResultResponse:
    """Complete and score the short questionnaire."""
    try:
        result = orchestrator.complete_short(session_id, body.answers)
        session = orchestrator.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnswerValidationError as e:
        raise _validation_failed(e)

    return ShortResultResponse(
        session_id=session_id,
        total=result.total,
        severity=result.severity,
        needs_deep_screening=result.needs_deep_screening,
        auto_flags=result.auto_flags,
        status=session.status,
    )


@router.post("/sessions/{session_id}/deep", response_model=DeepResultResponse)
def complete_deep(
    session_id: str,
    body: StageSubmit,
    orchestrator: Orchestrator,
) -> DeepResultResponse:
    """Complete and score deep screening."""
    try:
        result = orchestrator.complete_deep(session_id, body.answers)
        session = orchestrator.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except AnswerValidationError as e:
        raise _validation_failed(e)

    return DeepResultResponse(
        session_id=session_id,
        total=result.total,
        severity=result.severity,
        domain_scores=result.domain_scores,
        risk_flags=result.risk_flags,
        status=session.status,
    )


@router.post("/sessions/{session_id}/deep/skip", response_model=SessionRead)
def skip_deep(session_id: str, orchestrator: Orchestrator) -> SessionRead:
    """Decline a triggered deep screening and finish with the short result."""
    try:
        session = orchestrator.skip_deep(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _session_read(orchestrator, session)


@router.get("/sessions/{session_id}/report", response_model=FinalReportRead)
def get_report(session_id: str, orchestrator: Orchestrator) -> FinalReportRead:
    """Get the patient and clinician reports for a completed session."""
    try:
        report = orchestrator.get_report(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StageOrderError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return FinalReportRead.model_validate(report)
