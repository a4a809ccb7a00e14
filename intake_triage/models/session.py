"""Assessment session aggregate and per-stage answer sets."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from intake_triage.models.question import Stage
from intake_triage.utils.time import utc_now


class AnswerSetClosedError(Exception):
    """Raised when writing to an answer set whose stage has completed."""
    pass


class AnswerSet:
    """A patient's recorded responses for one assessment stage.

    Grows while the stage is open (re-answering replaces the value for
    the same question) and is frozen once the stage completes.
    """

    def __init__(self, stage: Stage) -> None:
        self.stage = stage
        self._answers: dict[str, Any] = {}
        self.completed_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.completed_at is not None

    def record(self, question_id: str, value: Any) -> None:
        """Record an answer."""
        if self.is_closed:
            raise AnswerSetClosedError(
                f"{self.stage.value} answers are closed; stage already completed"
            )
        self._answers[question_id] = value

    def close(self, at: Optional[datetime] = None) -> None:
        """Freeze the set. Closing twice keeps the first timestamp."""
        if self.completed_at is None:
            self.completed_at = at or utc_now()

    def snapshot(self) -> Mapping[str, Any]:
        """Read-only copy of the current answers."""
        return MappingProxyType(dict(self._answers))

    def get(self, question_id: str, default: Any = None) -> Any:
        return self._answers.get(question_id, default)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers

    def __len__(self) -> int:
        return len(self._answers)


class SessionStatus(str, Enum):
    """Where a session is in the intake flow."""

    HISTORY = "history"
    SHORT_QUESTIONNAIRE = "short_questionnaire"
    DEEP_SCREENING = "deep_screening"
    COMPLETED = "completed"


# Stage that accepts answers in each status
STAGE_FOR_STATUS = {
    SessionStatus.HISTORY: Stage.HISTORY,
    SessionStatus.SHORT_QUESTIONNAIRE: Stage.SHORT,
    SessionStatus.DEEP_SCREENING: Stage.DEEP,
}


@dataclass
class AssessmentSession:
    """Aggregate root for one patient's intake.

    Owns exactly one history and one short answer set, and at most one
    deep answer set, created lazily when deep screening is triggered.
    Derived results are attached as stages complete.
    """

    patient_ref: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    status: SessionStatus = SessionStatus.HISTORY
    history: AnswerSet = field(default_factory=lambda: AnswerSet(Stage.HISTORY))
    short: AnswerSet = field(default_factory=lambda: AnswerSet(Stage.SHORT))
    deep: Optional[AnswerSet] = None

    # Derived state; typed loosely to keep models free of service imports
    short_result: Any = None
    deep_result: Any = None
    deep_skipped: bool = False
    triage: Any = None
    report: Any = None
    alert_ids: list[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    @property
    def current_stage(self) -> Optional[Stage]:
        """Stage currently accepting answers, if any."""
        return STAGE_FOR_STATUS.get(self.status)

    def answers_for(self, stage: Stage) -> Optional[AnswerSet]:
        if stage == Stage.HISTORY:
            return self.history
        if stage == Stage.SHORT:
            return self.short
        return self.deep

    def open_deep_screening(self) -> AnswerSet:
        """Create the deep answer set on first use."""
        if self.deep is None:
            self.deep = AnswerSet(Stage.DEEP)
        self.status = SessionStatus.DEEP_SCREENING
        return self.deep
