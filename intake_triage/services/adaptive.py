"""Adaptive follow-up question selection.

Each session keeps its own copy of a stage's question sequence. An
answer that meets its question's trigger threshold splices that
question's follow-ups onto the end of the sequence. Splicing is
idempotent, and follow-ups stay in the sequence even if the triggering
answer is later changed: going back never shrinks a stage.

Follow-ups already answered in an earlier stage of the same session
are not asked again.
"""

import logging
from typing import Any, Iterable, Mapping, Optional

from intake_triage.fixtures.questions import QuestionCatalog, catalog as default_catalog
from intake_triage.models.question import Question, Stage

logger = logging.getLogger(__name__)


class AdaptiveQuestionSelector:
    """Session-local question sequence for one stage."""

    def __init__(
        self,
        stage: Stage,
        question_catalog: Optional[QuestionCatalog] = None,
        answered_elsewhere: Iterable[str] = (),
    ) -> None:
        self.stage = stage
        self.catalog = question_catalog or default_catalog
        self.answered_elsewhere = frozenset(answered_elsewhere)
        self._sequence: list[str] = [q.id for q in self.catalog.for_stage(stage)]
        self.adjustments: list[str] = []

    @property
    def sequence(self) -> tuple[str, ...]:
        """Current ordered question ids."""
        return tuple(self._sequence)

    def questions(self) -> list[Question]:
        """Current ordered questions."""
        return [self.catalog.get(qid) for qid in self._sequence]  # type: ignore[misc]

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._sequence

    def triggered_follow_ups(self, question_id: str, value: Any) -> tuple[str, ...]:
        """Follow-up ids an answer would trigger, if any."""
        question = self.catalog.get(question_id)
        if question is None or question.adaptive_logic is None:
            return ()
        if not question.is_valid(value):
            return ()
        if question.normalize(value) < question.adaptive_logic.trigger_score:
            return ()
        return question.adaptive_logic.follow_up_questions

    def record(self, question_id: str, value: Any) -> list[str]:
        """Apply adaptive logic for one answer.

        Returns:
            Follow-up ids newly added to the sequence
        """
        added = [
            follow_up
            for follow_up in self.triggered_follow_ups(question_id, value)
            if follow_up not in self._sequence
            and follow_up not in self.answered_elsewhere
        ]
        if not added:
            return []

        self._sequence.extend(added)
        question = self.catalog.get(question_id)
        note = (
            f"Added follow-up questions for {question.domain.value} "  # type: ignore[union-attr]
            f"after {question_id}: {', '.join(added)}"
        )
        self.adjustments.append(note)
        logger.info(f"Adaptive adjustment ({self.stage.value}): {note}")
        return added

    def expand(self, answers: Mapping[str, Any]) -> tuple[str, ...]:
        """Sequence that recording ``answers`` would produce.

        Does not modify the selector. Follow-ups can themselves trigger
        follow-ups, so expansion runs until nothing new is added.
        """
        sequence = list(self._sequence)
        index = 0
        while index < len(sequence):
            question_id = sequence[index]
            if question_id in answers:
                for follow_up in self.triggered_follow_ups(question_id, answers[question_id]):
                    if follow_up not in sequence and follow_up not in self.answered_elsewhere:
                        sequence.append(follow_up)
            index += 1
        return tuple(sequence)

    def missing(self, answers: Mapping[str, Any]) -> list[str]:
        """Required questions in the current sequence without an answer."""
        missing = []
        for question_id in self._sequence:
            question = self.catalog.get(question_id)
            if question is not None and question.required and question_id not in answers:
                missing.append(question_id)
        return missing

    def is_complete(self, answers: Mapping[str, Any]) -> bool:
        """Whether every required question in the grown sequence is answered."""
        return not self.missing(answers)
