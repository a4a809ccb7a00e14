"""Facts extraction for flag rule evaluation.

Builds the nested facts dictionary the flag rules are written
against:

- ``stage``: "short" or "deep"
- ``answers.<question_id>``: normalised answer values
- ``domains.<domain>``: summed domain scores for the stage
- ``tagged.<tag>``: highest value across questions carrying the tag
"""

from typing import Any, Mapping, Optional

from intake_triage.fixtures.questions import QuestionCatalog, catalog as default_catalog
from intake_triage.models.question import AnswerType, Stage

NUMERIC_TYPES = (AnswerType.SCALE, AnswerType.BINARY, AnswerType.NUMBER)


def extract_facts(
    stage: Stage,
    answers: Mapping[str, Any],
    domain_scores: Optional[Mapping[str, int]] = None,
    question_catalog: Optional[QuestionCatalog] = None,
) -> dict[str, Any]:
    """Build the facts dictionary for one stage's answers.

    Args:
        stage: Stage the answers belong to
        answers: Question id to raw answer value
        domain_scores: Domain totals already computed by the scorer
        question_catalog: Catalog used to interpret answers

    Returns:
        Nested facts dict
    """
    question_catalog = question_catalog or default_catalog

    normalised: dict[str, Any] = {}
    tagged: dict[str, int] = {}

    for question_id, value in answers.items():
        question = question_catalog.get(question_id)
        if question is None:
            continue
        numeric = question.normalize(value)
        normalised[question_id] = numeric if question.answer_type in NUMERIC_TYPES else value
        for tag in question.tags:
            tagged[tag] = max(tagged.get(tag, 0), numeric)

    return {
        "stage": stage.value,
        "answers": normalised,
        "domains": dict(domain_scores or {}),
        "tagged": tagged,
    }
