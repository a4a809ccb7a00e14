"""Severity bands and shared stage aggregation helpers."""

from typing import Any, Mapping

from intake_triage.models.question import Question
from intake_triage.models.score import Severity

# (low, high, severity), inclusive
SHORT_SEVERITY_BANDS = [
    (0, 7, Severity.NORMAL),
    (8, 15, Severity.MODERATE),
    (16, 20, Severity.MODERATE_SEVERE),
    (21, 30, Severity.SEVERE),
]

DEEP_SEVERITY_BANDS = [
    (0, 10, Severity.NORMAL),
    (11, 20, Severity.MODERATE),
    (21, 35, Severity.MODERATE_SEVERE),
    (36, 51, Severity.SEVERE),
]


def get_severity_band(
    total: int,
    bands: list[tuple[int, int, Severity]],
) -> Severity:
    """Determine severity band from total score."""
    for low, high, band in bands:
        if low <= total <= high:
            return band
    # Fallback for edge cases
    if total < bands[0][0]:
        return bands[0][2]
    return bands[-1][2]


def score_items(
    questions: tuple[Question, ...],
    answers: Mapping[str, Any],
    stage_name: str,
) -> dict[str, int]:
    """Score every question of a stage.

    Raises:
        ValueError: If an item is missing or its value is not permitted.
    """
    items: dict[str, int] = {}
    for question in questions:
        if question.id not in answers:
            raise ValueError(f"Missing {stage_name} item {question.id}")
        value = answers[question.id]
        if not question.is_valid(value):
            raise ValueError(
                f"{stage_name} item {question.id} must be one of "
                f"{list(question.allowed_values)}, got {value!r}"
            )
        items[question.id] = question.score_for(value)
    return items


def domain_breakdown(
    questions: tuple[Question, ...],
    items: Mapping[str, int],
) -> dict[str, int]:
    """Sum item scores per domain, in first-seen domain order."""
    domains: dict[str, int] = {}
    for question in questions:
        key = question.domain.value
        domains[key] = domains.get(key, 0) + items.get(question.id, 0)
    return domains
