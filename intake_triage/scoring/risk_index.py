"""Weighted risk index.

An informational 0-100 index for clinicians. Each answered question
with a scored scale is normalised to [0, 1] (value / highest option
value, or 1/0 for yes/no) and weighted by its catalog weight. The
index never drives severity or triage.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from intake_triage.fixtures.questions import QuestionCatalog, catalog as default_catalog
from intake_triage.models.question import AnswerType

# (threshold, trend); first threshold exceeded wins
TREND_THRESHOLDS = [
    (70, "critical"),
    (50, "declining"),
    (30, "stable"),
]


@dataclass
class RiskIndex:
    """Weighted risk index result."""
    overall: float
    domains: dict[str, float]
    trend: str
    questions_counted: int


def get_trend(overall: float) -> str:
    """Trend label for an overall index."""
    for threshold, trend in TREND_THRESHOLDS:
        if overall > threshold:
            return trend
    return "improving"


def weighted_risk_index(
    answers: Mapping[str, Any],
    question_catalog: Optional[QuestionCatalog] = None,
) -> RiskIndex:
    """Compute the weighted risk index over answers from any stage."""
    question_catalog = question_catalog or default_catalog

    weighted_sum = 0.0
    total_weight = 0.0
    domain_sums: dict[str, float] = {}
    domain_weights: dict[str, float] = {}
    counted = 0

    for question_id, value in answers.items():
        question = question_catalog.get(question_id)
        if question is None or question.answer_type not in (AnswerType.SCALE, AnswerType.BINARY):
            continue
        if not question.is_valid(value) or question.max_score <= 0:
            continue

        normalised = question.score_for(value) / question.max_score
        weighted = normalised * question.weight
        domain = question.domain.value

        weighted_sum += weighted
        total_weight += question.weight
        domain_sums[domain] = domain_sums.get(domain, 0.0) + weighted
        domain_weights[domain] = domain_weights.get(domain, 0.0) + question.weight
        counted += 1

    overall = round(weighted_sum / total_weight * 100, 1) if total_weight else 0.0
    domains = {
        domain: round(domain_sums[domain] / weight * 100, 1)
        for domain, weight in domain_weights.items()
        if weight
    }

    return RiskIndex(
        overall=overall,
        domains=domains,
        trend=get_trend(overall),
        questions_counted=counted,
    )
