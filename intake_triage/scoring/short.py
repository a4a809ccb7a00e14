"""Short questionnaire scoring module.

Ten items, each scored 0-3, unweighted. Total score ranges 0-30.

Severity bands:
- 0-7: Normal/Mild (lifestyle nudges, monitor)
- 8-15: Moderate (suggest therapist)
- 16-20: Moderate-Severe (therapist + psychiatrist recommended)
- 21-30: Severe (psychiatrist strongly recommended)

Deep screening is needed whenever severity is above normal or any
flag rule fires for the short stage. A fired rule cannot be
suppressed by a low total.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from intake_triage.fixtures.questions import catalog
from intake_triage.models.question import Stage
from intake_triage.models.score import Severity
from intake_triage.rules.engine import FlagDetector, get_flag_detector
from intake_triage.scoring.bands import (
    SHORT_SEVERITY_BANDS,
    domain_breakdown,
    get_severity_band,
    score_items,
)

SHORT_MAX_SCORE = 30


@dataclass
class ShortScoreResult:
    """Result of short questionnaire scoring."""
    total: int
    severity: Severity
    needs_deep_screening: bool
    auto_flags: list[str]
    items: dict[str, int]
    domain_scores: dict[str, int]
    rules_fired: list[str] = field(default_factory=list)
    ruleset_version: str = ""
    ruleset_hash: str = ""


def score_short(
    answers: Mapping[str, Any],
    detector: Optional[FlagDetector] = None,
) -> ShortScoreResult:
    """Score short questionnaire responses.

    Args:
        answers: Question id to answer value. Answers to follow-up
                 questions may be present; they never count.
        detector: Flag detector (defaults to the configured ruleset)

    Returns:
        ShortScoreResult with total, severity and auto flags.

    Raises:
        ValueError: If required items are missing or values out of range.
    """
    questions = catalog.scored_for_stage(Stage.SHORT)
    items = score_items(questions, answers, "Short questionnaire")

    total = sum(items.values())
    severity = get_severity_band(total, SHORT_SEVERITY_BANDS)
    domain_scores = domain_breakdown(questions, items)

    detector = detector or get_flag_detector()
    evaluation = detector.detect(Stage.SHORT, answers, domain_scores)

    needs_deep_screening = severity != Severity.NORMAL or bool(evaluation.flags)

    return ShortScoreResult(
        total=total,
        severity=severity,
        needs_deep_screening=needs_deep_screening,
        auto_flags=evaluation.flags,
        items=items,
        domain_scores=domain_scores,
        rules_fired=evaluation.rules_fired,
        ruleset_version=evaluation.ruleset_version,
        ruleset_hash=evaluation.ruleset_hash,
    )
