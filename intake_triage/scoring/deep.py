"""Deep screening scoring module.

Seventeen items, each scored 0-3, across seven domains:
- depression (4, PHQ-9 based)
- anxiety (3, GAD-7 based)
- suicidality (2, C-SSRS based)
- mania (2, YMRS based)
- psychosis (2, PANSS based)
- substance use (2, ASSIST based)
- functioning and sleep (2)

Total score ranges 0-51.

Severity bands:
- 0-10: Normal/Mild (monitor, lifestyle nudges)
- 11-20: Moderate (recommend therapist)
- 21-35: Moderate-Severe (therapist + psychiatrist referral)
- 36-51: Severe/Crisis (psychiatrist + crisis intervention)
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from intake_triage.fixtures.questions import catalog
from intake_triage.models.question import Domain, Stage
from intake_triage.models.score import Severity
from intake_triage.rules.engine import FlagDetector, get_flag_detector
from intake_triage.scoring.bands import (
    DEEP_SEVERITY_BANDS,
    domain_breakdown,
    get_severity_band,
    score_items,
)

DEEP_MAX_SCORE = 51

DEEP_DOMAINS = (
    Domain.DEPRESSION,
    Domain.ANXIETY,
    Domain.SUICIDALITY,
    Domain.MANIA,
    Domain.PSYCHOSIS,
    Domain.SUBSTANCE,
    Domain.FUNCTIONING,
)


@dataclass
class DeepScoreResult:
    """Result of deep screening scoring."""
    total: int
    severity: Severity
    domain_scores: dict[str, int]
    risk_flags: list[str]
    items: dict[str, int]
    rules_fired: list[str] = field(default_factory=list)
    ruleset_version: str = ""
    ruleset_hash: str = ""


def score_deep(
    answers: Mapping[str, Any],
    detector: Optional[FlagDetector] = None,
) -> DeepScoreResult:
    """Score deep screening responses.

    Domain scores always sum to the total.

    Raises:
        ValueError: If required items are missing or values out of range.
    """
    questions = catalog.scored_for_stage(Stage.DEEP)
    items = score_items(questions, answers, "Deep screening")

    total = sum(items.values())
    severity = get_severity_band(total, DEEP_SEVERITY_BANDS)

    breakdown = domain_breakdown(questions, items)
    domain_scores = {domain.value: breakdown.get(domain.value, 0) for domain in DEEP_DOMAINS}

    detector = detector or get_flag_detector()
    evaluation = detector.detect(Stage.DEEP, answers, domain_scores)

    return DeepScoreResult(
        total=total,
        severity=severity,
        domain_scores=domain_scores,
        risk_flags=evaluation.flags,
        items=items,
        rules_fired=evaluation.rules_fired,
        ruleset_version=evaluation.ruleset_version,
        ruleset_hash=evaluation.ruleset_hash,
    )
