"""Triage resolution.

Combines a severity band with risk flags into a triage level,
recommended actions and urgent flags. Resolution is a pure function:
identical input always yields identical output, which the clinical
audit trail depends on.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Union

from intake_triage.booking.policy import BookingAction, get_booking_action
from intake_triage.models.score import (
    CRISIS_OVERRIDE_FLAGS,
    RiskFlag,
    Severity,
    TriageLevel,
    max_triage_level,
)

if TYPE_CHECKING:
    from intake_triage.scoring.deep import DeepScoreResult
    from intake_triage.scoring.short import ShortScoreResult


BASELINE_LEVELS: dict[Severity, TriageLevel] = {
    Severity.NORMAL: TriageLevel.MONITOR,
    Severity.MODERATE: TriageLevel.THERAPIST,
    Severity.MODERATE_SEVERE: TriageLevel.THERAPIST_AND_PSYCHIATRIST,
    Severity.SEVERE: TriageLevel.PSYCHIATRIST_CRISIS,
}

LEVEL_RECOMMENDATIONS: dict[TriageLevel, tuple[str, ...]] = {
    TriageLevel.MONITOR: (
        "Lifestyle modifications and self-monitoring",
        "Sleep hygiene and stress management techniques",
    ),
    TriageLevel.THERAPIST: (
        "Consultation with a licensed therapist",
        "Cognitive-behavioral therapy or similar approaches",
    ),
    TriageLevel.THERAPIST_AND_PSYCHIATRIST: (
        "Combined therapy and psychiatric evaluation",
        "Consider medication evaluation",
    ),
    TriageLevel.PSYCHIATRIST_CRISIS: (
        "Immediate psychiatric evaluation",
        "Crisis intervention protocols",
    ),
}

SUICIDALITY_URGENT = "Suicidality risk detected"
PSYCHOSIS_URGENT = "Possible psychosis symptoms"
FUNCTIONAL_URGENT = "Severe functional impairment"
SAFETY_ASSESSMENT_LINE = "Immediate safety assessment required"
PSYCHOSIS_EVALUATION_LINE = "Psychiatric evaluation for psychosis symptoms"

SUICIDALITY_FLAGS = frozenset({
    RiskFlag.SUICIDALITY_RISK.value,
    RiskFlag.CRITICAL_SUICIDALITY_RISK.value,
})


@dataclass(frozen=True)
class TriageDecision:
    """Outcome of triage resolution."""
    triage_level: TriageLevel
    baseline_level: TriageLevel
    recommendations: tuple[str, ...]
    urgent_flags: tuple[str, ...]
    flags: tuple[str, ...]
    booking_action: Optional[BookingAction]

    @property
    def overridden(self) -> bool:
        """Whether a flag raised the level above the score baseline."""
        return self.triage_level != self.baseline_level


def _flag_values(flags: Iterable[Union[str, RiskFlag]]) -> tuple[str, ...]:
    """Flag names in first-seen order, without duplicates."""
    seen: list[str] = []
    for flag in flags:
        value = flag.value if isinstance(flag, RiskFlag) else str(flag)
        if value not in seen:
            seen.append(value)
    return tuple(seen)


def resolve(
    severity: Severity,
    flags: Iterable[Union[str, RiskFlag]] = (),
) -> TriageDecision:
    """Resolve a triage decision.

    Severity maps to a baseline level. Any crisis override flag raises
    the level to psychiatrist_crisis; flags never lower it.

    Urgent recommendation lines are prepended in evaluation order, so
    when both apply the psychosis line leads the safety line. Urgent
    flags keep evaluation order (suicidality first).

    Args:
        severity: Severity band of the primary stage
        flags: Risk flags from every completed stage

    Returns:
        TriageDecision
    """
    flag_set = _flag_values(flags)
    baseline = BASELINE_LEVELS[severity]
    level = baseline

    urgent_flags: list[str] = []
    urgent_lines: list[str] = []

    if SUICIDALITY_FLAGS.intersection(flag_set):
        urgent_flags.append(SUICIDALITY_URGENT)
        urgent_lines.insert(0, SAFETY_ASSESSMENT_LINE)

    if RiskFlag.PSYCHOSIS_SYMPTOMS.value in flag_set:
        urgent_flags.append(PSYCHOSIS_URGENT)
        urgent_lines.insert(0, PSYCHOSIS_EVALUATION_LINE)

    if CRISIS_OVERRIDE_FLAGS.intersection(flag_set):
        level = max_triage_level(level, TriageLevel.PSYCHIATRIST_CRISIS)

    # Raises an urgent flag only; the level is unchanged
    if RiskFlag.SEVERE_FUNCTIONAL_IMPAIRMENT.value in flag_set:
        urgent_flags.append(FUNCTIONAL_URGENT)

    recommendations = tuple(urgent_lines) + LEVEL_RECOMMENDATIONS[level]

    return TriageDecision(
        triage_level=level,
        baseline_level=baseline,
        recommendations=recommendations,
        urgent_flags=tuple(urgent_flags),
        flags=flag_set,
        booking_action=get_booking_action(level),
    )


def resolve_session(
    short_result: "ShortScoreResult",
    deep_result: Optional["DeepScoreResult"] = None,
) -> TriageDecision:
    """Resolve triage for a session's completed stages.

    The deep severity is used when deep screening was completed,
    otherwise the short severity. Short-stage flags are always carried
    forward, including when deep screening was skipped.
    """
    flags = list(short_result.auto_flags)
    severity = short_result.severity

    if deep_result is not None:
        severity = deep_result.severity
        flags.extend(deep_result.risk_flags)

    return resolve(severity, flags)
