"""Severity, triage level and risk flag classifications."""

from enum import Enum


class Severity(str, Enum):
    """Ordered severity band derived from a stage total score."""

    NORMAL = "normal"
    MODERATE = "moderate"
    MODERATE_SEVERE = "moderate-severe"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        """Position in the ordering (normal = 0)."""
        return list(type(self)).index(self)


class TriageLevel(str, Enum):
    """Recommended care pathway.

    Ordered from least to most urgent. A risk flag may raise the
    level but never lowers it.
    """

    MONITOR = "monitor"
    THERAPIST = "therapist"
    THERAPIST_AND_PSYCHIATRIST = "therapist_and_psychiatrist"
    PSYCHIATRIST_CRISIS = "psychiatrist_crisis"

    @property
    def rank(self) -> int:
        """Position in the ordering (monitor = 0)."""
        return list(type(self)).index(self)


def max_triage_level(*levels: TriageLevel) -> TriageLevel:
    """Return the most urgent of the given levels."""
    return max(levels, key=lambda level: level.rank)


class RiskFlag(str, Enum):
    """Named risk indicators shipped with the default flag rules.

    The rules table may introduce further flags; those travel as
    plain strings alongside these members.
    """

    SUICIDALITY_RISK = "suicidality_risk"
    CRITICAL_SUICIDALITY_RISK = "critical_suicidality_risk"
    PSYCHOSIS_SYMPTOMS = "psychosis_symptoms"
    SEVERE_SLEEP_DISTURBANCE = "severe_sleep_disturbance"
    COMPULSIVE_DIGITAL_USE = "compulsive_digital_use"
    SUBSTANCE_USE_CONCERN = "substance_use_concern"
    SEVERE_FUNCTIONAL_IMPAIRMENT = "severe_functional_impairment"


# Flags that force the crisis pathway regardless of total score
CRISIS_OVERRIDE_FLAGS = frozenset({
    RiskFlag.SUICIDALITY_RISK.value,
    RiskFlag.CRITICAL_SUICIDALITY_RISK.value,
    RiskFlag.PSYCHOSIS_SYMPTOMS.value,
})

# Critical flags open a crisis alert: flag -> (alert_type, alert severity)
CRISIS_ALERT_TRIGGERS: dict[str, tuple[str, str]] = {
    RiskFlag.CRITICAL_SUICIDALITY_RISK.value: ("suicide_ideation", "critical"),
}
