"""Deterministic risk flag rules.

This module provides a YAML-based rules engine that raises named risk
flags from questionnaire answers, independently of aggregate scores.
"""

from intake_triage.rules.engine import (
    FlagDetector,
    FlagEvaluation,
    evaluate_conditions,
    get_flag_detector,
)
from intake_triage.rules.facts import extract_facts
from intake_triage.rules.loader import RulesetLoader, compute_ruleset_hash, load_ruleset

__all__ = [
    "FlagDetector",
    "FlagEvaluation",
    "RulesetLoader",
    "compute_ruleset_hash",
    "evaluate_conditions",
    "extract_facts",
    "get_flag_detector",
    "load_ruleset",
]
