"""Deterministic risk flag rules engine.

Evaluates one stage's answers against a YAML table of independent
flag rules. Flags are orthogonal to the aggregate score: a single
alarming answer raises its flag however mild the total is. All
decisions are:
- Deterministic (same input = same output)
- Explainable (records the rules fired and their explanations)
- Auditable (records ruleset version and hash)
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

from intake_triage.core.config import settings
from intake_triage.models.question import Stage
from intake_triage.rules.facts import extract_facts
from intake_triage.rules.loader import RulesetLoader

logger = logging.getLogger(__name__)


@dataclass
class FlagEvaluation:
    """Result of evaluating the flag rules against one stage."""

    flags: list[str]
    rules_fired: list[str]
    explanations: list[str]
    ruleset_version: str
    ruleset_hash: str
    facts: dict[str, Any] = field(default_factory=dict, repr=False)


class FlagDetector:
    """Table-driven risk flag detector.

    Every enabled rule is evaluated in priority order (lowest number
    first) and every match contributes its flag. A flag named by
    several rules is reported once, at the position of its first match.
    """

    def __init__(
        self,
        ruleset_filename: Optional[str] = None,
        rulesets_dir: Optional[Path] = None,
    ) -> None:
        """Initialize detector with a specific ruleset.

        Args:
            ruleset_filename: Name of ruleset file to use
            rulesets_dir: Directory to load it from
        """
        self.ruleset_filename = ruleset_filename or settings.flag_ruleset_filename
        self.loader = RulesetLoader(rulesets_dir or settings.rulesets_dir)
        self._ruleset: dict[str, Any] | None = None
        self._hash: str | None = None

    def load_ruleset(self) -> None:
        """Load the configured ruleset."""
        self._ruleset, self._hash = self.loader.load(self.ruleset_filename)
        logger.info(
            f"Loaded flag ruleset {self.ruleset_filename} "
            f"version={self._ruleset.get('version')} hash={self._hash[:12]}"
        )

    @property
    def ruleset(self) -> dict[str, Any]:
        """Get loaded ruleset, loading if necessary."""
        if self._ruleset is None:
            self.load_ruleset()
        return self._ruleset  # type: ignore

    @property
    def ruleset_hash(self) -> str:
        if self._hash is None:
            self.load_ruleset()
        return self._hash  # type: ignore

    @property
    def ruleset_version(self) -> str:
        return str(self.ruleset.get("version", "unknown"))

    def sorted_rules(self) -> list[dict[str, Any]]:
        """Enabled rules in priority order."""
        rules = [r for r in self.ruleset.get("rules", []) if r.get("enabled", True)]
        return sorted(rules, key=lambda r: r.get("priority", 999))

    def evaluate(self, facts: dict[str, Any]) -> FlagEvaluation:
        """Evaluate prepared facts against every rule."""
        flags: list[str] = []
        rules_fired: list[str] = []
        explanations: list[str] = []

        for rule in self.sorted_rules():
            if not evaluate_conditions(rule.get("when", {}), facts):
                continue

            then = rule.get("then", {})
            rules_fired.append(rule.get("id", "unknown"))
            if then.get("explain"):
                explanations.append(then["explain"])

            flag = then.get("flag")
            if flag and flag not in flags:
                flags.append(flag)

        return FlagEvaluation(
            flags=flags,
            rules_fired=rules_fired,
            explanations=explanations,
            ruleset_version=self.ruleset_version,
            ruleset_hash=self.ruleset_hash,
            facts=facts,
        )

    def detect(
        self,
        stage: Stage,
        answers: Mapping[str, Any],
        domain_scores: Optional[Mapping[str, int]] = None,
    ) -> FlagEvaluation:
        """Detect flags for one stage's answers.

        Args:
            stage: Stage being scored
            answers: Question id to raw answer value
            domain_scores: Domain totals for the stage

        Returns:
            FlagEvaluation with flags in rule order
        """
        facts = extract_facts(stage, answers, domain_scores)
        return self.evaluate(facts)


@lru_cache
def get_flag_detector() -> FlagDetector:
    """Shared detector for the configured ruleset."""
    return FlagDetector()


def evaluate_conditions(when: dict[str, Any], facts: dict[str, Any]) -> bool:
    """Evaluate a rule's ``when`` block against facts.

    Args:
        when: Condition block with a top-level ``all`` or ``any``
        facts: Nested facts dict

    Returns:
        True if conditions are satisfied
    """
    if not when:
        return False

    if "all" in when:
        return _evaluate_all(when["all"], facts)

    if "any" in when:
        return _evaluate_any(when["any"], facts)

    return False


def _evaluate_all(conditions: list[dict[str, Any]], facts: dict[str, Any]) -> bool:
    """Evaluate AND conditions."""
    for cond in conditions:
        if "any" in cond:
            if not _evaluate_any(cond["any"], facts):
                return False
        elif "all" in cond:
            if not _evaluate_all(cond["all"], facts):
                return False
        elif not _evaluate_single(cond, facts):
            return False
    return True


def _evaluate_any(conditions: list[dict[str, Any]], facts: dict[str, Any]) -> bool:
    """Evaluate OR conditions."""
    for cond in conditions:
        if "all" in cond:
            if _evaluate_all(cond["all"], facts):
                return True
        elif "any" in cond:
            if _evaluate_any(cond["any"], facts):
                return True
        elif _evaluate_single(cond, facts):
            return True
    return False


def _evaluate_single(cond: dict[str, Any], facts: dict[str, Any]) -> bool:
    """Evaluate a single condition.

    Supports operators: ==, !=, >, >=, <, <=, in, contains
    """
    fact_path = cond.get("fact")
    op = cond.get("op", "==")
    expected = cond.get("value")

    if not fact_path:
        return False

    actual = _get_nested_value(facts, fact_path)

    # Unanswered questions never satisfy a comparison
    if actual is None:
        return op == "==" and expected is None

    try:
        if op == "==":
            return actual == expected
        elif op == "!=":
            return actual != expected
        elif op == ">":
            return actual > expected
        elif op == ">=":
            return actual >= expected
        elif op == "<":
            return actual < expected
        elif op == "<=":
            return actual <= expected
        elif op == "in":
            return actual in expected if isinstance(expected, (list, tuple)) else False
        elif op == "contains":
            return expected in actual if isinstance(actual, (str, list, tuple)) else False
    except (TypeError, ValueError):
        return False

    logger.warning(f"Unknown operator in flag rule condition: {op}")
    return False


def _get_nested_value(data: dict[str, Any], path: str) -> Any:
    """Get value from nested dict using dot notation."""
    current: Any = data

    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        else:
            return None
        if current is None:
            return None

    return current
