"""Question catalog data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Stage(str, Enum):
    """Intake stages in the order a patient passes through them."""

    HISTORY = "history"
    SHORT = "short"
    DEEP = "deep"


class Domain(str, Enum):
    """Clinical domain used for grouping and aggregation."""

    BACKGROUND = "background"
    GENERAL = "general"
    DEPRESSION = "depression"
    ANXIETY = "anxiety"
    SUICIDALITY = "suicidality"
    MANIA = "mania"
    PSYCHOSIS = "psychosis"
    SUBSTANCE = "substance"
    FUNCTIONING = "functioning"


class AnswerType(str, Enum):
    """How an answer is captured and validated."""

    SCALE = "scale"  # discrete scored options
    BINARY = "binary"  # yes / no
    CHOICE = "choice"  # unscored labelled options
    NUMBER = "number"  # bounded integer
    TEXT = "text"  # free text


YES_VALUES = frozenset({"yes", True})
NO_VALUES = frozenset({"no", False})


@dataclass(frozen=True)
class AnswerOption:
    """A permissible discrete answer and its score contribution."""
    value: Any
    label: str
    score: int = 0


@dataclass(frozen=True)
class AdaptiveLogic:
    """Follow-up questions spliced in when an answer meets the trigger."""
    trigger_score: int
    follow_up_questions: tuple[str, ...]


@dataclass(frozen=True)
class Question:
    """A single catalog question. Immutable, shared by reference."""

    id: str
    stage: Stage
    domain: Domain
    text: str
    answer_type: AnswerType = AnswerType.SCALE
    options: tuple[AnswerOption, ...] = ()
    weight: float = 1.0
    required: bool = True
    scored: bool = True
    is_risk_question: bool = False
    is_critical_risk: bool = False
    tags: frozenset[str] = field(default_factory=frozenset)
    adaptive_logic: Optional[AdaptiveLogic] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None

    @property
    def allowed_values(self) -> tuple[Any, ...]:
        """Values a patient may select, in display order."""
        return tuple(option.value for option in self.options)

    @property
    def max_score(self) -> int:
        """Highest score any option contributes."""
        if self.answer_type == AnswerType.BINARY:
            return 1
        return max((option.score for option in self.options), default=0)

    def is_valid(self, value: Any) -> bool:
        """Check a raw answer against the question's permissible values."""
        if value is None:
            return False

        if self.answer_type == AnswerType.SCALE:
            # bool is an int subclass; never accept True/False as a scale value
            if isinstance(value, bool) or not isinstance(value, int):
                return False
            return value in self.allowed_values

        if self.answer_type == AnswerType.BINARY:
            if not isinstance(value, (str, bool)):
                return False
            return value in YES_VALUES or value in NO_VALUES

        if self.answer_type == AnswerType.CHOICE:
            return value in self.allowed_values

        if self.answer_type == AnswerType.NUMBER:
            if isinstance(value, bool) or not isinstance(value, int):
                return False
            if self.min_value is not None and value < self.min_value:
                return False
            if self.max_value is not None and value > self.max_value:
                return False
            return True

        if self.answer_type == AnswerType.TEXT:
            return isinstance(value, str) and (bool(value.strip()) or not self.required)

        return False

    def normalize(self, value: Any) -> int:
        """Numeric value used by adaptive triggers.

        Scale answers keep their value; yes/no becomes 1/0. Anything
        else normalises to 0.
        """
        if self.answer_type == AnswerType.BINARY:
            return 1 if isinstance(value, (str, bool)) and value in YES_VALUES else 0
        if isinstance(value, bool):
            return 0
        if isinstance(value, int):
            return value
        return 0

    def score_for(self, value: Any) -> int:
        """Score contribution of an answer."""
        if self.answer_type == AnswerType.BINARY:
            return self.normalize(value)
        for option in self.options:
            if option.value == value:
                return option.score
        return 0

    def label_for(self, value: Any) -> str:
        """Human readable label for an answer."""
        if self.answer_type == AnswerType.BINARY:
            return "Yes" if self.normalize(value) else "No"
        for option in self.options:
            if option.value == value:
                return option.label
        return str(value)
