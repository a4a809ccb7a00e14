"""Tests for the question catalog."""

import pytest

from intake_triage.fixtures.questions import QuestionCatalog, catalog
from intake_triage.models.question import (
    AdaptiveLogic,
    AnswerType,
    Domain,
    Question,
    Stage,
)


class TestCatalogShape:
    """Stage slices of the shipped catalog."""

    def test_short_questionnaire_has_ten_items(self) -> None:
        """Test that the short stage has ten scored questions."""
        assert len(catalog.scored_for_stage(Stage.SHORT)) == 10

    def test_deep_screening_has_seventeen_items(self) -> None:
        """Test that deep screening has seventeen scored questions."""
        assert len(catalog.scored_for_stage(Stage.DEEP)) == 17

    def test_follow_ups_excluded_from_base_sequence(self) -> None:
        """Test that follow-ups only join via adaptive logic."""
        deep_ids = {q.id for q in catalog.for_stage(Stage.DEEP)}
        assert "fu_suicide_plan" not in deep_ids
        assert catalog.is_follow_up("fu_suicide_plan")
        assert not catalog.is_follow_up("suicide_q9_active_thoughts")

    def test_history_questions_are_unscored(self) -> None:
        """Test that history never contributes to a total."""
        assert catalog.scored_for_stage(Stage.HISTORY) == ()

    def test_scored_items_range_zero_to_three(self) -> None:
        """Test that every scored item allows exactly 0-3."""
        for stage in (Stage.SHORT, Stage.DEEP):
            for question in catalog.scored_for_stage(stage):
                assert question.allowed_values == (0, 1, 2, 3), question.id

    def test_critical_question_is_active_suicidal_thoughts(self) -> None:
        """Test the critical risk marker."""
        critical = [q.id for q in catalog if q.is_critical_risk]
        assert critical == ["suicide_q9_active_thoughts"]


class TestCatalogValidation:
    """Catalog construction checks."""

    def test_duplicate_ids_rejected(self) -> None:
        """Test that duplicate question ids fail fast."""
        question = Question(id="dup", stage=Stage.SHORT, domain=Domain.GENERAL, text="?")
        with pytest.raises(ValueError, match="Duplicate"):
            QuestionCatalog([question, question])

    def test_unknown_follow_up_rejected(self) -> None:
        """Test that follow-ups must exist in the catalog."""
        question = Question(
            id="trigger",
            stage=Stage.SHORT,
            domain=Domain.GENERAL,
            text="?",
            adaptive_logic=AdaptiveLogic(1, ("missing_follow_up",)),
        )
        with pytest.raises(ValueError, match="missing_follow_up"):
            QuestionCatalog([question])


class TestAnswerValidation:
    """Question.is_valid per answer type."""

    def test_scale_rejects_out_of_range_and_bool(self) -> None:
        """Test scale values outside the options are invalid."""
        question = catalog.get("q1_sadness")
        assert question.is_valid(3)
        assert not question.is_valid(4)
        assert not question.is_valid(-1)
        assert not question.is_valid(True)
        assert not question.is_valid("2")
        assert not question.is_valid(None)

    def test_binary_accepts_yes_no(self) -> None:
        """Test yes/no answers and their normalised values."""
        question = catalog.get("fu_suicide_plan")
        assert question.answer_type == AnswerType.BINARY
        assert question.is_valid("yes")
        assert question.is_valid(False)
        assert not question.is_valid("maybe")
        assert not question.is_valid(1)
        assert question.normalize("yes") == 1
        assert question.normalize("no") == 0

    def test_age_bounds(self) -> None:
        """Test that age must be between 13 and 100."""
        question = catalog.get("age")
        assert question.is_valid(13)
        assert question.is_valid(100)
        assert not question.is_valid(12)
        assert not question.is_valid(101)

    def test_optional_text_accepts_blank(self) -> None:
        """Test that an optional name may be left blank."""
        question = catalog.get("name")
        assert question.is_valid("")
        assert not question.is_valid(42)

    def test_choice_must_match_option(self) -> None:
        """Test choice answers must be listed options."""
        question = catalog.get("occupation")
        assert question.is_valid("student")
        assert not question.is_valid("astronaut")
