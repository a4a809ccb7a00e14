"""Tests for adaptive follow-up selection."""

from intake_triage.fixtures.questions import SUICIDE_FOLLOW_UPS, catalog
from intake_triage.models.question import Stage
from intake_triage.services.adaptive import AdaptiveQuestionSelector


class TestSequence:
    """Session-local sequence handling."""

    def test_starts_as_catalog_slice(self) -> None:
        """Test the initial sequence mirrors the base stage slice."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)
        assert selector.sequence == tuple(q.id for q in catalog.for_stage(Stage.SHORT))

    def test_growth_is_session_local(self) -> None:
        """Test that one session's follow-ups never leak into another."""
        first = AdaptiveQuestionSelector(Stage.SHORT)
        second = AdaptiveQuestionSelector(Stage.SHORT)

        first.record("q10_suicidal_thoughts", 2)

        assert "fu_suicide_plan" in first
        assert "fu_suicide_plan" not in second
        assert catalog.for_stage(Stage.SHORT)[-1].id == "q10_suicidal_thoughts"


class TestTriggers:
    """Trigger thresholds."""

    def test_meeting_threshold_appends_follow_ups(self) -> None:
        """Test q10 at 1 splices the suicide follow-ups onto the end."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)

        added = selector.record("q10_suicidal_thoughts", 1)

        assert added == list(SUICIDE_FOLLOW_UPS)
        assert selector.sequence[-3:] == SUICIDE_FOLLOW_UPS
        assert len(selector.adjustments) == 1
        assert "suicidality" in selector.adjustments[0]

    def test_below_threshold_adds_nothing(self) -> None:
        """Test depression_q1 at 1 stays below its threshold of 2."""
        selector = AdaptiveQuestionSelector(Stage.DEEP)

        assert selector.record("depression_q1_sadness", 1) == []
        assert selector.adjustments == []

    def test_yes_triggers_history_detail(self) -> None:
        """Test a yes on medication asks for details."""
        selector = AdaptiveQuestionSelector(Stage.HISTORY)

        assert selector.record("ongoing_medication", "no") == []
        assert selector.record("ongoing_medication", "yes") == ["ongoing_medication_details"]

    def test_splicing_is_idempotent(self) -> None:
        """Test re-answering never duplicates follow-ups."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)

        selector.record("q10_suicidal_thoughts", 1)
        assert selector.record("q10_suicidal_thoughts", 3) == []
        assert selector.sequence.count("fu_suicide_plan") == 1

    def test_going_back_keeps_follow_ups(self) -> None:
        """Test lowering the triggering answer does not shrink the stage."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)

        selector.record("q10_suicidal_thoughts", 2)
        selector.record("q10_suicidal_thoughts", 0)

        assert set(SUICIDE_FOLLOW_UPS) <= set(selector.sequence)

    def test_invalid_value_triggers_nothing(self) -> None:
        """Test an out of range value is never treated as a trigger."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)
        assert selector.triggered_follow_ups("q10_suicidal_thoughts", 9) == ()


class TestCompletion:
    """Completion against the grown sequence."""

    def test_follow_ups_required_once_spliced(self, short_answers) -> None:
        """Test the stage is incomplete until required follow-ups are answered."""
        selector = AdaptiveQuestionSelector(Stage.SHORT)
        answers = short_answers(q10_suicidal_thoughts=1)
        for qid, value in answers.items():
            selector.record(qid, value)

        assert selector.missing(answers) == list(SUICIDE_FOLLOW_UPS)

        answers.update({"fu_suicide_plan": "no", "fu_suicide_intent": 0, "fu_suicide_means": "no"})
        assert selector.is_complete(answers)

    def test_optional_detail_not_required(self) -> None:
        """Test history detail questions may be left unanswered."""
        selector = AdaptiveQuestionSelector(Stage.HISTORY)
        selector.record("trauma_history", "yes")

        assert "trauma_history_details" in selector
        assert "trauma_history_details" not in selector.missing({})

    def test_expand_does_not_modify_selector(self) -> None:
        """Test expand previews growth without recording it."""
        selector = AdaptiveQuestionSelector(Stage.DEEP)

        expanded = selector.expand({"suicide_q9_active_thoughts": 1, "substance_q15_drugs": 2})

        assert set(SUICIDE_FOLLOW_UPS) <= set(expanded)
        assert "fu_substance_impact" in expanded
        assert "fu_substance_impact" not in selector

    def test_follow_ups_answered_elsewhere_are_skipped(self) -> None:
        """Test follow-ups answered in an earlier stage are not spliced again."""
        selector = AdaptiveQuestionSelector(Stage.DEEP, answered_elsewhere=SUICIDE_FOLLOW_UPS)

        assert selector.record("suicide_q9_active_thoughts", 2) == []
        assert not set(SUICIDE_FOLLOW_UPS) & set(selector.expand({"suicide_q9_active_thoughts": 2}))
        assert selector.adjustments == []
