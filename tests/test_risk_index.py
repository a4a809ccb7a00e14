"""Tests for the weighted risk index."""

import pytest

from intake_triage.scoring.risk_index import get_trend, weighted_risk_index


class TestWeightedRiskIndex:
    """Informational 0-100 index."""

    def test_all_zero_is_zero(self, short_answers) -> None:
        """Test no symptoms gives zero."""
        index = weighted_risk_index(short_answers())

        assert index.overall == 0.0
        assert index.trend == "improving"
        assert index.questions_counted == 10

    def test_all_max_is_hundred(self, deep_answers) -> None:
        """Test maximum answers give 100."""
        index = weighted_risk_index(deep_answers(default=3))

        assert index.overall == 100.0
        assert index.trend == "critical"
        assert all(value == 100.0 for value in index.domains.values())

    def test_ignores_unscaled_and_unknown_answers(self) -> None:
        """Test text, number, choice and unknown answers never count."""
        answers = {"name": "Sam", "age": 30, "gender": "female", "not_a_question": 3}

        index = weighted_risk_index(answers)

        assert index.questions_counted == 0
        assert index.overall == 0.0

    def test_follow_ups_count(self) -> None:
        """Test scored follow-up answers contribute."""
        index = weighted_risk_index({"fu_suicide_plan": "yes", "fu_suicide_means": "no"})

        assert index.questions_counted == 2
        assert index.overall == 50.0
        assert index.domains == {"suicidality": 50.0}

    @pytest.mark.parametrize(
        "overall,trend",
        [(71, "critical"), (70, "declining"), (51, "declining"), (31, "stable"), (30, "improving")],
    )
    def test_trend_thresholds(self, overall: float, trend: str) -> None:
        """Test trend label thresholds."""
        assert get_trend(overall) == trend
