"""Tests for booking action labels.

The scheduling collaborator is only ever offered an action label;
monitoring never offers one and crisis always offers emergency care.
"""

import pytest

from intake_triage.booking.policy import BOOKING_ACTIONS, get_booking_action
from intake_triage.models.score import TriageLevel


class TestBookingActions:
    """Action label per triage level."""

    @pytest.mark.parametrize(
        "level,label",
        [
            (TriageLevel.THERAPIST, "Find a Therapist"),
            (TriageLevel.THERAPIST_AND_PSYCHIATRIST, "Book with Mental Health Provider"),
            (TriageLevel.PSYCHIATRIST_CRISIS, "Find Emergency Care"),
        ],
    )
    def test_labels(self, level: TriageLevel, label: str) -> None:
        """Test each level's action label."""
        assert get_booking_action(level).label == label

    def test_monitor_offers_nothing(self) -> None:
        """Test that monitor has no booking action."""
        assert get_booking_action(TriageLevel.MONITOR) is None
        assert TriageLevel.MONITOR not in BOOKING_ACTIONS

    def test_only_crisis_is_urgent(self) -> None:
        """Test the urgent marker."""
        urgent = [level for level, action in BOOKING_ACTIONS.items() if action.urgent]
        assert urgent == [TriageLevel.PSYCHIATRIST_CRISIS]
